"""Hand-off to the lrctl workload container."""

from __future__ import annotations

import os
import sys
from collections.abc import Mapping, Sequence

from lrctl import constants
from lrctl.logging import get_logger
from lrctl.platform import ContainerPlatform
from lrctl.resolver import LaunchTarget

log = get_logger("lrctl.workload")


class WorkloadRunner:
    """Runs the resolved image attached to the launcher's terminal."""

    def __init__(
        self, platform: ContainerPlatform, environ: Mapping[str, str] | None = None
    ) -> None:
        self._platform = platform
        self._environ = os.environ if environ is None else environ

    def build_args(self, target: LaunchTarget, args: Sequence[str], tty: bool = False) -> list[str]:
        run_args = ["run", "--rm", "-i"]
        if tty:
            run_args.append("-t")

        # Proxy settings are forwarded as-is, never modified
        for var in constants.PROXY_ENV_VARS:
            value = self._environ.get(var)
            if value:
                run_args.extend(["-e", f"{var}={value}"])

        if target.local_versions_volume:
            manifest_path = f"{constants.LOCAL_VERSIONS_MOUNT}/{constants.LOCAL_VERSIONS_FILE}"
            run_args.extend(
                [
                    "-v",
                    f"{target.local_versions_volume}:{constants.LOCAL_VERSIONS_MOUNT}:ro",
                    "-e",
                    f"LRCTL_VERSIONS_FILE={manifest_path}",
                ]
            )

        return [*run_args, target.image_ref, *args]

    def run(self, target: LaunchTarget, args: Sequence[str]) -> int:
        """Run the workload and return its exit status."""
        tty = sys.stdin.isatty() and sys.stdout.isatty()
        run_args = self.build_args(target, args, tty=tty)
        log.info("workload_starting", image_ref=target.image_ref, args=list(args))
        return self._platform.exec_passthrough(*run_args)
