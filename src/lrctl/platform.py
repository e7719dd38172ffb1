"""Thin blocking wrapper around the container CLI.

Every container-platform call made by the launcher goes through
:class:`ContainerPlatform`, so tests can patch a single seam.
"""

from __future__ import annotations

import shutil
import subprocess  # nosec B404

from lrctl.errors import PlatformError, ToolingMissingError
from lrctl.logging import get_logger

log = get_logger("lrctl.platform")


class ContainerPlatform:
    """Runs container CLI commands (``docker`` by default)."""

    def __init__(self, cli: str = "docker", timeout: int = 300) -> None:
        self._cli = cli
        self._timeout = timeout

    @property
    def cli(self) -> str:
        return self._cli

    def is_installed(self) -> bool:
        """Return True if the CLI binary is on PATH."""
        return shutil.which(self._cli) is not None

    def run(self, *args: str, timeout: int | None = None, input_text: str | None = None) -> str:
        """Run a CLI command and return stdout.

        Raises:
            ToolingMissingError: the CLI binary is not installed.
            PlatformError: the command exited non-zero or timed out.
        """
        cmd = [self._cli, *args]
        try:
            proc = subprocess.run(  # nosec B603
                cmd,
                capture_output=True,
                text=True,
                input=input_text,
                timeout=timeout or self._timeout,
                check=False,
            )
        except FileNotFoundError as exc:
            raise ToolingMissingError(self._cli) from exc
        except subprocess.TimeoutExpired as exc:
            raise PlatformError(cmd, -1, f"timed out after {exc.timeout}s") from exc

        if proc.returncode != 0:
            log.debug("platform_cmd_failed", cmd=cmd, returncode=proc.returncode)
            raise PlatformError(cmd, proc.returncode, proc.stderr.strip())
        return proc.stdout

    def try_run(self, *args: str, timeout: int | None = None) -> str | None:
        """Run a CLI command and return stdout, or None on failure."""
        try:
            return self.run(*args, timeout=timeout)
        except (PlatformError, ToolingMissingError) as exc:
            log.debug("platform_cmd_error", args=list(args), error=str(exc))
            return None

    def exec_passthrough(self, *args: str) -> int:
        """Run a CLI command attached to this process's stdio and return its status."""
        cmd = [self._cli, *args]
        try:
            return subprocess.run(cmd, check=False).returncode  # nosec B603
        except FileNotFoundError as exc:
            raise ToolingMissingError(self._cli) from exc

    # ------------------------------------------------------------------
    # Primitives used by the launcher
    # ------------------------------------------------------------------

    def list_volumes(self, name: str) -> list[str]:
        output = self.run("volume", "ls", "--quiet", "--filter", f"name=^{name}$")
        return [line.strip() for line in output.splitlines() if line.strip()]

    def create_volume(self, name: str, labels: dict[str, str] | None = None) -> None:
        args = ["volume", "create"]
        for key, value in (labels or {}).items():
            args.extend(["--label", f"{key}={value}"])
        self.run(*args, name)

    def remove_volume(self, name: str) -> None:
        self.run("volume", "rm", "--force", name)

    def create_container(self, name: str, image: str, volumes: dict[str, str]) -> None:
        args = ["create", "--name", name]
        for volume, mount in volumes.items():
            args.extend(["--volume", f"{volume}:{mount}"])
        self.run(*args, image)

    def copy_to_container(self, source: str, name: str, dest: str) -> None:
        self.run("cp", source, f"{name}:{dest}")

    def copy_archive_to_container(self, archive: str, name: str, dest: str) -> None:
        # "docker cp -" extracts a tar stream read from stdin
        cmd = [self._cli, "cp", "-", f"{name}:{dest}"]
        with open(archive, "rb") as stream:
            proc = subprocess.run(  # nosec B603
                cmd, stdin=stream, capture_output=True, timeout=self._timeout, check=False
            )
        if proc.returncode != 0:
            raise PlatformError(cmd, proc.returncode, proc.stderr.decode(errors="replace").strip())

    def remove_container(self, name: str) -> None:
        self.run("rm", "--force", name)

    def run_container(self, image: str, volumes: dict[str, str], command: list[str]) -> str:
        args = ["run", "--rm"]
        for volume, mount in volumes.items():
            args.extend(["--volume", f"{volume}:{mount}"])
        return self.run(*args, image, *command)

    def list_image_tags(self, repository: str) -> list[str]:
        """Return ``repository:tag`` refs for a repository, most recent first."""
        output = self.run("images", "--format", "{{.Repository}}:{{.Tag}}", repository)
        return [line.strip() for line in output.splitlines() if line.strip()]
