"""Preflight checks for the launcher's network and tooling dependencies.

Every check runs even when an earlier one fails, so an operator sees all
problems in one pass. Nothing is remediated here except through the
optional install offer.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass

from lrctl.config import ResolverConfig
from lrctl.fetcher import RemoteFetcher
from lrctl.logging import get_logger
from lrctl.platform import ContainerPlatform

log = get_logger("lrctl.preflight")

InstallOffer = Callable[[str], bool]


@dataclass
class CheckResult:
    """Outcome of a single preflight check."""

    name: str
    passed: bool
    detail: str = ""
    skipped: bool = False

    @property
    def failed(self) -> bool:
        return not self.passed and not self.skipped


class PreflightChecker:
    """Runs the fixed check battery and counts failures."""

    def __init__(
        self,
        platform: ContainerPlatform,
        fetcher: RemoteFetcher,
        install_offer: InstallOffer | None = None,
    ) -> None:
        self._platform = platform
        self._fetcher = fetcher
        self._install_offer = install_offer

    def run(self, config: ResolverConfig) -> int:
        """Run all checks and return the number that failed."""
        results = self.run_checks(config)
        failures = sum(1 for r in results if r.failed)
        log.info("preflight_finished", checks=len(results), failures=failures)
        return failures

    def run_checks(self, config: ResolverConfig) -> list[CheckResult]:
        results = [
            self._check_tool(),
            self._check_daemon(),
            self._check_url("registry_reachable", config.registry_url),
        ]

        if config.has_versions_source:
            results.append(
                CheckResult(
                    "manifest_reachable",
                    passed=True,
                    detail="local manifest supplied",
                    skipped=True,
                )
            )
        else:
            results.append(self._check_url("manifest_reachable", config.manifest_url))

        if config.skip_update:
            results.append(
                CheckResult(
                    "launcher_reachable", passed=True, detail="self-update skipped", skipped=True
                )
            )
        else:
            results.append(self._check_url("launcher_reachable", config.launcher_url))

        for r in results:
            if r.skipped:
                log.info("preflight_check_skipped", check=r.name, detail=r.detail)
            elif r.passed:
                log.info("preflight_check_passed", check=r.name, detail=r.detail)
            else:
                log.error("preflight_check_failed", check=r.name, detail=r.detail)
        return results

    # ------------------------------------------------------------------
    # Checks
    # ------------------------------------------------------------------

    def _check_tool(self) -> CheckResult:
        name = "tool_installed"
        cli = self._platform.cli
        if self._platform.is_installed():
            return CheckResult(name, passed=True, detail=cli)

        if self._install_offer is not None and self._install_offer(cli):
            if self._platform.is_installed():
                return CheckResult(name, passed=True, detail=f"{cli} installed")
        return CheckResult(name, passed=False, detail=f"{cli} not found on PATH")

    def _check_daemon(self) -> CheckResult:
        name = "daemon_running"
        output = self._platform.try_run("info", "--format", "{{.ServerVersion}}", timeout=30)
        if output is None:
            return CheckResult(name, passed=False, detail=f"{self._platform.cli} info failed")
        return CheckResult(name, passed=True, detail=f"server {output.strip()}")

    def _check_url(self, name: str, url: str) -> CheckResult:
        if self._fetcher.check_reachable(url):
            return CheckResult(name, passed=True, detail=url)
        return CheckResult(name, passed=False, detail=f"cannot reach {url}")
