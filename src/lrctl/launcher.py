"""Command-line entry point for the lrctl launcher.

Usage:
    lrctl [launcher options] [--] [lrctl arguments...]
    lrctl --check                       # Run preflight checks first
    lrctl --skip-update status          # Don't try to update the launcher
    lrctl --versions ./versions.yaml    # Pin versions from a local manifest
    lrctl --print-image                 # Print the resolved image and exit
"""

from __future__ import annotations

import argparse
import subprocess  # nosec B404
import sys

import structlog

from lrctl import __version__
from lrctl.cleanup import get_registry
from lrctl.config import ResolverConfig, get_settings
from lrctl.errors import LauncherError, ToolingMissingError, VersionResolutionError
from lrctl.fetcher import RemoteFetcher
from lrctl.locking import exclusive_lock
from lrctl.logging import get_logger, setup_logging
from lrctl.platform import ContainerPlatform
from lrctl.preflight import PreflightChecker
from lrctl.resolver import VersionResolver
from lrctl.updater import SelfUpdater
from lrctl.volumes import ConfigurationDocument, ContainerVolumeStore
from lrctl.workload import WorkloadRunner

EXIT_PREFLIGHT_FAILED = 1
EXIT_UNRESOLVED = 2
EXIT_TOOLING_MISSING = 127

DOCKER_INSTALL_SCRIPT = "https://get.docker.com"


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="lrctl",
        description="Run the lrctl container, keeping the launcher and image up to date",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument(
        "--check", action="store_true", help="Check network and tooling prerequisites first"
    )
    parser.add_argument(
        "--skip-update", action="store_true", help="Do not try to update the launcher itself"
    )
    parser.add_argument(
        "--versions",
        metavar="PATH_OR_URL",
        help="Versions manifest to use instead of the published one",
    )
    parser.add_argument("--manifest-url", help="Override the published versions manifest URL")
    parser.add_argument("--launcher-url", help="Override the launcher download URL")
    parser.add_argument(
        "--print-image", action="store_true", help="Print the resolved image reference and exit"
    )
    parser.add_argument(
        "workload_args", nargs=argparse.REMAINDER, help="Arguments passed to the lrctl container"
    )
    return parser


def offer_install(tool: str) -> bool:
    """Ask the operator whether to install a missing tool; return True if installed."""
    if not sys.stdin.isatty():
        return False
    answer = input(f"{tool} is not installed. Install it now with {DOCKER_INSTALL_SCRIPT}? [y/N] ")
    if answer.strip().lower() not in ("y", "yes"):
        return False
    proc = subprocess.run(  # nosec B602 B607
        f"curl -fsSL {DOCKER_INSTALL_SCRIPT} | sh", shell=True, check=False
    )
    return proc.returncode == 0


def _read_autoupdate(
    store: ContainerVolumeStore, config: ResolverConfig, log: structlog.stdlib.BoundLogger
) -> bool:
    try:
        with exclusive_lock(config.lock_path):
            store.ensure_config_volume()
        return store.read_config().autoupdate_enabled
    except (LauncherError, OSError) as exc:
        log.warning("config_unavailable_using_default", error=str(exc))
        return ConfigurationDocument().autoupdate_enabled


def main(argv: list[str] | None = None) -> int:
    """Run the launcher and return the process exit status."""
    args = build_parser().parse_args(argv)
    workload_args = list(args.workload_args)
    if workload_args[:1] == ["--"]:
        workload_args = workload_args[1:]

    setup_logging()
    log = get_logger("lrctl.launcher")

    settings = get_settings()
    registry = get_registry()
    registry.install()

    platform = ContainerPlatform(settings.container_cli)
    fetcher = RemoteFetcher(timeout=settings.http_timeout)
    store = ContainerVolumeStore(
        platform, helper_image=settings.helper_image, config_volume=settings.config_volume
    )
    config = ResolverConfig.from_settings(
        settings,
        manifest_url=args.manifest_url,
        launcher_url=args.launcher_url,
        versions_source=args.versions,
        skip_update=args.skip_update or None,
    )
    log.debug("launcher_starting", version=__version__, executable=str(config.executable_path))

    if args.check:
        failures = PreflightChecker(platform, fetcher, install_offer=offer_install).run(config)
        if failures:
            log.error("preflight_failed", failures=failures)
            return EXIT_PREFLIGHT_FAILED

    autoupdate: bool | None = None
    if not config.skip_update:
        result = SelfUpdater(store, fetcher, registry).run(config)
        autoupdate = result.autoupdate_enabled
    if autoupdate is None:
        autoupdate = _read_autoupdate(store, config, log)

    resolver = VersionResolver(
        platform, store, fetcher, local_versions_volume=settings.local_versions_volume
    )
    try:
        target = resolver.resolve(config, autoupdate_enabled=autoupdate)
    except VersionResolutionError as exc:
        print(f"lrctl: {exc}", file=sys.stderr)
        return EXIT_UNRESOLVED

    if args.print_image:
        print(target.image_ref)
        return 0

    try:
        return WorkloadRunner(platform).run(target, workload_args)
    except ToolingMissingError as exc:
        print(f"lrctl: {exc}", file=sys.stderr)
        return EXIT_TOOLING_MISSING


def run() -> None:
    """Console-script entry point."""
    sys.exit(main())


if __name__ == "__main__":
    run()
