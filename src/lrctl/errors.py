"""Exception hierarchy for the lrctl launcher."""

from __future__ import annotations


class LauncherError(Exception):
    """Base class for launcher errors."""


class UnreachableError(LauncherError):
    """A network target did not respond or answered with a failure status."""

    def __init__(self, url: str, reason: str, status_code: int | None = None) -> None:
        self.url = url
        self.reason = reason
        self.status_code = status_code
        super().__init__(f"{url} unreachable: {reason}")


class FetchWriteError(LauncherError):
    """A fetched body could not be written to its destination."""

    def __init__(self, path: str, reason: str) -> None:
        self.path = path
        self.reason = reason
        super().__init__(f"Failed to write {path}: {reason}")


class MalformedArtifactError(LauncherError):
    """A fetched artifact failed its structural sanity check."""


class ToolingMissingError(LauncherError):
    """A required local tool is not installed."""

    def __init__(self, tool: str) -> None:
        self.tool = tool
        super().__init__(f"Required tool not found on PATH: {tool}")


class PlatformError(LauncherError):
    """The container CLI returned a non-zero status."""

    def __init__(self, args: list[str], returncode: int, stderr: str = "") -> None:
        self.args_list = args
        self.returncode = returncode
        self.stderr = stderr
        super().__init__(f"{' '.join(args)} failed (rc={returncode}): {stderr[:500]}")


class VersionResolutionError(LauncherError):
    """No source could supply a version for the primary service."""
