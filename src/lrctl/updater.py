"""Self-update of the launcher executable.

Stages:
1. CHECK_FLAG: provision the config volume if needed, read the autoupdate flag
2. FETCH: download the published launcher next to the running executable
3. VALIDATE: the candidate must carry the ``lrctl_version=`` marker
4. COMPARE: identical SHA-256 digests mean there is nothing to do
5. REPLACE: mark the candidate executable and rename it over the old file

Updating is advisory. :meth:`SelfUpdater.run` never raises; every stage
reports an :class:`UpdateOutcome` and the launcher carries on with whatever
executable is in place.
"""

from __future__ import annotations

import hashlib
import os
import re
import stat
import sys
import tempfile
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from pathlib import Path
from typing import Any

from lrctl import __version__, constants
from lrctl.cleanup import TempFileRegistry, get_registry
from lrctl.config import ResolverConfig
from lrctl.errors import (
    FetchWriteError,
    LauncherError,
    MalformedArtifactError,
    UnreachableError,
)
from lrctl.fetcher import RemoteFetcher
from lrctl.locking import exclusive_lock
from lrctl.logging import get_logger
from lrctl.volumes import ContainerVolumeStore

log = get_logger("lrctl.updater")

_MARKER_VALUE_RE = re.compile(re.escape(constants.VERSION_MARKER) + r"""["']?([^"'\s]*)""")
_HASH_CHUNK_SIZE = 64 * 1024


class UpdateStage(Enum):
    """Stage of the self-update state machine."""

    CHECK_FLAG = "check_flag"
    FETCH = "fetch"
    VALIDATE = "validate"
    COMPARE = "compare"
    REPLACE = "replace"


class UpdateOutcome(Enum):
    """Terminal outcome of a self-update run."""

    DISABLED = "disabled"
    UP_TO_DATE = "up_to_date"
    REPLACED = "replaced"
    FAILED = "failed"


@dataclass
class UpdateResult:
    """Result of a self-update run."""

    outcome: UpdateOutcome = UpdateOutcome.FAILED
    stage: UpdateStage = UpdateStage.CHECK_FLAG
    current_version: str = __version__
    candidate_version: str | None = None
    autoupdate_enabled: bool | None = None
    config_provisioned: bool = False
    current_sha256: str | None = None
    candidate_sha256: str | None = None
    error: str | None = None
    steps_completed: list[str] = field(default_factory=list)
    started_at: str = field(default_factory=lambda: datetime.now(UTC).isoformat())
    completed_at: str | None = None

    @property
    def replaced(self) -> bool:
        return self.outcome is UpdateOutcome.REPLACED

    def to_dict(self) -> dict[str, Any]:
        return {
            "outcome": self.outcome.value,
            "stage": self.stage.value,
            "current_version": self.current_version,
            "candidate_version": self.candidate_version,
            "autoupdate_enabled": self.autoupdate_enabled,
            "config_provisioned": self.config_provisioned,
            "current_sha256": self.current_sha256,
            "candidate_sha256": self.candidate_sha256,
            "error": self.error,
            "steps_completed": self.steps_completed,
            "started_at": self.started_at,
            "completed_at": self.completed_at,
        }


def file_sha256(path: Path) -> str:
    """Return the hex SHA-256 digest of a file, read in chunks."""
    digest = hashlib.sha256()
    with path.open("rb") as fh:
        for chunk in iter(lambda: fh.read(_HASH_CHUNK_SIZE), b""):
            digest.update(chunk)
    return digest.hexdigest()


def extract_marker_version(content: bytes) -> str | None:
    """Return the value after the version marker, or None if there is no marker."""
    m = _MARKER_VALUE_RE.search(content.decode("utf-8", errors="replace"))
    if m is None:
        return None
    return m.group(1)


def validate_candidate(path: Path) -> str:
    """Return the marker version of a downloaded launcher.

    Raises:
        MalformedArtifactError: the file carries no version marker.
    """
    version = extract_marker_version(path.read_bytes())
    if version is None:
        raise MalformedArtifactError(f"no {constants.VERSION_MARKER} marker in {path.name}")
    return version


class SelfUpdater:
    """Replaces the running launcher with the published build when they differ."""

    def __init__(
        self,
        store: ContainerVolumeStore,
        fetcher: RemoteFetcher,
        registry: TempFileRegistry | None = None,
    ) -> None:
        self._store = store
        self._fetcher = fetcher
        self._registry = registry or get_registry()
        self._candidate: Path | None = None

    def run(self, config: ResolverConfig) -> UpdateResult:
        """Run the update state machine. Never raises."""
        result = UpdateResult()
        self._candidate = None
        try:
            result.outcome = self._run_stages(config, result)
        except Exception as exc:
            result.outcome = UpdateOutcome.FAILED
            result.error = f"Unexpected error: {exc}"
            log.exception("self_update_unexpected_error", stage=result.stage.value)
        finally:
            if self._candidate is not None and self._candidate in self._registry.pending:
                self._registry.discard(self._candidate)
            self._candidate = None
            result.completed_at = datetime.now(UTC).isoformat()

        log.info(
            "self_update_finished",
            outcome=result.outcome.value,
            stage=result.stage.value,
            error=result.error,
        )
        return result

    def _run_stages(self, config: ResolverConfig, result: UpdateResult) -> UpdateOutcome:
        result.stage = UpdateStage.CHECK_FLAG
        outcome = self._check_flag(config, result)
        if outcome is not None:
            return outcome

        executable = config.executable_path
        if executable is None:
            result.error = "No launcher executable to update; set LRCTL_EXECUTABLE_PATH"
            log.warning("self_update_no_executable", argv0=sys.argv[0] if sys.argv else None)
            return UpdateOutcome.FAILED

        result.stage = UpdateStage.FETCH
        try:
            candidate = self._new_candidate_path(executable)
        except OSError as exc:
            result.error = f"Cannot create download file next to {executable}: {exc}"
            log.warning("self_update_tempfile_failed", error=str(exc))
            return UpdateOutcome.FAILED
        outcome = self._fetch(config, candidate, result)
        if outcome is not None:
            return outcome

        result.stage = UpdateStage.VALIDATE
        outcome = self._validate(candidate, result)
        if outcome is not None:
            return outcome

        result.stage = UpdateStage.COMPARE
        outcome = self._compare(executable, candidate, result)
        if outcome is not None:
            return outcome

        result.stage = UpdateStage.REPLACE
        return self._replace(executable, config.lock_path, candidate, result)

    # ------------------------------------------------------------------
    # Stages; each returns a terminal outcome or None to continue
    # ------------------------------------------------------------------

    def _check_flag(self, config: ResolverConfig, result: UpdateResult) -> UpdateOutcome | None:
        try:
            with exclusive_lock(config.lock_path):
                result.config_provisioned = self._store.ensure_config_volume()
            document = self._store.read_config()
        except LauncherError as exc:
            result.error = f"Cannot read launcher configuration: {exc}"
            log.warning("self_update_config_unavailable", error=str(exc))
            return UpdateOutcome.FAILED

        result.autoupdate_enabled = document.autoupdate_enabled
        result.steps_completed.append("check_flag")
        if not document.autoupdate_enabled:
            log.info("self_update_disabled")
            return UpdateOutcome.DISABLED
        return None

    def _fetch(
        self, config: ResolverConfig, candidate: Path, result: UpdateResult
    ) -> UpdateOutcome | None:
        try:
            self._fetcher.fetch_to_file(config.launcher_url, candidate)
        except (UnreachableError, FetchWriteError) as exc:
            result.error = f"Download failed: {exc}"
            return UpdateOutcome.FAILED
        result.steps_completed.append("fetch")
        return None

    def _validate(self, candidate: Path, result: UpdateResult) -> UpdateOutcome | None:
        try:
            version = validate_candidate(candidate)
        except MalformedArtifactError as exc:
            result.error = f"Downloaded launcher is malformed: {exc}"
            log.warning("self_update_malformed_candidate", path=str(candidate))
            return UpdateOutcome.FAILED
        result.candidate_version = version
        result.steps_completed.append("validate")
        return None

    def _compare(
        self, executable: Path, candidate: Path, result: UpdateResult
    ) -> UpdateOutcome | None:
        result.candidate_sha256 = file_sha256(candidate)
        if executable.exists():
            result.current_sha256 = file_sha256(executable)
        result.steps_completed.append("compare")

        if result.candidate_sha256 == result.current_sha256:
            log.info("self_update_up_to_date", sha256=result.current_sha256[:12])
            return UpdateOutcome.UP_TO_DATE
        return None

    def _replace(
        self, executable: Path, lock_path: Path, candidate: Path, result: UpdateResult
    ) -> UpdateOutcome:
        mode = stat.S_IMODE(executable.stat().st_mode) if executable.exists() else 0o755
        try:
            with exclusive_lock(lock_path):
                os.chmod(candidate, mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
                os.replace(candidate, executable)
        except OSError as exc:
            result.error = f"Cannot replace {executable}: {exc}"
            log.warning("self_update_replace_failed", path=str(executable), error=str(exc))
            return UpdateOutcome.FAILED

        self._registry.forget(candidate)
        result.steps_completed.append("replace")
        log.info(
            "self_update_replaced",
            path=str(executable),
            previous=self._short(result.current_sha256),
            new=self._short(result.candidate_sha256),
            version=result.candidate_version,
        )
        return UpdateOutcome.REPLACED

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _new_candidate_path(self, executable: Path) -> Path:
        # Same directory as the executable so the final rename stays on one filesystem
        fd, name = tempfile.mkstemp(prefix=".lrctl-update-", dir=executable.parent)
        os.close(fd)
        self._candidate = self._registry.register(name)
        return self._candidate

    @staticmethod
    def _short(digest: str | None) -> str | None:
        return digest[:12] if digest else None
