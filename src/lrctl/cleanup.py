"""Removal of temporary files on exit and on termination signals.

Volume mutations and in-flight container calls are not rolled back; only
files registered here are removed.
"""

from __future__ import annotations

import atexit
import signal
import sys
from functools import lru_cache
from pathlib import Path
from types import FrameType

from lrctl.logging import get_logger

log = get_logger("lrctl.cleanup")


class TempFileRegistry:
    """Tracks temp files created during a run."""

    def __init__(self) -> None:
        self._paths: set[Path] = set()
        self._installed = False

    def register(self, path: str | Path) -> Path:
        p = Path(path)
        self._paths.add(p)
        return p

    def discard(self, path: str | Path) -> None:
        """Remove a file now and stop tracking it."""
        p = Path(path)
        self._paths.discard(p)
        try:
            p.unlink(missing_ok=True)
        except OSError as exc:
            log.warning("temp_file_remove_failed", path=str(p), error=str(exc))

    def forget(self, path: str | Path) -> None:
        """Stop tracking a file without removing it (it was renamed into place)."""
        self._paths.discard(Path(path))

    @property
    def pending(self) -> frozenset[Path]:
        return frozenset(self._paths)

    def cleanup(self) -> None:
        for path in list(self._paths):
            self.discard(path)

    def install(self) -> None:
        """Hook cleanup into interpreter exit and SIGINT/SIGTERM."""
        if self._installed:
            return
        atexit.register(self.cleanup)
        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                signal.signal(sig, self._handle_signal)
            except (AttributeError, ValueError):
                log.debug("signal_handler_unavailable", signal=int(sig))
        self._installed = True

    def _handle_signal(self, signum: int, _frame: FrameType | None) -> None:
        log.info("termination_signal", signal=signum, pending=len(self._paths))
        self.cleanup()
        if signum == signal.SIGINT:
            raise KeyboardInterrupt
        sys.exit(128 + signum)


@lru_cache
def get_registry() -> TempFileRegistry:
    """Get the process-wide registry."""
    return TempFileRegistry()
