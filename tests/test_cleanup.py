"""Tests for lrctl.cleanup.TempFileRegistry and lrctl.locking."""

from __future__ import annotations

import signal
from pathlib import Path
from unittest.mock import patch

import pytest

from lrctl.cleanup import TempFileRegistry
from lrctl.locking import exclusive_lock


class TestTempFileRegistry:
    """Tests for registration and removal of temp files."""

    def test_cleanup_removes_registered_files(self, tmp_path: Path) -> None:
        registry = TempFileRegistry()
        first = tmp_path / "a"
        second = tmp_path / "b"
        first.write_text("x")
        second.write_text("y")
        registry.register(first)
        registry.register(str(second))

        registry.cleanup()

        assert not first.exists()
        assert not second.exists()
        assert registry.pending == frozenset()

    def test_forget_keeps_file(self, tmp_path: Path) -> None:
        registry = TempFileRegistry()
        path = registry.register(tmp_path / "kept")
        path.write_text("x")

        registry.forget(path)
        registry.cleanup()

        assert path.exists()

    def test_discard_missing_file_is_quiet(self, tmp_path: Path) -> None:
        registry = TempFileRegistry()
        registry.register(tmp_path / "never-created")

        registry.cleanup()

        assert registry.pending == frozenset()

    def test_install_is_idempotent(self) -> None:
        registry = TempFileRegistry()
        with patch("lrctl.cleanup.atexit.register") as mock_atexit:
            with patch("lrctl.cleanup.signal.signal") as mock_signal:
                registry.install()
                registry.install()

        mock_atexit.assert_called_once_with(registry.cleanup)
        assert mock_signal.call_count == 2

    def test_sigterm_cleans_up_and_exits(self, tmp_path: Path) -> None:
        registry = TempFileRegistry()
        path = registry.register(tmp_path / "partial")
        path.write_text("x")

        with pytest.raises(SystemExit) as exc_info:
            registry._handle_signal(signal.SIGTERM, None)

        assert exc_info.value.code == 128 + signal.SIGTERM
        assert not path.exists()

    def test_sigint_raises_keyboard_interrupt(self, tmp_path: Path) -> None:
        registry = TempFileRegistry()
        path = registry.register(tmp_path / "partial")
        path.write_text("x")

        with pytest.raises(KeyboardInterrupt):
            registry._handle_signal(signal.SIGINT, None)

        assert not path.exists()


class TestExclusiveLock:
    """Tests for the advisory lock."""

    def test_creates_parent_directories(self, tmp_path: Path) -> None:
        lock = tmp_path / "nested" / "dir" / "lrctl.lock"

        with exclusive_lock(lock):
            assert lock.exists()

    def test_reacquire_after_release(self, tmp_path: Path) -> None:
        lock = tmp_path / "lrctl.lock"

        with exclusive_lock(lock):
            pass
        with exclusive_lock(lock):
            pass

    def test_released_on_error(self, tmp_path: Path) -> None:
        lock = tmp_path / "lrctl.lock"

        with pytest.raises(RuntimeError):
            with exclusive_lock(lock):
                raise RuntimeError("boom")

        with exclusive_lock(lock):
            pass
