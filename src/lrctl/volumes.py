"""Durable key/value storage backed by container-platform named volumes.

The config volume holds a single configuration document; a second volume
carries an operator-supplied version manifest so the workload container
can see it.
"""

from __future__ import annotations

import os
import secrets
import tarfile
import tempfile
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path

from lrctl import constants
from lrctl.errors import PlatformError
from lrctl.logging import get_logger
from lrctl.platform import ContainerPlatform

log = get_logger("lrctl.volumes")

_TAR_SUFFIXES = (".tar", ".tgz", ".tar.gz", ".tar.bz2", ".tar.xz")


@dataclass(frozen=True)
class ConfigurationDocument:
    """The launcher's persisted configuration: a single autoupdate flag."""

    autoupdate_enabled: bool = True

    def to_text(self) -> str:
        return f"autoupdate: {'true' if self.autoupdate_enabled else 'false'}\n"

    @classmethod
    def from_text(cls, text: str) -> ConfigurationDocument:
        """Parse the document; absent or unreadable content means defaults.

        Only the second whitespace-delimited token of the ``autoupdate:``
        line is consulted.
        """
        for line in text.splitlines():
            tokens = line.split()
            if len(tokens) >= 2 and tokens[0] == "autoupdate:":
                return cls(autoupdate_enabled=tokens[1].lower() != "false")
        return cls()


def is_tar_archive(path: Path) -> bool:
    """Detect a tar stream by extension, then by content."""
    if path.name.lower().endswith(_TAR_SUFFIXES):
        return True
    try:
        return tarfile.is_tarfile(path)
    except OSError:
        return False


class ContainerVolumeStore:
    """Named-volume storage operated through short-lived helper containers.

    Concurrent launchers may share volumes; each helper container gets a
    unique name so they never collide on it.
    """

    def __init__(
        self,
        platform: ContainerPlatform,
        helper_image: str = constants.HELPER_IMAGE,
        config_volume: str = constants.CONFIG_VOLUME,
    ) -> None:
        self._platform = platform
        self._helper_image = helper_image
        self._config_volume = config_volume

    @property
    def config_volume(self) -> str:
        return self._config_volume

    # ------------------------------------------------------------------
    # Volume lifecycle
    # ------------------------------------------------------------------

    def exists(self, name: str) -> bool:
        """Return True if a volume with exactly this name exists."""
        return name in self._platform.list_volumes(name)

    def create_or_replace(self, name: str, labels: dict[str, str] | None = None) -> None:
        """Create a fresh volume, destroying any existing one of the same name.

        Prior contents are lost. Platform errors propagate.
        """
        if self.exists(name):
            log.info("volume_replacing", volume=name)
            self._platform.remove_volume(name)
        self._platform.create_volume(name, labels=labels)
        log.info("volume_created", volume=name)

    # ------------------------------------------------------------------
    # File transfer
    # ------------------------------------------------------------------

    def write_file(self, volume: str, local_path: str | Path) -> None:
        """Copy a local file, or extract a tar archive, into the volume root."""
        source = Path(local_path)
        with self._helper_container(volume) as helper:
            if is_tar_archive(source):
                self._platform.copy_archive_to_container(
                    str(source), helper, constants.VOLUME_MOUNT
                )
            else:
                self._platform.copy_to_container(
                    str(source), helper, f"{constants.VOLUME_MOUNT}/{source.name}"
                )
        log.debug("volume_file_written", volume=volume, source=str(source))

    def read_file(self, volume: str, path: str) -> str:
        """Return the file's contents, or ``""`` if it cannot be read."""
        try:
            return self._platform.run_container(
                self._helper_image,
                {volume: constants.VOLUME_MOUNT},
                ["cat", f"{constants.VOLUME_MOUNT}/{path.lstrip('/')}"],
            )
        except PlatformError as exc:
            log.debug("volume_read_failed", volume=volume, path=path, error=str(exc))
            return ""

    @contextmanager
    def _helper_container(self, volume: str) -> Iterator[str]:
        name = f"{constants.HELPER_PREFIX}-{os.getpid()}-{secrets.token_hex(4)}"
        self._platform.create_container(
            name, self._helper_image, {volume: constants.VOLUME_MOUNT}
        )
        try:
            yield name
        finally:
            try:
                self._platform.remove_container(name)
            except PlatformError as exc:
                log.warning("helper_container_remove_failed", container=name, error=str(exc))

    # ------------------------------------------------------------------
    # Configuration document
    # ------------------------------------------------------------------

    def ensure_config_volume(self) -> bool:
        """Provision the config volume with defaults if it is absent.

        Returns True if the volume was provisioned by this call.
        """
        if self.exists(self._config_volume):
            return False

        log.info("config_volume_provisioning", volume=self._config_volume)
        self.create_or_replace(self._config_volume, labels={"app": "lrctl"})
        with tempfile.TemporaryDirectory(prefix="lrctl-config-") as tmp:
            doc_path = Path(tmp) / constants.CONFIG_FILE
            doc_path.write_text(ConfigurationDocument().to_text(), encoding="utf-8")
            self.write_file(self._config_volume, doc_path)
        return True

    def read_config(self) -> ConfigurationDocument:
        text = self.read_file(self._config_volume, constants.CONFIG_FILE)
        doc = ConfigurationDocument.from_text(text)
        log.debug("config_read", autoupdate=doc.autoupdate_enabled)
        return doc
