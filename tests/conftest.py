"""Shared fixtures: an in-memory stand-in for the container CLI."""

from __future__ import annotations

import io
import tarfile
from pathlib import Path

import pytest

from lrctl.errors import PlatformError
from lrctl.volumes import ContainerVolumeStore


class FakePlatform:
    """Records container-platform calls and keeps volumes in memory.

    Mirrors :class:`lrctl.platform.ContainerPlatform`'s primitives closely
    enough for store, resolver and updater tests.
    """

    def __init__(self, images: list[str] | None = None) -> None:
        self.volumes: dict[str, dict[str, bytes]] = {}
        self.containers: dict[str, dict[str, str]] = {}
        self.images = list(images or [])
        self.calls: list[tuple[str, ...]] = []
        self.removed_containers: list[str] = []
        self.fail_copy = False
        self.installed = True

    @property
    def cli(self) -> str:
        return "docker"

    def is_installed(self) -> bool:
        return self.installed

    def try_run(self, *args: str, timeout: int | None = None) -> str | None:
        self.calls.append(("try_run", *args))
        return "24.0.7\n"

    def list_volumes(self, name: str) -> list[str]:
        self.calls.append(("list_volumes", name))
        return [v for v in self.volumes if v == name]

    def create_volume(self, name: str, labels: dict[str, str] | None = None) -> None:
        self.calls.append(("create_volume", name))
        self.volumes[name] = {}

    def remove_volume(self, name: str) -> None:
        self.calls.append(("remove_volume", name))
        self.volumes.pop(name, None)

    def create_container(self, name: str, image: str, volumes: dict[str, str]) -> None:
        self.calls.append(("create_container", name))
        if name in self.containers:
            raise PlatformError(["docker", "create", name], 125, "name already in use")
        for volume in volumes:
            self.volumes.setdefault(volume, {})
        self.containers[name] = dict(volumes)

    def _volume_for(self, name: str) -> dict[str, bytes]:
        (volume,) = self.containers[name].keys()
        return self.volumes[volume]

    def copy_to_container(self, source: str, name: str, dest: str) -> None:
        self.calls.append(("copy_to_container", name, dest))
        if self.fail_copy:
            raise PlatformError(["docker", "cp"], 1, "copy failed")
        self._volume_for(name)[Path(dest).name] = Path(source).read_bytes()

    def copy_archive_to_container(self, archive: str, name: str, dest: str) -> None:
        self.calls.append(("copy_archive_to_container", name, dest))
        if self.fail_copy:
            raise PlatformError(["docker", "cp"], 1, "copy failed")
        with tarfile.open(archive) as tar:
            for member in tar.getmembers():
                if member.isfile():
                    fh = tar.extractfile(member)
                    assert fh is not None
                    self._volume_for(name)[member.name] = fh.read()

    def remove_container(self, name: str) -> None:
        self.calls.append(("remove_container", name))
        self.containers.pop(name, None)
        self.removed_containers.append(name)

    def run_container(self, image: str, volumes: dict[str, str], command: list[str]) -> str:
        self.calls.append(("run_container", *command))
        (volume,) = volumes.keys()
        files = self.volumes.setdefault(volume, {})
        filename = command[-1].rsplit("/", 1)[-1]
        if filename not in files:
            raise PlatformError(["docker", "run", *command], 1, "No such file or directory")
        return files[filename].decode()

    def list_image_tags(self, repository: str) -> list[str]:
        self.calls.append(("list_image_tags", repository))
        return list(self.images)

    def calls_named(self, name: str) -> list[tuple[str, ...]]:
        return [c for c in self.calls if c[0] == name]


def make_tar(path: Path, files: dict[str, bytes]) -> Path:
    with tarfile.open(path, "w") as tar:
        for name, data in files.items():
            info = tarfile.TarInfo(name)
            info.size = len(data)
            tar.addfile(info, io.BytesIO(data))
    return path


@pytest.fixture
def fake_platform() -> FakePlatform:
    return FakePlatform()


@pytest.fixture
def store(fake_platform: FakePlatform) -> ContainerVolumeStore:
    return ContainerVolumeStore(fake_platform)  # type: ignore[arg-type]
