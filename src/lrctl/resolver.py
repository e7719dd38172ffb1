"""Resolution of the lrctl image and version to launch.

Precedence, highest first:

1. an operator-supplied manifest (local path or URL),
2. the published remote manifest, only when autoupdate is enabled,
3. the most recent locally cached image.

If none of these yields a version the launcher cannot continue.
"""

from __future__ import annotations

import os
import tempfile
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from lrctl import constants
from lrctl.config import ResolverConfig
from lrctl.errors import (
    LauncherError,
    PlatformError,
    ToolingMissingError,
    UnreachableError,
    VersionResolutionError,
)
from lrctl.fetcher import RemoteFetcher
from lrctl.logging import get_logger
from lrctl.manifest import VersionManifest
from lrctl.platform import ContainerPlatform
from lrctl.volumes import ContainerVolumeStore

log = get_logger("lrctl.resolver")


class TargetSource(Enum):
    """Where the resolved version came from."""

    CACHE = "cache"
    LOCAL_MANIFEST = "local-manifest"
    REMOTE_MANIFEST = "remote-manifest"


@dataclass
class LaunchTarget:
    """The image the workload step should run."""

    image: str
    version: str
    source: TargetSource
    local_versions_volume: str | None = None

    @property
    def image_ref(self) -> str:
        return f"{self.image}:{self.version}"


class VersionResolver:
    """Determines the image reference for the primary service."""

    def __init__(
        self,
        platform: ContainerPlatform,
        store: ContainerVolumeStore,
        fetcher: RemoteFetcher,
        local_versions_volume: str = constants.LOCAL_VERSIONS_VOLUME,
    ) -> None:
        self._platform = platform
        self._store = store
        self._fetcher = fetcher
        self._local_versions_volume = local_versions_volume

    def resolve(self, config: ResolverConfig, autoupdate_enabled: bool) -> LaunchTarget:
        """Return the launch target.

        Raises:
            VersionResolutionError: no source yielded a version for
                ``config.service``, or an explicitly supplied manifest
                could not be read.
        """
        target = self._seed_from_cache(config)

        if config.has_versions_source:
            manifest = self._load_operator_manifest(config)
            self._apply(target, manifest, config.service, TargetSource.LOCAL_MANIFEST)
            if not config.versions_source_is_url:
                target.local_versions_volume = self._local_versions_volume
        elif autoupdate_enabled:
            manifest = self._load_remote_manifest(config)
            if manifest is not None:
                self._apply(target, manifest, config.service, TargetSource.REMOTE_MANIFEST)
        else:
            log.info("autoupdate_disabled_using_cache", image=target.image, version=target.version)

        if not target.version:
            log.error("version_unresolved", service=config.service)
            raise VersionResolutionError(
                f"Unable to determine a version of {config.service} to run: no cached image "
                "and no manifest could be read. Check your network connection and any "
                f"firewall or proxy settings that may block {config.manifest_url}."
            )

        log.info(
            "version_resolved",
            service=config.service,
            image_ref=target.image_ref,
            source=target.source.value,
        )
        return target

    # ------------------------------------------------------------------
    # Sources
    # ------------------------------------------------------------------

    def _seed_from_cache(self, config: ResolverConfig) -> LaunchTarget:
        target = LaunchTarget(image=config.default_image, version="", source=TargetSource.CACHE)
        try:
            refs = self._platform.list_image_tags(config.default_image)
        except (PlatformError, ToolingMissingError) as exc:
            log.warning("image_cache_query_failed", image=config.default_image, error=str(exc))
            return target

        for ref in refs:
            image, _, tag = ref.rpartition(":")
            if image and tag and tag != "<none>":
                target.image = image
                target.version = tag
                log.debug("cached_image_found", image_ref=ref)
                break
        return target

    def _load_operator_manifest(self, config: ResolverConfig) -> VersionManifest:
        source = config.versions_source or ""
        if config.versions_source_is_url:
            try:
                text = self._fetcher.fetch_text(source)
            except UnreachableError as exc:
                raise VersionResolutionError(f"Cannot fetch versions file {source}: {exc}") from exc
            return VersionManifest.parse(text)

        path = Path(os.path.realpath(source))
        if not path.is_file():
            raise VersionResolutionError(f"Versions file not found: {path}")
        try:
            text = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            raise VersionResolutionError(f"Cannot read versions file {path}: {exc}") from exc

        try:
            self._stage_local_manifest(path)
        except LauncherError as exc:
            raise VersionResolutionError(
                f"Cannot expose versions file {path} to the container: {exc}"
            ) from exc

        log.info("local_manifest_loaded", path=str(path))
        return VersionManifest.parse(text)

    def _stage_local_manifest(self, path: Path) -> None:
        """Copy the manifest into a fresh local-versions volume under its fixed name."""
        self._store.create_or_replace(self._local_versions_volume, labels={"app": "lrctl"})
        with tempfile.TemporaryDirectory(prefix="lrctl-versions-") as tmp:
            staged = Path(tmp) / constants.LOCAL_VERSIONS_FILE
            staged.write_bytes(path.read_bytes())
            self._store.write_file(self._local_versions_volume, staged)

    def _load_remote_manifest(self, config: ResolverConfig) -> VersionManifest | None:
        try:
            text = self._fetcher.fetch_text(config.manifest_url)
        except UnreachableError as exc:
            log.warning(
                "remote_manifest_unreachable",
                url=config.manifest_url,
                error=str(exc),
                hint="falling back to the cached image",
            )
            return None
        return VersionManifest.parse(text)

    @staticmethod
    def _apply(
        target: LaunchTarget, manifest: VersionManifest, service: str, source: TargetSource
    ) -> None:
        entry = manifest.get(service)
        if entry is None:
            log.warning("manifest_missing_service", service=service, source=source.value)
            return
        if entry.image:
            target.image = entry.image
        if entry.version:
            target.version = entry.version
            target.source = source
