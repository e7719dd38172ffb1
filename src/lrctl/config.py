"""Configuration management for the lrctl launcher."""

from __future__ import annotations

import os
import sys
from dataclasses import dataclass, replace
from functools import lru_cache
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from lrctl import constants


class Settings(BaseSettings):
    """Launcher settings loaded from ``LRCTL_*`` environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="LRCTL_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Container platform
    container_cli: str = Field(default="docker", description="Container CLI binary")
    helper_image: str = Field(
        default=constants.HELPER_IMAGE, description="Image used for short-lived helper containers"
    )
    config_volume: str = Field(default=constants.CONFIG_VOLUME, description="Config volume name")
    local_versions_volume: str = Field(
        default=constants.LOCAL_VERSIONS_VOLUME,
        description="Volume that exposes a local manifest to the workload",
    )
    default_image: str = Field(
        default=constants.DEFAULT_IMAGE, description="Image repository of the primary service"
    )

    # Trusted endpoints
    manifest_url: str = Field(default=constants.MANIFEST_URL, description="Version manifest URL")
    launcher_url: str = Field(default=constants.LAUNCHER_URL, description="Launcher source URL")
    registry_url: str = Field(
        default=constants.REGISTRY_URL, description="Registry endpoint probed by preflight"
    )

    # Self-update
    executable_path: Path | None = Field(
        default=None, description="Launcher executable to replace (defaults to the running script)"
    )
    lock_path: Path = Field(
        default_factory=lambda: Path.home() / ".cache" / "lrctl" / "lrctl.lock",
        description="Advisory lock file guarding replacement and provisioning",
    )

    # Network
    http_timeout: float = Field(
        default=constants.HTTP_TIMEOUT_SECONDS, gt=0, description="HTTP timeout in seconds"
    )

    # Application
    environment: str = Field(default="production", description="Environment name")
    log_level: str = Field(default="INFO", description="Logging level")

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.environment.lower() == "development"

    @property
    def launcher_path(self) -> Path | None:
        """Resolved path of the executable the self-updater replaces.

        None when no path is configured and the process was started from a
        Python module (``python -m lrctl``), which must never be overwritten.
        """
        if self.executable_path is not None:
            return Path(os.path.realpath(self.executable_path))
        script = sys.argv[0] if sys.argv else ""
        if not script or script.endswith(".py") or not os.path.isfile(script):
            return None
        return Path(os.path.realpath(script))


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


@dataclass(frozen=True)
class ResolverConfig:
    """Per-invocation inputs threaded through the resolver, updater and preflight.

    Built once from :class:`Settings` plus command-line overrides so that no
    component reads ambient state of its own.
    """

    manifest_url: str
    launcher_url: str
    registry_url: str
    default_image: str
    executable_path: Path | None
    lock_path: Path
    service: str = constants.PRIMARY_SERVICE
    versions_source: str | None = None
    skip_update: bool = False

    @classmethod
    def from_settings(cls, settings: Settings, **overrides: object) -> ResolverConfig:
        """Build a config from settings; ``None`` overrides are ignored."""
        config = cls(
            manifest_url=settings.manifest_url,
            launcher_url=settings.launcher_url,
            registry_url=settings.registry_url,
            default_image=settings.default_image,
            executable_path=settings.launcher_path,
            lock_path=settings.lock_path,
        )
        changes = {key: value for key, value in overrides.items() if value is not None}
        return replace(config, **changes) if changes else config

    @property
    def has_versions_source(self) -> bool:
        return bool(self.versions_source)

    @property
    def versions_source_is_url(self) -> bool:
        source = self.versions_source or ""
        return source.startswith(("http://", "https://"))
