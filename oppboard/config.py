"""Configuration loading utilities for oppboard."""

from __future__ import annotations

import os
from collections.abc import Mapping, MutableMapping
from dataclasses import dataclass, field
from pathlib import Path

_TRUTHY = {"1", "true", "yes", "on"}

DEFAULT_SESSION_TTL = 12 * 3600
DEFAULT_FAVICON_SERVICE_URL = "https://www.google.com/s2/favicons"
DEFAULT_FAVICON_TIMEOUT = 2.0
DEFAULT_HTTP_TIMEOUT = 30.0
DEFAULT_API_HOST = "127.0.0.1"
DEFAULT_API_PORT = 8000


class ConfigError(RuntimeError):
    """Raised when the runtime configuration is invalid."""


@dataclass(slots=True)
class Config:
    """Runtime configuration for the oppboard service."""

    data_dir: Path = field(default_factory=lambda: Path("data"))
    sqlite_path: Path = field(default_factory=lambda: Path("data/sqlite/oppboard.db"))
    admin_username: str | None = None
    admin_password: str | None = None
    session_secret: str | None = None
    session_ttl_seconds: int = DEFAULT_SESSION_TTL
    enforce_admin_registry: bool = False
    favicon_service_url: str = DEFAULT_FAVICON_SERVICE_URL
    favicon_timeout: float = DEFAULT_FAVICON_TIMEOUT
    http_timeout: float = DEFAULT_HTTP_TIMEOUT
    image_host_cloud_name: str | None = None
    image_host_upload_preset: str | None = None
    api_host: str = DEFAULT_API_HOST
    api_port: int = DEFAULT_API_PORT

    @classmethod
    def from_env(
        cls, env: Mapping[str, str] | MutableMapping[str, str] | None = None, **overrides: object
    ) -> Config:
        """Create a :class:`Config` instance from environment variables."""

        env = env if env is not None else os.environ

        def _optional(key: str, env_key: str) -> str | None:
            value = overrides.pop(key, env.get(env_key))
            return str(value) if value else None

        data_dir = Path(overrides.pop("data_dir", env.get("OPPBOARD_DATA_DIR", "data")))
        sqlite_path = Path(
            overrides.pop(
                "sqlite_path",
                env.get(
                    "OPPBOARD_SQLITE_PATH",
                    data_dir / "sqlite" / "oppboard.db",
                ),
            )
        )
        admin_username = _optional("admin_username", "OPPBOARD_ADMIN_USERNAME")
        admin_password = _optional("admin_password", "OPPBOARD_ADMIN_PASSWORD")
        if bool(admin_username) != bool(admin_password):
            raise ConfigError(
                "OPPBOARD_ADMIN_USERNAME and OPPBOARD_ADMIN_PASSWORD must be provided together"
            )
        enforce = overrides.pop(
            "enforce_admin_registry", env.get("OPPBOARD_ENFORCE_ADMIN_REGISTRY", "")
        )
        if not isinstance(enforce, bool):
            enforce = str(enforce).strip().lower() in _TRUTHY

        config = cls(
            data_dir=data_dir,
            sqlite_path=sqlite_path,
            admin_username=admin_username,
            admin_password=admin_password,
            session_secret=_optional("session_secret", "OPPBOARD_SESSION_SECRET"),
            session_ttl_seconds=int(
                overrides.pop(
                    "session_ttl_seconds",
                    env.get("OPPBOARD_SESSION_TTL", DEFAULT_SESSION_TTL),
                )
            ),
            enforce_admin_registry=enforce,
            favicon_service_url=str(
                overrides.pop(
                    "favicon_service_url",
                    env.get("OPPBOARD_FAVICON_SERVICE_URL", DEFAULT_FAVICON_SERVICE_URL),
                )
            ),
            favicon_timeout=float(
                overrides.pop(
                    "favicon_timeout",
                    env.get("OPPBOARD_FAVICON_TIMEOUT", DEFAULT_FAVICON_TIMEOUT),
                )
            ),
            http_timeout=float(
                overrides.pop(
                    "http_timeout", env.get("OPPBOARD_HTTP_TIMEOUT", DEFAULT_HTTP_TIMEOUT)
                )
            ),
            image_host_cloud_name=_optional("image_host_cloud_name", "CLOUDINARY_CLOUD_NAME"),
            image_host_upload_preset=_optional(
                "image_host_upload_preset", "CLOUDINARY_UPLOAD_PRESET"
            ),
            api_host=str(
                overrides.pop("api_host", env.get("OPPBOARD_API_HOST", DEFAULT_API_HOST))
            ),
            api_port=int(
                overrides.pop("api_port", env.get("OPPBOARD_API_PORT", DEFAULT_API_PORT))
            ),
        )

        if overrides:
            unexpected = ", ".join(sorted(overrides))
            raise ConfigError(f"Unexpected configuration overrides: {unexpected}")
        if config.session_ttl_seconds <= 0:
            raise ConfigError("OPPBOARD_SESSION_TTL must be positive")

        config.ensure_directories()
        return config

    def ensure_directories(self) -> None:
        """Ensure that filesystem paths required by the service exist."""

        self.data_dir.mkdir(parents=True, exist_ok=True)
        self.sqlite_path.parent.mkdir(parents=True, exist_ok=True)

    def as_dict(self) -> dict[str, object]:
        """Serialize configuration to a mapping for debugging or logging."""

        return {
            "data_dir": str(self.data_dir),
            "sqlite_path": str(self.sqlite_path),
            "admin_login_configured": bool(self.admin_username and self.admin_password),
            "session_ttl_seconds": self.session_ttl_seconds,
            "enforce_admin_registry": self.enforce_admin_registry,
            "favicon_service_url": self.favicon_service_url,
            "favicon_timeout": self.favicon_timeout,
            "http_timeout": self.http_timeout,
            "image_host_configured": bool(
                self.image_host_cloud_name and self.image_host_upload_preset
            ),
            "api_host": self.api_host,
            "api_port": self.api_port,
        }
