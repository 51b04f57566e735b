"""
Centralized settings configuration using Pydantic BaseSettings.

All tester options are defined here with types, defaults, and validation.
Every variable is read with the ``RESTIQO_`` prefix (``RESTIQO_MOUNT_PATH``,
``RESTIQO_STORAGE_PATH`` ...); the host port is also read from plain ``PORT``.

Usage:
    from backend.settings import get_settings, Settings

    settings = get_settings()
    print(settings.auto_collection_name)

    # Tests / embedding with explicit values
    settings = Settings(storage_path=tmp_path / "db.json", _env_file=None)
"""

import re
import tomllib
from functools import lru_cache
from pathlib import Path
from typing import List, Optional

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_AUTO_COLLECTION_NAME = "Auto-Captured"


class Settings(BaseSettings):
    """Tester settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="RESTIQO_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    # -------------------------------------------------------------------------
    # Host
    # -------------------------------------------------------------------------
    environment: str = Field(
        default="development",
        description="Runtime environment: development, staging, production, test",
    )
    port: int = Field(
        default=8000,
        validation_alias=AliasChoices("port", "restiqo_port"),
        description="Port the host server listens on (seeds BASE_URL)",
    )

    # -------------------------------------------------------------------------
    # Mounting
    # -------------------------------------------------------------------------
    mount_path: str = Field(
        default="/api-tester",
        description="Path the tester API is mounted under",
    )
    ignore_segments: List[str] = Field(
        default_factory=lambda: ["api", "v1"],
        description="Path segments the UI ignores when grouping requests",
    )

    # -------------------------------------------------------------------------
    # Storage
    # -------------------------------------------------------------------------
    storage_path: Path = Field(
        default=Path(".restiqo") / "api-tester-db.json",
        description="JSON file holding auto-captured data and history",
    )
    customization_path: Optional[Path] = Field(
        default=None,
        description="JSON file holding user edits (kept in memory when unset)",
    )
    reset_cache_on_startup: bool = Field(
        default=False,
        description="Empty the auto-captured cache before the startup capture",
    )

    # -------------------------------------------------------------------------
    # Capture
    # -------------------------------------------------------------------------
    auto_capture: bool = Field(
        default=True,
        description="Install the traffic interceptor on the host app",
    )
    capture_response: bool = Field(
        default=True,
        description="Record response bodies in history",
    )
    exclude_paths: List[str] = Field(
        default_factory=list,
        description="Path prefixes the interceptor never records",
    )
    user_id: str = Field(
        default="system",
        description="Owner of captured collections and history",
    )
    project_name: Optional[str] = Field(
        default=None,
        description="Name of the auto-captured collection",
    )

    # -------------------------------------------------------------------------
    # Validators
    # -------------------------------------------------------------------------
    @field_validator("environment")
    @classmethod
    def validate_environment(cls, v: str) -> str:
        """Ensure environment is a valid value."""
        valid_environments = {"development", "staging", "production", "test"}
        if v.lower() not in valid_environments:
            raise ValueError(
                f"Invalid environment '{v}'. Must be one of: {valid_environments}"
            )
        return v.lower()

    @field_validator("mount_path")
    @classmethod
    def normalize_mount_path(cls, v: str) -> str:
        """Mount path always starts with a slash and never ends with one."""
        v = "/" + v.strip().strip("/")
        return v if v != "/" else "/api-tester"

    # -------------------------------------------------------------------------
    # Helper Properties
    # -------------------------------------------------------------------------
    @property
    def auto_collection_name(self) -> str:
        """Name of the system-owned collection regenerated from route scans."""
        if self.project_name:
            return self.project_name
        return project_name_from_pyproject() or DEFAULT_AUTO_COLLECTION_NAME

    @property
    def base_url(self) -> str:
        return f"http://localhost:{self.port}"

    @property
    def is_development(self) -> bool:
        """Check if running in development environment."""
        return self.environment == "development"


def project_name_from_pyproject(root: Optional[Path] = None) -> Optional[str]:
    """
    Derive a display name from ``[project].name`` in ``pyproject.toml``.

    ``my-cool_service`` becomes ``My Cool Service``. Returns None when the
    file is missing, unreadable, or has no project name.
    """
    path = (root or Path.cwd()) / "pyproject.toml"
    try:
        with path.open("rb") as fh:
            name = tomllib.load(fh).get("project", {}).get("name")
    except (OSError, tomllib.TOMLDecodeError):
        return None
    if not isinstance(name, str) or not name.strip():
        return None
    words = re.split(r"[-_.\s]+", name.strip())
    return " ".join(w[:1].upper() + w[1:] for w in words if w)


@lru_cache
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Uses lru_cache to ensure settings are only loaded once.
    For testing, you can clear the cache with get_settings.cache_clear().

    Returns:
        Settings: Tester settings instance
    """
    return Settings()
