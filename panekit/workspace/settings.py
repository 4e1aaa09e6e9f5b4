"""User configuration loaded from PANEKIT_* environment variables."""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class PanekitSettings(BaseSettings):
    """panekit settings.

    All fields are read from environment variables with the ``PANEKIT_``
    prefix.  For example, ``PANEKIT_LOG_LEVEL=DEBUG`` maps to ``log_level``.

    Per-workspace configuration (panes, grids, skill roots) lives in the
    manifest, not here.
    """

    model_config = SettingsConfigDict(
        env_prefix="PANEKIT_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # -- Logging ---------------------------------------------------------------
    log_level: str = "WARNING"

    # -- Workspace -------------------------------------------------------------
    manifest_name: str = "PANEKIT.md"
    """File name searched for (walking up from the current directory)."""

    default_grid: str = "default"

    # -- Skills ----------------------------------------------------------------
    global_skills_dir: Path = Path("~/.config/panekit/skills")
    """Shared skills, used by ``skill import/fork/link`` and ``init``."""

    # -- tmux ------------------------------------------------------------------
    tmux_socket_name: str | None = None
    """Run sessions on a dedicated tmux server (``tmux -L``)."""

    @field_validator("global_skills_dir")
    @classmethod
    def _expand_home(cls, value: Path) -> Path:
        return value.expanduser()


def get_settings() -> PanekitSettings:
    """Return a cached settings instance.

    Reads from environment variables and ``.env`` on first call, then returns
    the same object.  Call ``_get_settings_cached.cache_clear()`` in tests to
    force a re-read after overriding env vars.
    """
    return _get_settings_cached()


@lru_cache(maxsize=1)
def _get_settings_cached() -> PanekitSettings:
    return PanekitSettings()
