"""Configuration via Pydantic Settings, loaded from .env file."""

import logging
import os
from dataclasses import dataclass
from functools import cached_property
from pathlib import Path
from typing import Literal

from pydantic import field_validator
from pydantic_settings import BaseSettings

_cfg_logger = logging.getLogger("config")

# Resolve .env path relative to the project root (parent of streamgate/) so
# it works regardless of the working directory the process is launched from.
_PROJECT_ROOT = Path(__file__).resolve().parent.parent


def _resolve_env_file() -> Path:
    """Return an absolute path to the .env file.

    If ``STREAMGATE_ENV_FILE`` is set, use it (resolved relative to the
    project root when not absolute).  Otherwise default to
    ``<project_root>/.env``.
    """
    raw = os.environ.get("STREAMGATE_ENV_FILE", "")
    if raw:
        p = Path(raw)
        return p if p.is_absolute() else _PROJECT_ROOT / p
    return _PROJECT_ROOT / ".env"


@dataclass(frozen=True)
class Credentials:
    """Basic-Auth secrets for the file store, fixed for the process lifetime."""

    user: str
    password: str


class Settings(BaseSettings):
    # Which resolver handles /stream/: "direct" (WebDAV path) or "link"
    # (share link exchanged through the resolution API).
    backend: Literal["direct", "link"] = "direct"

    # WebDAV store
    webdav_url: str = "https://webdav.icedrive.net"
    webdav_user: str = ""
    webdav_pass: str = ""
    listing_enabled: bool = False

    # Share-link resolution API
    link_api_url: str = ""
    link_marker: str = "/s/"
    browser_profile: str = "none"  # see streamgate.profiles
    forward_user_agent: bool = True

    # Relay headers. Empty media_type keeps the upstream Content-Type.
    media_type: str = "video/mp4"
    default_filename: str = "video.mp4"
    error_body_limit: int = 2048

    # -- Upstream timeouts (no retries are attempted) -------------------------

    upstream_connect_timeout_s: float = 10.0
    upstream_read_timeout_s: float = 60.0
    upstream_write_timeout_s: float = 10.0
    upstream_pool_timeout_s: float = 10.0

    # Server
    host: str = "0.0.0.0"
    port: int = 8000
    log_level: Literal["CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"] = "INFO"

    model_config = {
        "env_file": str(_resolve_env_file()),
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }

    @field_validator("log_level", mode="before")
    @classmethod
    def upper_log_level(cls, value):
        return value.upper() if isinstance(value, str) else value

    @cached_property
    def credentials(self) -> Credentials | None:
        if not self.webdav_user or not self.webdav_pass:
            return None
        return Credentials(user=self.webdav_user, password=self.webdav_pass)

    def log_startup_notes(self):
        """Log warnings about missing secrets and impersonation. Called once at startup."""
        if self.backend == "direct" and self.credentials is None:
            _cfg_logger.warning(
                "WEBDAV_USER/WEBDAV_PASS are not set; every request will "
                "fail with a configuration error until they are."
            )
        if self.backend == "link" and not self.link_api_url:
            _cfg_logger.warning("LINK_API_URL is not set; share links cannot be resolved.")
        if self.backend == "link" and self.browser_profile != "none":
            _cfg_logger.warning(
                "BROWSER_PROFILE=%s: link resolution requests impersonate a "
                "desktop browser to get past the upstream's bot checks.",
                self.browser_profile,
            )


settings = Settings()
