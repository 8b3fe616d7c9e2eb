"""Per-user configuration carried in the addon URL.

Stremio installs the addon with a path segment holding base64-encoded
JSON, for example ``{"rd": "...", "tmdb": "...", "filters": {...}}``.
"""

from __future__ import annotations

import base64
import binascii
import json

import structlog
from pydantic import BaseModel, ConfigDict, Field, ValidationError

log = structlog.get_logger(__name__)


class UserFilters(BaseModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    only_ita: bool = Field(default=False, alias="onlyIta")
    no_4k: bool = Field(default=False, alias="no4k")
    no_cam: bool = Field(default=False, alias="noCam")


class UserConfig(BaseModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    rd: str = Field(default="", description="Real-Debrid API token.")
    tmdb: str = Field(default="", description="TMDB API key.")
    filters: UserFilters = Field(default_factory=UserFilters)

    @property
    def is_complete(self) -> bool:
        return bool(self.rd and self.tmdb)

    def with_tmdb_fallback(self, tmdb_api_key: str | None) -> "UserConfig":
        """Fill a missing TMDB key from the server configuration."""
        if self.tmdb or not tmdb_api_key:
            return self
        return self.model_copy(update={"tmdb": tmdb_api_key})


def _b64decode(blob: str) -> bytes:
    padded = blob + "=" * (-len(blob) % 4)
    if "-" in blob or "_" in blob:
        return base64.urlsafe_b64decode(padded)
    return base64.b64decode(padded)


def decode_user_config(blob: str) -> UserConfig:
    """Decode a configuration path segment.

    Standard and URL-safe base64 are accepted, with or without padding.
    Anything that does not decode to a JSON object yields an empty
    ``UserConfig``.
    """
    if not blob:
        return UserConfig()
    try:
        data = json.loads(_b64decode(blob).decode("utf-8"))
    except (binascii.Error, ValueError):
        log.info("user_config_undecodable", length=len(blob))
        return UserConfig()
    if not isinstance(data, dict):
        log.info("user_config_not_object")
        return UserConfig()
    if not isinstance(data.get("filters"), dict):
        data.pop("filters", None)
    try:
        return UserConfig.model_validate(data)
    except ValidationError:
        log.info("user_config_invalid")
        return UserConfig()


def encode_user_config(config: UserConfig) -> str:
    """Inverse of ``decode_user_config`` (URL-safe, unpadded)."""
    raw = config.model_dump_json(by_alias=True).encode("utf-8")
    return base64.urlsafe_b64encode(raw).decode("ascii").rstrip("=")
