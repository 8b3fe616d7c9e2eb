"""Validated settings for the addon process.

``AppConfig`` is what the rest of the code reads; ``EnvOverrides`` only
collects ``CORSARO_*`` variables so that ``load.py`` can layer them.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Literal, Optional

from pydantic import (
    AliasChoices,
    AliasPath,
    BaseModel,
    Field,
    field_validator,
    model_validator,
)
from pydantic_settings import BaseSettings, SettingsConfigDict

Environment = Literal["dev", "test", "prod"]
LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR"]
LogFormat = Literal["json", "console"]
CacheBackend = Literal["memory", "diskcache"]
TtlClass = Literal["streams", "empty", "metadata"]


def _as_path(value: Any) -> Path:
    # "~" is expanded; the directory itself is created by the cache adapter.
    if isinstance(value, (str, Path)):
        return Path(value).expanduser()
    raise TypeError(f"not a path: {value!r}")


class CacheConfig(BaseModel):
    """Where responses are cached and how long each entry class lives."""

    backend: CacheBackend = Field(
        default="memory",
        description="Cache backend: 'memory' (in-process) or 'diskcache' (SQLite).",
    )
    directory: Path = Field(
        default=Path("./.cache/corsaro"),
        validation_alias=AliasChoices("directory", "dir"),
        description="Diskcache SQLite DB path (only when backend=diskcache).",
    )
    max_entries: int = Field(
        default=5_000,
        description="Upper bound of entries kept by the memory backend.",
    )
    max_concurrent: int = Field(
        default=10,
        description="Max parallel diskcache operations (semaphore limit).",
    )

    streams_ttl_seconds: int = Field(
        default=1800,
        description="TTL for resolved stream lists.",
    )
    empty_ttl_seconds: int = Field(
        default=300,
        description="TTL for empty or partial results.",
    )
    metadata_ttl_seconds: int = Field(
        default=86_400,
        description="TTL for TMDB metadata and the Kitsu mapping.",
    )

    @field_validator("directory", mode="before")
    @classmethod
    def _validate_directory(cls, v: Any) -> Path:
        return _as_path(v)

    @field_validator(
        "streams_ttl_seconds",
        "empty_ttl_seconds",
        "metadata_ttl_seconds",
    )
    @classmethod
    def _validate_ttl(cls, v: int) -> int:
        if v < 0:
            raise ValueError("cache TTLs must be >= 0")
        return v

    def ttl_for(self, ttl_class: TtlClass) -> int:
        return {
            "streams": self.streams_ttl_seconds,
            "empty": self.empty_ttl_seconds,
            "metadata": self.metadata_ttl_seconds,
        }[ttl_class]


class TorznabIndexerConfig(BaseModel):
    """One Torznab endpoint exposed as a provider."""

    name: str
    url: str
    api_key: str = ""
    scope: Literal["local", "global"] = "local"
    categories: tuple[int, ...] = ()


class ProvidersConfig(BaseModel):
    """Which torrent indexes are searched."""

    knaben_enabled: bool = Field(default=True)
    x1337_enabled: bool = Field(
        default=True,
        validation_alias=AliasChoices("x1337_enabled", "1337x_enabled"),
    )
    timeout_seconds: float = Field(
        default=8.0,
        description="HTTP timeout for a single provider page fetch.",
    )
    torznab: list[TorznabIndexerConfig] = Field(default_factory=list)


class PipelineConfig(BaseModel):
    """Search and request-level limits."""

    max_queries: int = Field(
        default=8,
        description="Maximum number of search query variants per request.",
    )
    provider_timeout_seconds: float = Field(
        default=15.0,
        description="Per (query, provider) task timeout.",
    )
    request_deadline_seconds: float = Field(
        default=25.0,
        description="Overall budget for one stream request.",
    )
    extra_trackers: list[str] = Field(
        default_factory=list,
        description="Trackers appended to every magnet on top of the built-in list.",
    )

    @field_validator("max_queries")
    @classmethod
    def _validate_max_queries(cls, v: int) -> int:
        if v < 1:
            raise ValueError("max_queries must be >= 1")
        return v

    @field_validator("provider_timeout_seconds", "request_deadline_seconds")
    @classmethod
    def _validate_positive(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("timeouts must be > 0")
        return v


class DebridConfig(BaseModel):
    """Real-Debrid access and cache resolver tuning."""

    base_url: str = Field(default="https://api.real-debrid.com/rest/1.0")
    timeout_seconds: float = Field(default=20.0)
    candidate_budget: int = Field(
        default=12,
        description="Maximum number of ranked candidates checked per request.",
    )
    min_interval_seconds: float = Field(
        default=0.6,
        description="Minimum spacing between two candidates for one token.",
    )
    rate_limit_cooldown_seconds: float = Field(default=2.0)
    min_video_mb: int = Field(
        default=50,
        description="Files at or below this size are never selected.",
    )
    series_min_mb: int = Field(default=50)
    movie_min_mb: int = Field(default=200)
    cleanup_discarded: bool = Field(
        default=False,
        description="Delete torrents that did not turn into a stream.",
    )

    @field_validator("min_interval_seconds", "rate_limit_cooldown_seconds")
    @classmethod
    def _validate_non_negative(cls, v: float) -> float:
        if v < 0:
            raise ValueError("pacing intervals must be >= 0")
        return v


class AppConfig(BaseModel):
    """Final, validated configuration.

    Flat fields (``log_level``, ``http_timeout_seconds``...) also accept
    their sectioned YAML spelling (``logging.level``, ``http.timeout_seconds``),
    so a merged document validates in one step.
    """

    app_name: str = Field(default="corsaro")
    environment: Environment = Field(
        default="dev",
        description="dev/test log to the console by default, prod logs JSON.",
    )

    http_timeout_seconds: float = Field(
        default=10.0,
        validation_alias=AliasChoices(
            "http_timeout_seconds", AliasPath("http", "timeout_seconds")
        ),
        description="Timeout of the shared httpx client.",
    )
    http_user_agent: str = Field(
        default="Corsaro/0.1.0",
        validation_alias=AliasChoices(
            "http_user_agent", AliasPath("http", "user_agent")
        ),
        description="User-Agent sent to JSON APIs; scrapers use a browser UA.",
    )

    log_level: LogLevel = Field(
        default="INFO",
        validation_alias=AliasChoices("log_level", AliasPath("logging", "level")),
    )
    log_format: Optional[LogFormat] = Field(
        default=None,
        validation_alias=AliasChoices("log_format", AliasPath("logging", "format")),
    )

    # Used when a user configuration blob carries no TMDB key.
    tmdb_api_key: str | None = Field(default=None)

    cache: CacheConfig = Field(default_factory=CacheConfig)
    providers: ProvidersConfig = Field(default_factory=ProvidersConfig)
    pipeline: PipelineConfig = Field(default_factory=PipelineConfig)
    debrid: DebridConfig = Field(default_factory=DebridConfig)

    @field_validator("http_timeout_seconds")
    @classmethod
    def _check_http_timeout(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("http_timeout_seconds must be positive")
        return v

    @model_validator(mode="after")
    def _pick_log_format(self) -> AppConfig:
        if self.log_format is None:
            self.log_format = "json" if self.environment == "prod" else "console"
        return self


class EnvOverrides(BaseSettings):
    """``CORSARO_*`` variables, flat and all optional.

    e.g. ``CORSARO_LOG_LEVEL``, ``CORSARO_TMDB_API_KEY``,
    ``CORSARO_CACHE_DIR``, ``CORSARO_REQUEST_DEADLINE_SECONDS``.
    """

    model_config = SettingsConfigDict(
        env_prefix="CORSARO_",
        extra="ignore",
        case_sensitive=False,
    )

    app_name: Optional[str] = None
    environment: Optional[Environment] = None
    tmdb_api_key: Optional[str] = None

    http_timeout_seconds: Optional[float] = None
    http_user_agent: Optional[str] = None
    log_level: Optional[LogLevel] = None
    log_format: Optional[LogFormat] = None

    cache_backend: Optional[CacheBackend] = None
    cache_dir: Optional[Path] = None

    max_queries: Optional[int] = None
    provider_timeout_seconds: Optional[float] = None
    request_deadline_seconds: Optional[float] = None
    candidate_budget: Optional[int] = None
    debrid_min_interval_seconds: Optional[float] = None
    debrid_cleanup_discarded: Optional[bool] = None

    @field_validator("cache_dir", mode="before")
    @classmethod
    def _expand_cache_dir(cls, v: Any) -> Any:
        return None if v is None else _as_path(v)

    def to_update_dict(self) -> dict[str, Any]:
        """Only the variables that are actually set."""
        return self.model_dump(exclude_none=True)
