"""Pydantic configuration models with validation."""

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
TrackName = Literal["original", "dubbed"]


def _normalize_path(value: Any) -> Path:
    """
    Normalize a path-like value without causing filesystem side-effects.

    This function MUST NOT create directories or files.
    """
    if isinstance(value, Path):
        return value.expanduser()
    if isinstance(value, str):
        return Path(value).expanduser()
    raise TypeError(f"Expected path-like value, got: {type(value)!r}")


class ApiConfig(BaseModel):
    """Remote streaming-metadata API (YAML section: api.*)."""

    base_url: str = Field(
        default="https://hianime-api-b6ix.onrender.com",
        description="Base URL of the HiAnime scraping API.",
    )
    include_proxy: bool = Field(
        default=True,
        description="Ask the API for proxy URLs (tried before direct CDN URLs).",
    )

    @field_validator("base_url")
    @classmethod
    def _validate_base_url(cls, v: str) -> str:
        v = v.strip().rstrip("/")
        if not v.startswith(("http://", "https://")):
            raise ValueError("api.base_url must be an http(s) URL")
        return v


class PlaybackConfig(BaseModel):
    """Source fallback tuning (YAML section: playback.*).

    The retry limits were tuned against the upstream's failure modes;
    they are knobs, not contracts.
    """

    max_retries_per_server: int = Field(
        default=2,
        description="Failed candidate attempts before a server is given up.",
    )
    max_total_servers: int = Field(
        default=6,
        description="Servers given up before the whole episode load fails.",
    )
    open_timeout_seconds: float = Field(
        default=20.0,
        description="Timeout for opening one playback candidate.",
    )
    start_threshold_seconds: float = Field(
        default=2.0,
        description="Buffered seconds that count as a successful start.",
    )
    preferred_track: TrackName = Field(
        default="original",
        description="Audio track tried first.",
    )

    @field_validator("max_retries_per_server", "max_total_servers")
    @classmethod
    def _validate_positive_int(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("retry limits must be > 0")
        return v

    @field_validator("open_timeout_seconds")
    @classmethod
    def _validate_open_timeout(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("open_timeout_seconds must be > 0")
        return v

    @field_validator("start_threshold_seconds")
    @classmethod
    def _validate_threshold(cls, v: float) -> float:
        if v < 0:
            raise ValueError("start_threshold_seconds must be >= 0")
        return v


class DownloadsConfig(BaseModel):
    """Local download queue (YAML section: downloads.*)."""

    directory: Path = Field(
        default=Path("./downloads"),
        description="Where episode files and their captions are written.",
    )

    @field_validator("directory", mode="before")
    @classmethod
    def _validate_directory(cls, v: Any) -> Path:
        return _normalize_path(v)


class AppConfig(BaseModel):
    """
    Canonical application configuration (validated, final).

    Note:
    - YAML is expected to be sectioned (api/http/playback/downloads/logging/cache).
    - Environment variables are handled by EnvOverrides(BaseSettings) to allow strict
      precedence control (defaults < YAML < ENV < CLI) in load.py.
    """

    # General
    app_name: str = Field(default="otakuhub", description="Application name.")
    environment: Environment = Field(
        default="dev",
        description="Runtime environment (affects defaults like log format).",
    )

    api: ApiConfig = Field(default_factory=ApiConfig)
    playback: PlaybackConfig = Field(default_factory=PlaybackConfig)
    downloads: DownloadsConfig = Field(default_factory=DownloadsConfig)

    # HTTP client (YAML section: http.*)
    http_timeout_seconds: float = Field(
        default=30.0,
        validation_alias=AliasChoices(
            "http_timeout_seconds",
            AliasPath("http", "timeout_seconds"),
        ),
        description="HTTP timeout in seconds for API, caption and media requests.",
    )
    http_user_agent: str = Field(
        default="Mozilla/5.0 (Linux; Android 10; K) AppleWebKit/537.36",
        validation_alias=AliasChoices(
            "http_user_agent",
            AliasPath("http", "user_agent"),
        ),
        description="User-Agent for outgoing HTTP requests.",
    )
    http_max_retries: int = Field(
        default=3,
        validation_alias=AliasChoices(
            "http_max_retries",
            AliasPath("http", "max_retries"),
        ),
        description="Retries for 429/502/503/504 API responses.",
    )

    # Logging (YAML section: logging.*)
    log_level: LogLevel = Field(
        default="INFO",
        validation_alias=AliasChoices(
            "log_level",
            AliasPath("logging", "level"),
        ),
        description="Log level.",
    )
    log_format: Optional[LogFormat] = Field(
        default=None,
        validation_alias=AliasChoices(
            "log_format",
            AliasPath("logging", "format"),
        ),
        description=(
            "Log renderer format (console/json). If unset, derived from environment."
        ),
    )

    # Download records store (YAML section: cache.*)
    cache_dir: Path = Field(
        default=Path("./.cache/otakuhub"),
        validation_alias=AliasChoices(
            "cache_dir",
            AliasPath("cache", "dir"),
        ),
        description="Diskcache directory for download records.",
    )

    @field_validator("cache_dir", mode="before")
    @classmethod
    def _validate_paths(cls, v: Any) -> Path:
        return _normalize_path(v)

    @field_validator("http_timeout_seconds")
    @classmethod
    def _validate_http_timeout(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("http_timeout_seconds must be > 0")
        return v

    @field_validator("http_max_retries")
    @classmethod
    def _validate_http_retries(cls, v: int) -> int:
        if v < 0:
            raise ValueError("http_max_retries must be >= 0")
        return v

    @model_validator(mode="after")
    def _derive_defaults(self) -> "AppConfig":
        # Default log format: console in dev/test, json in prod.
        if self.log_format is None:
            self.log_format = "json" if self.environment == "prod" else "console"
        return self


class EnvOverrides(BaseSettings):
    """
    Environment-variable overrides (all optional).

    load.py creates EnvOverrides() to read OTAKUHUB_* variables,
    converts to dict of set values, merges into YAML/defaults,
    then validates AppConfig.

    Supported env var examples (flat, explicit):
    - OTAKUHUB_API_BASE_URL
    - OTAKUHUB_HTTP_TIMEOUT_SECONDS
    - OTAKUHUB_PLAYBACK_MAX_TOTAL_SERVERS
    - OTAKUHUB_LOG_LEVEL
    """

    model_config = SettingsConfigDict(
        env_prefix="OTAKUHUB_",
        extra="ignore",
        case_sensitive=False,
    )

    app_name: Optional[str] = None
    environment: Optional[Environment] = None

    api_base_url: Optional[str] = None
    api_include_proxy: Optional[bool] = None

    http_timeout_seconds: Optional[float] = None
    http_user_agent: Optional[str] = None
    http_max_retries: Optional[int] = None

    playback_max_retries_per_server: Optional[int] = None
    playback_max_total_servers: Optional[int] = None
    playback_open_timeout_seconds: Optional[float] = None
    playback_start_threshold_seconds: Optional[float] = None
    playback_preferred_track: Optional[TrackName] = None

    downloads_directory: Optional[Path] = None

    log_level: Optional[LogLevel] = None
    log_format: Optional[LogFormat] = None

    cache_dir: Optional[Path] = None

    @field_validator("downloads_directory", "cache_dir", mode="before")
    @classmethod
    def _validate_paths(cls, v: Any) -> Any:
        if v is None:
            return None
        return _normalize_path(v)

    def to_update_dict(self) -> dict[str, Any]:
        """
        Return only values that were actually provided (non-None), for merging.
        """
        return self.model_dump(exclude_none=True)
