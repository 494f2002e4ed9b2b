"""Wire models for the HiAnime streaming endpoint.

Validated at the boundary: a missing required field is a fetch failure,
not a silently defaulted value.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class _WireModel(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class TimeRangePayload(_WireModel):
    start: int
    end: int

    @model_validator(mode="after")
    def _check_order(self) -> "TimeRangePayload":
        if self.start < 0 or self.end < self.start:
            raise ValueError(f"invalid time range {self.start}..{self.end}")
        return self


class SkipsPayload(_WireModel):
    intro: TimeRangePayload | None = None
    outro: TimeRangePayload | None = None


class SubtitlePayload(_WireModel):
    file: str
    label: str = "Unknown"
    kind: str = "captions"


class SourcePayload(_WireModel):
    file: str = ""
    proxy_url: str | None = None
    type: str = "hls"
    quality: str = "auto"
    is_m3u8: bool | None = Field(default=None, alias="isM3U8")
    host: str = ""
    headers: dict[str, str] = Field(default_factory=dict)

    @field_validator("file", mode="before")
    @classmethod
    def _none_file_to_empty(cls, v: object) -> object:
        return "" if v is None else v


class StreamPayload(_WireModel):
    name: str = ""
    server_name: str
    server_type: str = ""
    sources: list[SourcePayload]
    subtitles: list[SubtitlePayload] = Field(default_factory=list)
    skips: SkipsPayload | None = None
    headers: dict[str, str] = Field(default_factory=dict)


class StreamResponsePayload(_WireModel):
    success: bool
    episode_id: str = ""
    server_type: str = ""
    total_streams: int = 0
    streams: list[StreamPayload]

    @field_validator("episode_id", mode="before")
    @classmethod
    def _coerce_episode_id(cls, v: object) -> object:
        return str(v) if isinstance(v, int) else v
