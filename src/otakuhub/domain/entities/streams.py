"""Domain entities for episode stream catalogs and playback attempts.

Pure value objects without I/O.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


class AudioTrack(str, Enum):
    """Audio version of an episode, each with its own server list."""

    ORIGINAL = "original"
    DUBBED = "dubbed"

    @property
    def other(self) -> AudioTrack:
        return AudioTrack.DUBBED if self is AudioTrack.ORIGINAL else AudioTrack.ORIGINAL

    @property
    def wire_name(self) -> str:
        """Short name used by the upstream API ("sub" / "dub")."""
        return "sub" if self is AudioTrack.ORIGINAL else "dub"

    @classmethod
    def parse(cls, value: str) -> AudioTrack:
        """Accept both the long names and the upstream "sub"/"dub" aliases."""
        normalized = value.strip().lower()
        if normalized in ("sub", "original"):
            return cls.ORIGINAL
        if normalized in ("dub", "dubbed"):
            return cls.DUBBED
        raise ValueError(f"Unknown audio track: {value!r}")


class MediaKind(str, Enum):
    HLS = "hls"
    PROGRESSIVE = "progressive"


@dataclass(frozen=True)
class SkipWindow:
    """Intro/outro range in whole seconds from media start."""

    start: int
    end: int

    def contains(self, position: float) -> bool:
        """Half-open membership test: ``start <= position < end``."""
        return self.start <= position < self.end


@dataclass(frozen=True)
class CaptionTrack:
    file_url: str
    label: str = "Unknown"
    kind: str = "captions"  # "captions" | "subtitles"


@dataclass(frozen=True)
class SourceCandidate:
    """A playable source offered by one server.

    ``headers`` belong to ``direct_url`` only. Each CDN enforces its own
    Referer/Origin and rejects headers issued for another candidate.
    """

    direct_url: str
    proxy_url: str | None = None
    media_kind: MediaKind = MediaKind.HLS
    headers: dict[str, str] = field(default_factory=dict)
    quality_label: str = "auto"

    @property
    def has_proxy(self) -> bool:
        return bool(self.proxy_url)

    @property
    def has_direct(self) -> bool:
        return bool(self.direct_url)


@dataclass(frozen=True)
class ServerEntry:
    """One named streaming provider for a given audio track."""

    name: str
    audio_track: AudioTrack
    sources: tuple[SourceCandidate, ...] = ()
    captions: tuple[CaptionTrack, ...] = ()
    intro: SkipWindow | None = None
    outro: SkipWindow | None = None

    @property
    def is_empty(self) -> bool:
        return not self.sources


@dataclass(frozen=True)
class StreamCatalog:
    """All servers for one episode and one audio track."""

    episode_id: str
    audio_track: AudioTrack
    servers: tuple[ServerEntry, ...] = ()

    @property
    def is_empty(self) -> bool:
        return not self.servers

    @classmethod
    def empty(cls, episode_id: str, audio_track: AudioTrack) -> StreamCatalog:
        return cls(episode_id=episode_id, audio_track=audio_track)


@dataclass(frozen=True)
class EpisodeCatalogs:
    """Original and dubbed catalogs fetched for one playback request."""

    original: StreamCatalog
    dubbed: StreamCatalog

    def for_track(self, track: AudioTrack) -> StreamCatalog:
        return self.original if track is AudioTrack.ORIGINAL else self.dubbed

    @property
    def episode_id(self) -> str:
        return self.original.episode_id

    @property
    def is_empty(self) -> bool:
        return self.original.is_empty and self.dubbed.is_empty


@dataclass(frozen=True)
class PlayableSource:
    """URL + headers handed to the media player for a single attempt."""

    url: str
    headers: dict[str, str] = field(default_factory=dict)
    media_kind: MediaKind = MediaKind.HLS
    via_proxy: bool = False
    server_name: str = ""
    quality_label: str = "auto"
