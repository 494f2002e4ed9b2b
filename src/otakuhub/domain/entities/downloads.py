"""Domain entities for the local episode download queue."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

from otakuhub.domain.entities.streams import AudioTrack


class DownloadStatus(str, Enum):
    PENDING = "pending"
    DOWNLOADING = "downloading"
    COMPLETED = "completed"
    FAILED = "failed"
    PAUSED = "paused"


def download_key(anime_slug: str, episode_number: int, track: AudioTrack) -> str:
    """Stable key for one episode/track download."""
    return f"{anime_slug}_ep{episode_number}_{track.wire_name}"


@dataclass(frozen=True)
class DownloadedSubtitle:
    label: str
    language: str
    file_path: str


@dataclass(frozen=True)
class DownloadItem:
    """A queued or finished episode download."""

    anime_slug: str
    anime_title: str
    episode_id: str
    episode_number: int
    audio_track: AudioTrack
    created_at: datetime
    status: DownloadStatus = DownloadStatus.PENDING
    progress: float = 0.0  # 0.0 .. 1.0
    file_path: str | None = None
    stream_url: str | None = None
    file_size: int | None = None
    error_message: str | None = None
    subtitles: tuple[DownloadedSubtitle, ...] = field(default_factory=tuple)

    @property
    def key(self) -> str:
        return download_key(self.anime_slug, self.episode_number, self.audio_track)

    @property
    def is_active(self) -> bool:
        return self.status in (DownloadStatus.PENDING, DownloadStatus.DOWNLOADING)
