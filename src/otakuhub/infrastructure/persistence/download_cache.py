"""Download record repository backed by CachePort (diskcache)."""

from __future__ import annotations

import json
from datetime import datetime
from typing import Any

import structlog

from otakuhub.domain.entities.downloads import (
    DownloadedSubtitle,
    DownloadItem,
    DownloadStatus,
)
from otakuhub.domain.entities.streams import AudioTrack
from otakuhub.domain.ports.cache import CachePort

log = structlog.get_logger(__name__)

_KEY = "downloads"


def item_to_dict(item: DownloadItem) -> dict[str, Any]:
    return {
        "anime_slug": item.anime_slug,
        "anime_title": item.anime_title,
        "episode_id": item.episode_id,
        "episode_number": item.episode_number,
        "server_type": item.audio_track.wire_name,
        "created_at": item.created_at.isoformat(),
        "status": item.status.value,
        "progress": item.progress,
        "file_path": item.file_path,
        "stream_url": item.stream_url,
        "file_size": item.file_size,
        "error_message": item.error_message,
        "subtitles": [
            {"label": s.label, "language": s.language, "file_path": s.file_path}
            for s in item.subtitles
        ],
    }


def item_from_dict(d: dict[str, Any]) -> DownloadItem:
    return DownloadItem(
        anime_slug=d["anime_slug"],
        anime_title=d.get("anime_title", ""),
        episode_id=d["episode_id"],
        episode_number=int(d["episode_number"]),
        audio_track=AudioTrack.parse(d.get("server_type", "sub")),
        created_at=datetime.fromisoformat(d["created_at"]),
        status=DownloadStatus(d.get("status", "pending")),
        progress=float(d.get("progress", 0.0)),
        file_path=d.get("file_path"),
        stream_url=d.get("stream_url"),
        file_size=d.get("file_size"),
        error_message=d.get("error_message"),
        subtitles=tuple(
            DownloadedSubtitle(
                label=s["label"], language=s["language"], file_path=s["file_path"]
            )
            for s in d.get("subtitles", [])
        ),
    )


class CacheDownloadRepository:
    """Stores the whole download list as one JSON document."""

    def __init__(self, cache: CachePort) -> None:
        self.cache = cache

    async def load_all(self) -> list[DownloadItem]:
        data = await self.cache.get(_KEY)
        if data is None:
            return []
        try:
            raw = json.loads(data)
        except json.JSONDecodeError as e:
            log.error("downloads_deserialize_error", error=str(e))
            return []

        items: list[DownloadItem] = []
        for entry in raw:
            try:
                items.append(item_from_dict(entry))
            except (KeyError, ValueError, TypeError) as e:
                # One corrupt record must not hide the others.
                log.warning("download_record_skipped", error=str(e))
        log.debug("downloads_loaded", count=len(items))
        return items

    async def save_all(self, items: list[DownloadItem]) -> None:
        if not items:
            await self.cache.delete(_KEY)
            log.debug("downloads_cleared")
            return
        await self.cache.set(_KEY, json.dumps([item_to_dict(i) for i in items]))
        log.debug("downloads_saved", count=len(items))
