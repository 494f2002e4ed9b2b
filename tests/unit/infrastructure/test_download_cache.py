"""Tests for CacheDownloadRepository (CachePort-backed download records)."""

from __future__ import annotations

import json
from datetime import datetime, timezone
from unittest.mock import AsyncMock

from otakuhub.domain.entities import (
    AudioTrack,
    DownloadedSubtitle,
    DownloadItem,
    DownloadStatus,
)
from otakuhub.infrastructure.persistence.download_cache import (
    CacheDownloadRepository,
    item_to_dict,
)


def _item(**kwargs) -> DownloadItem:
    defaults = dict(
        anime_slug="frieren-18542",
        anime_title="Frieren",
        episode_id="frieren-18542?ep=107257",
        episode_number=3,
        audio_track=AudioTrack.DUBBED,
        created_at=datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc),
        status=DownloadStatus.COMPLETED,
        progress=1.0,
        file_path="/downloads/frieren-18542_ep3_dub.ts",
        file_size=1234,
        subtitles=(
            DownloadedSubtitle("English", "en", "/downloads/subtitles/x_english.vtt"),
        ),
    )
    defaults.update(kwargs)
    return DownloadItem(**defaults)


class TestSave:
    async def test_writes_json_list_without_ttl(self, mock_cache: AsyncMock) -> None:
        repo = CacheDownloadRepository(mock_cache)

        await repo.save_all([_item()])

        mock_cache.set.assert_awaited_once()
        key, payload = mock_cache.set.call_args[0]
        assert key == "downloads"
        data = json.loads(payload)
        assert data[0]["server_type"] == "dub"
        assert data[0]["status"] == "completed"
        assert data[0]["subtitles"][0]["language"] == "en"
        assert "ttl" not in mock_cache.set.call_args[1]

    async def test_empty_list_deletes_document(self, mock_cache: AsyncMock) -> None:
        await CacheDownloadRepository(mock_cache).save_all([])

        mock_cache.delete.assert_awaited_once_with("downloads")
        mock_cache.set.assert_not_awaited()


class TestLoad:
    async def test_empty_cache(self, mock_cache: AsyncMock) -> None:
        assert await CacheDownloadRepository(mock_cache).load_all() == []

    async def test_roundtrip(self, mock_cache: AsyncMock) -> None:
        item = _item(error_message=None)
        mock_cache.get.return_value = json.dumps([item_to_dict(item)])

        loaded = await CacheDownloadRepository(mock_cache).load_all()

        assert loaded == [item]

    async def test_corrupt_document(self, mock_cache: AsyncMock) -> None:
        mock_cache.get.return_value = "{not json"
        assert await CacheDownloadRepository(mock_cache).load_all() == []

    async def test_corrupt_record_skipped(self, mock_cache: AsyncMock) -> None:
        good = item_to_dict(_item())
        mock_cache.get.return_value = json.dumps([{"anime_slug": "x"}, good])

        loaded = await CacheDownloadRepository(mock_cache).load_all()

        assert [i.key for i in loaded] == ["frieren-18542_ep3_dub"]
