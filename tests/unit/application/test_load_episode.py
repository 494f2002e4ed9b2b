"""Tests for LoadEpisodeUseCase (concurrent per-track catalog loading)."""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from unittest.mock import AsyncMock

import pytest

from otakuhub.application.use_cases.load_episode import LoadEpisodeUseCase
from otakuhub.domain.entities import (
    AudioTrack,
    CatalogFetchFailed,
    NoStreamsAvailable,
    ServerEntry,
    SourceCandidate,
    StreamCatalog,
)

_EP = "frieren-18542?ep=107257"


def _catalog(track: AudioTrack, servers: int = 1) -> StreamCatalog:
    return StreamCatalog(
        episode_id=_EP,
        audio_track=track,
        servers=tuple(
            ServerEntry(
                name=f"hd-{i}",
                audio_track=track,
                sources=(SourceCandidate(direct_url=f"https://cdn/{track.value}/{i}"),),
            )
            for i in range(servers)
        ),
    )


def _source(side_effect: Callable) -> AsyncMock:
    source = AsyncMock()
    source.fetch_catalog = AsyncMock(side_effect=side_effect)
    return source


class TestExecute:
    async def test_loads_both_tracks(self) -> None:
        async def fetch(episode_id, track, *, include_proxy=True):
            return _catalog(track, servers=2 if track is AudioTrack.ORIGINAL else 1)

        source = _source(fetch)
        uc = LoadEpisodeUseCase(source=source, include_proxy=False)

        catalogs = await uc.execute(_EP)

        assert len(catalogs.original.servers) == 2
        assert len(catalogs.dubbed.servers) == 1
        assert source.fetch_catalog.await_count == 2
        for call in source.fetch_catalog.await_args_list:
            assert call.kwargs["include_proxy"] is False

    async def test_include_proxy_override(self) -> None:
        async def fetch(episode_id, track, *, include_proxy=True):
            return _catalog(track)

        source = _source(fetch)
        await LoadEpisodeUseCase(source=source).execute(_EP, include_proxy=False)

        assert all(
            c.kwargs["include_proxy"] is False
            for c in source.fetch_catalog.await_args_list
        )

    async def test_fetches_run_concurrently(self) -> None:
        dubbed_started = asyncio.Event()

        async def fetch(episode_id, track, *, include_proxy=True):
            if track is AudioTrack.DUBBED:
                dubbed_started.set()
            else:
                # Deadlocks if the dubbed fetch is only started afterwards.
                await dubbed_started.wait()
            return _catalog(track)

        uc = LoadEpisodeUseCase(source=_source(fetch))

        catalogs = await asyncio.wait_for(uc.execute(_EP), timeout=1.0)

        assert not catalogs.is_empty

    async def test_failed_track_degrades_to_empty(self) -> None:
        async def fetch(episode_id, track, *, include_proxy=True):
            if track is AudioTrack.ORIGINAL:
                raise CatalogFetchFailed(track, "HTTP 500")
            return _catalog(track)

        catalogs = await LoadEpisodeUseCase(source=_source(fetch)).execute(_EP)

        assert catalogs.original.is_empty
        assert catalogs.original.audio_track is AudioTrack.ORIGINAL
        assert len(catalogs.dubbed.servers) == 1

    async def test_timeout_degrades_to_empty(self) -> None:
        async def fetch(episode_id, track, *, include_proxy=True):
            if track is AudioTrack.DUBBED:
                await asyncio.sleep(10)
            return _catalog(track)

        uc = LoadEpisodeUseCase(source=_source(fetch), fetch_timeout=0.05)

        catalogs = await uc.execute(_EP)

        assert catalogs.dubbed.is_empty
        assert not catalogs.original.is_empty

    async def test_both_empty_raises_no_streams(self) -> None:
        async def fetch(episode_id, track, *, include_proxy=True):
            return StreamCatalog.empty(episode_id, track)

        with pytest.raises(NoStreamsAvailable):
            await LoadEpisodeUseCase(source=_source(fetch)).execute(_EP)

    async def test_both_failed_raises_no_streams(self) -> None:
        async def fetch(episode_id, track, *, include_proxy=True):
            raise CatalogFetchFailed(track, "network error")

        with pytest.raises(NoStreamsAvailable):
            await LoadEpisodeUseCase(source=_source(fetch)).execute(_EP)

    @pytest.mark.parametrize("episode_id", ["", "   "])
    async def test_blank_episode_id(self, episode_id: str) -> None:
        source = _source(AsyncMock())
        with pytest.raises(ValueError):
            await LoadEpisodeUseCase(source=source).execute(episode_id)
        source.fetch_catalog.assert_not_awaited()

    async def test_cancellation_cancels_both_fetches(self) -> None:
        cancelled: list[AudioTrack] = []
        started = asyncio.Event()
        calls = 0

        async def fetch(episode_id, track, *, include_proxy=True):
            nonlocal calls
            calls += 1
            if calls == 2:
                started.set()
            try:
                await asyncio.sleep(10)
            except asyncio.CancelledError:
                cancelled.append(track)
                raise
            return _catalog(track)

        task = asyncio.create_task(LoadEpisodeUseCase(source=_source(fetch)).execute(_EP))
        await asyncio.wait_for(started.wait(), timeout=1.0)
        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task
        for _ in range(5):
            await asyncio.sleep(0)
        assert sorted(t.value for t in cancelled) == ["dubbed", "original"]
