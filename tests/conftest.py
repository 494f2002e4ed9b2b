"""Shared test fixtures for the OtakuHub test suite."""

from __future__ import annotations

from collections.abc import Callable, Sequence
from unittest.mock import AsyncMock

import pytest

from otakuhub.domain.entities import (
    AudioTrack,
    CaptionTrack,
    EpisodeCatalogs,
    MediaKind,
    ServerEntry,
    SkipWindow,
    SourceCandidate,
    StreamCatalog,
)

EPISODE_ID = "one-piece-100?ep=2142"

# ---------------------------------------------------------------------------
# Domain entity builders
# ---------------------------------------------------------------------------


def _candidate(
    direct: str = "",
    proxy: str | None = None,
    headers: dict[str, str] | None = None,
    kind: MediaKind = MediaKind.HLS,
) -> SourceCandidate:
    return SourceCandidate(
        direct_url=direct,
        proxy_url=proxy,
        media_kind=kind,
        headers=headers if headers is not None else {},
    )


def _server(
    name: str,
    track: AudioTrack,
    *sources: SourceCandidate,
    captions: Sequence[CaptionTrack] = (),
    intro: SkipWindow | None = None,
    outro: SkipWindow | None = None,
) -> ServerEntry:
    return ServerEntry(
        name=name,
        audio_track=track,
        sources=tuple(sources),
        captions=tuple(captions),
        intro=intro,
        outro=outro,
    )


def _catalogs(
    original: Sequence[ServerEntry] = (),
    dubbed: Sequence[ServerEntry] = (),
) -> EpisodeCatalogs:
    return EpisodeCatalogs(
        original=StreamCatalog(EPISODE_ID, AudioTrack.ORIGINAL, tuple(original)),
        dubbed=StreamCatalog(EPISODE_ID, AudioTrack.DUBBED, tuple(dubbed)),
    )


@pytest.fixture()
def make_candidate() -> Callable[..., SourceCandidate]:
    return _candidate


@pytest.fixture()
def make_server() -> Callable[..., ServerEntry]:
    return _server


@pytest.fixture()
def make_catalogs() -> Callable[..., EpisodeCatalogs]:
    return _catalogs


@pytest.fixture()
def scenario_a_catalogs() -> EpisodeCatalogs:
    """Server 0: one proxy-only candidate; server 1: a direct candidate."""
    return _catalogs(
        original=[
            _server("hd-1", AudioTrack.ORIGINAL, _candidate(proxy="https://api/p/1")),
            _server(
                "hd-2",
                AudioTrack.ORIGINAL,
                _candidate(
                    direct="https://cdn-b/master.m3u8",
                    headers={"Referer": "https://cdn-b/"},
                ),
            ),
        ]
    )


@pytest.fixture()
def two_track_catalogs() -> EpisodeCatalogs:
    """Two original servers and one dubbed server, all proxy + direct."""
    return _catalogs(
        original=[
            _server(
                "hd-1",
                AudioTrack.ORIGINAL,
                _candidate(
                    direct="https://cdn-a/s1.m3u8",
                    proxy="https://api/proxy?u=a1",
                    headers={"Referer": "https://cdn-a/"},
                ),
                captions=[
                    CaptionTrack("https://subs/fr.vtt", "French"),
                    CaptionTrack("https://subs/en.vtt", "English"),
                ],
                intro=SkipWindow(30, 120),
                outro=SkipWindow(1300, 1390),
            ),
            _server(
                "hd-2",
                AudioTrack.ORIGINAL,
                _candidate(
                    direct="https://cdn-b/s2.m3u8",
                    proxy="https://api/proxy?u=b1",
                    headers={"Referer": "https://cdn-b/"},
                ),
            ),
        ],
        dubbed=[
            _server(
                "hd-1",
                AudioTrack.DUBBED,
                _candidate(
                    direct="https://cdn-c/d1.m3u8",
                    headers={"Referer": "https://cdn-c/"},
                ),
            ),
        ],
    )


# ---------------------------------------------------------------------------
# Mock port fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def mock_cache() -> AsyncMock:
    """Mock CachePort."""
    cache = AsyncMock()
    cache.get = AsyncMock(return_value=None)
    cache.set = AsyncMock()
    cache.delete = AsyncMock(return_value=True)
    cache.aclose = AsyncMock()
    return cache


@pytest.fixture()
def mock_player() -> AsyncMock:
    """Mock MediaPlayerPort; every open succeeds."""
    player = AsyncMock()
    player.open = AsyncMock(return_value=None)
    player.play = AsyncMock()
    player.pause = AsyncMock()
    player.seek = AsyncMock()
    player.stop = AsyncMock()
    player.aclose = AsyncMock()
    return player
