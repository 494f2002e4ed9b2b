"""Tests for stream, selection and download domain entities."""

from __future__ import annotations

from datetime import datetime, timezone

import pytest

from otakuhub.domain.entities import (
    AudioTrack,
    DownloadItem,
    DownloadStatus,
    FallbackPolicy,
    SelectionPhase,
    SelectionState,
    SkipWindow,
    SourceCandidate,
    StreamCatalog,
    download_key,
)


class TestAudioTrack:
    def test_other(self) -> None:
        assert AudioTrack.ORIGINAL.other is AudioTrack.DUBBED
        assert AudioTrack.DUBBED.other is AudioTrack.ORIGINAL

    @pytest.mark.parametrize(
        ("raw", "expected"),
        [
            ("sub", AudioTrack.ORIGINAL),
            ("original", AudioTrack.ORIGINAL),
            (" DUB ", AudioTrack.DUBBED),
            ("dubbed", AudioTrack.DUBBED),
        ],
    )
    def test_parse_aliases(self, raw: str, expected: AudioTrack) -> None:
        assert AudioTrack.parse(raw) is expected

    def test_parse_rejects_unknown(self) -> None:
        with pytest.raises(ValueError, match="Unknown audio track"):
            AudioTrack.parse("raw")

    def test_wire_name(self) -> None:
        assert AudioTrack.ORIGINAL.wire_name == "sub"
        assert AudioTrack.DUBBED.wire_name == "dub"


class TestSkipWindow:
    def test_half_open(self) -> None:
        window = SkipWindow(30, 120)
        assert not window.contains(29.9)
        assert window.contains(30)
        assert window.contains(119.99)
        assert not window.contains(120)


class TestSourceCandidate:
    def test_route_flags(self) -> None:
        both = SourceCandidate(direct_url="https://cdn/x.m3u8", proxy_url="/proxy?u=x")
        proxy_only = SourceCandidate(direct_url="", proxy_url="/proxy?u=y")
        assert both.has_proxy and both.has_direct
        assert proxy_only.has_proxy and not proxy_only.has_direct

    def test_headers_not_shared_between_instances(self) -> None:
        a = SourceCandidate(direct_url="a")
        b = SourceCandidate(direct_url="b")
        assert a.headers is not b.headers


class TestStreamCatalog:
    def test_empty(self) -> None:
        catalog = StreamCatalog.empty("ep-1", AudioTrack.DUBBED)
        assert catalog.is_empty
        assert catalog.audio_track is AudioTrack.DUBBED


class TestFallbackPolicy:
    def test_defaults(self) -> None:
        policy = FallbackPolicy()
        assert policy.max_retries_per_server == 2
        assert policy.max_total_servers == 6

    @pytest.mark.parametrize(
        "kwargs", [{"max_retries_per_server": 0}, {"max_total_servers": 0}]
    )
    def test_rejects_non_positive(self, kwargs: dict[str, int]) -> None:
        with pytest.raises(ValueError):
            FallbackPolicy(**kwargs)


class TestSelectionState:
    def test_initial_is_idle(self) -> None:
        state = SelectionState()
        assert state.phase is SelectionPhase.IDLE
        assert not state.started
        assert not state.is_terminal


class TestDownloadItem:
    def _item(self, status: DownloadStatus) -> DownloadItem:
        return DownloadItem(
            anime_slug="one-piece-100",
            anime_title="One Piece",
            episode_id="one-piece-100?ep=2142",
            episode_number=1,
            audio_track=AudioTrack.DUBBED,
            created_at=datetime(2026, 1, 1, tzinfo=timezone.utc),
            status=status,
        )

    def test_key(self) -> None:
        assert self._item(DownloadStatus.PENDING).key == "one-piece-100_ep1_dub"
        assert download_key("x", 12, AudioTrack.ORIGINAL) == "x_ep12_sub"

    @pytest.mark.parametrize(
        ("status", "active"),
        [
            (DownloadStatus.PENDING, True),
            (DownloadStatus.DOWNLOADING, True),
            (DownloadStatus.COMPLETED, False),
            (DownloadStatus.FAILED, False),
            (DownloadStatus.PAUSED, False),
        ],
    )
    def test_is_active(self, status: DownloadStatus, active: bool) -> None:
        assert self._item(status).is_active is active
