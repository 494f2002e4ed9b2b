"""Tests for HLS playlist helpers used by offline downloads."""

from __future__ import annotations

import pytest

from otakuhub.infrastructure.downloads.hls import (
    VariantStream,
    best_variant,
    is_master_playlist,
    parse_segments,
    parse_variants,
)

_MASTER_URL = "https://cdn.example/hls/ep1/master.m3u8?t=abc"

_MASTER = """#EXTM3U
#EXT-X-STREAM-INF:BANDWIDTH=800000,RESOLUTION=640x360
index-360.m3u8
#EXT-X-STREAM-INF:PROGRAM-ID=1,BANDWIDTH=2500000,RESOLUTION=1920x1080
/hls/ep1/index-1080.m3u8?t=abc
#EXT-X-STREAM-INF:BANDWIDTH=1400000,RESOLUTION=1280x720
https://other.example/index-720.m3u8
"""

_MEDIA = """#EXTM3U
#EXT-X-TARGETDURATION:10
#EXTINF:10.0,
seg-1.ts
#EXTINF:10.0,
seg-2.ts?token=1

#EXTINF:4.2,
https://cdn2.example/seg-3.ts
#EXT-X-ENDLIST
"""


class TestMasterPlaylist:
    def test_detection(self) -> None:
        assert is_master_playlist(_MASTER)
        assert not is_master_playlist(_MEDIA)

    def test_variants_resolved_against_playlist_url(self) -> None:
        variants = parse_variants(_MASTER, _MASTER_URL)
        assert variants == [
            VariantStream("https://cdn.example/hls/ep1/index-360.m3u8", 800000, 360),
            VariantStream(
                "https://cdn.example/hls/ep1/index-1080.m3u8?t=abc", 2500000, 1080
            ),
            VariantStream("https://other.example/index-720.m3u8", 1400000, 720),
        ]

    def test_best_variant_is_highest_bandwidth(self) -> None:
        best = best_variant(parse_variants(_MASTER, _MASTER_URL))
        assert best is not None
        assert best.height == 1080

    def test_best_variant_tie_broken_by_resolution(self) -> None:
        low = VariantStream("a", 1000, 480)
        high = VariantStream("b", 1000, 720)
        assert best_variant([low, high]) is high

    def test_best_variant_empty(self) -> None:
        assert best_variant([]) is None


class TestMediaPlaylist:
    def test_segments_in_order(self) -> None:
        url = "https://cdn.example/hls/ep1/index-1080.m3u8"
        assert parse_segments(_MEDIA, url) == [
            "https://cdn.example/hls/ep1/seg-1.ts",
            "https://cdn.example/hls/ep1/seg-2.ts?token=1",
            "https://cdn2.example/seg-3.ts",
        ]

    def test_encrypted_playlist_rejected(self) -> None:
        content = '#EXTM3U\n#EXT-X-KEY:METHOD=AES-128,URI="key.bin"\n#EXTINF:10,\na.ts\n'
        with pytest.raises(ValueError, match="encrypted"):
            parse_segments(content, "https://cdn.example/x.m3u8")
