"""HLS playlist helpers for offline downloads.

Master playlists list variant streams (``#EXT-X-STREAM-INF``); media
playlists list segments (``#EXTINF``). URIs may be relative to the
playlist URL, so everything is resolved with ``urljoin``.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from urllib.parse import urljoin

_BANDWIDTH_RE = re.compile(r"(?:^|,)BANDWIDTH=(\d+)")
_RESOLUTION_RE = re.compile(r"(?:^|,)RESOLUTION=(\d+)x(\d+)")


@dataclass(frozen=True)
class VariantStream:
    uri: str
    bandwidth: int = 0
    height: int = 0


def _uri_lines(content: str) -> list[tuple[str, str]]:
    """Pair each URI line with the tag line directly above it."""
    pairs: list[tuple[str, str]] = []
    previous = ""
    for raw in content.splitlines():
        line = raw.strip()
        if not line:
            continue
        if line.startswith("#"):
            previous = line
            continue
        pairs.append((previous, line))
        previous = ""
    return pairs


def is_master_playlist(content: str) -> bool:
    return "#EXT-X-STREAM-INF" in content


def parse_variants(content: str, playlist_url: str) -> list[VariantStream]:
    variants: list[VariantStream] = []
    for tag, uri in _uri_lines(content):
        if not tag.startswith("#EXT-X-STREAM-INF"):
            continue
        attrs = tag.partition(":")[2]
        bandwidth = _BANDWIDTH_RE.search(attrs)
        resolution = _RESOLUTION_RE.search(attrs)
        variants.append(
            VariantStream(
                uri=urljoin(playlist_url, uri),
                bandwidth=int(bandwidth.group(1)) if bandwidth else 0,
                height=int(resolution.group(2)) if resolution else 0,
            )
        )
    return variants


def best_variant(variants: list[VariantStream]) -> VariantStream | None:
    """Highest bandwidth wins; resolution breaks ties."""
    if not variants:
        return None
    return max(variants, key=lambda v: (v.bandwidth, v.height))


def parse_segments(content: str, playlist_url: str) -> list[str]:
    """Absolute segment URLs of a media playlist, in playback order."""
    if "#EXT-X-KEY" in content and "METHOD=NONE" not in content:
        # Encrypted segments would need key handling; not supported.
        raise ValueError("encrypted HLS playlists are not supported")
    return [urljoin(playlist_url, uri) for _, uri in _uri_lines(content)]
