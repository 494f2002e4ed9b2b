"""HiAnime streaming API client (async httpx).

Fetches the per-track stream listing and normalizes it into a
``StreamCatalog``.
"""

from __future__ import annotations

from typing import Any
from urllib.parse import quote, urljoin

import httpx
import structlog
from pydantic import ValidationError

from otakuhub.domain.entities.errors import CatalogFetchFailed
from otakuhub.domain.entities.streams import (
    AudioTrack,
    CaptionTrack,
    MediaKind,
    ServerEntry,
    SkipWindow,
    SourceCandidate,
    StreamCatalog,
)
from otakuhub.infrastructure.hianime.schema import (
    SourcePayload,
    StreamPayload,
    StreamResponsePayload,
    TimeRangePayload,
)

log = structlog.get_logger(__name__)

# Megacloud CDNs reject requests without a matching Referer/Origin.
DEFAULT_CDN_HEADERS: dict[str, str] = {
    "Referer": "https://megacloud.blog/",
    "Origin": "https://megacloud.blog",
}

# Sprite sheets for seek previews are published as VTT "thumbnails" tracks.
_NON_CAPTION_KINDS = frozenset({"thumbnails", "chapters", "metadata"})


def _media_kind(source: SourcePayload) -> MediaKind:
    if source.type.lower() in ("mp4", "progressive", "file"):
        return MediaKind.PROGRESSIVE
    if source.is_m3u8 is False:
        return MediaKind.PROGRESSIVE
    return MediaKind.HLS


def _skip_window(payload: TimeRangePayload | None) -> SkipWindow | None:
    if payload is None or payload.end <= payload.start:
        return None
    return SkipWindow(start=payload.start, end=payload.end)


class HttpxStreamCatalogClient:
    """Async client for ``GET /stream/{episode_id}``.

    Implements ``StreamCatalogPort`` from domain.ports.catalog_source.
    """

    def __init__(
        self,
        *,
        base_url: str,
        http_client: httpx.AsyncClient,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._http = http_client

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _resolve_proxy_url(self, proxy_url: str | None) -> str | None:
        """Proxy paths are API-relative; absolute URLs pass through."""
        if not proxy_url:
            return None
        return urljoin(f"{self._base_url}/", proxy_url)

    def _to_candidate(
        self, source: SourcePayload, server_headers: dict[str, str]
    ) -> SourceCandidate | None:
        proxy_url = self._resolve_proxy_url(source.proxy_url)
        if not source.file and proxy_url is None:
            return None
        # Each candidate owns its header dict.
        headers = dict(source.headers or server_headers or DEFAULT_CDN_HEADERS)
        return SourceCandidate(
            direct_url=source.file,
            proxy_url=proxy_url,
            media_kind=_media_kind(source),
            headers=headers,
            quality_label=source.quality or "auto",
        )

    def _to_server(self, stream: StreamPayload, track: AudioTrack) -> ServerEntry:
        candidates: list[SourceCandidate] = []
        for source in stream.sources:
            candidate = self._to_candidate(source, stream.headers)
            if candidate is None:
                log.warning(
                    "catalog_source_dropped",
                    server=stream.server_name,
                    reason="no_url",
                )
                continue
            candidates.append(candidate)

        captions = tuple(
            CaptionTrack(file_url=sub.file, label=sub.label, kind=sub.kind)
            for sub in stream.subtitles
            if sub.file and sub.kind.lower() not in _NON_CAPTION_KINDS
        )
        skips = stream.skips
        return ServerEntry(
            name=stream.server_name or stream.name,
            audio_track=track,
            sources=tuple(candidates),
            captions=captions,
            intro=_skip_window(skips.intro if skips else None),
            outro=_skip_window(skips.outro if skips else None),
        )

    def _to_catalog(
        self, payload: StreamResponsePayload, episode_id: str, track: AudioTrack
    ) -> StreamCatalog:
        return StreamCatalog(
            episode_id=episode_id,
            audio_track=track,
            servers=tuple(self._to_server(s, track) for s in payload.streams),
        )

    async def _get_json(self, url: str, params: dict[str, str], track: AudioTrack) -> Any:
        try:
            resp = await self._http.get(url, params=params)
            resp.raise_for_status()
            return resp.json()
        except httpx.HTTPStatusError as e:
            raise CatalogFetchFailed(
                track, f"HTTP {e.response.status_code}"
            ) from e
        except httpx.HTTPError as e:
            raise CatalogFetchFailed(track, f"network error: {e}") from e
        except ValueError as e:
            raise CatalogFetchFailed(track, "response is not JSON") from e

    # ------------------------------------------------------------------
    # Public API (StreamCatalogPort)
    # ------------------------------------------------------------------

    async def fetch_catalog(
        self,
        episode_id: str,
        track: AudioTrack,
        *,
        include_proxy: bool = True,
    ) -> StreamCatalog:
        """Fetch and normalize the stream listing for one audio track."""
        url = f"{self._base_url}/stream/{quote(episode_id, safe='')}"
        params = {
            "track": track.value,
            "includeProxy": "true" if include_proxy else "false",
        }
        data = await self._get_json(url, params, track)

        try:
            payload = StreamResponsePayload.model_validate(data)
        except ValidationError as e:
            log.warning(
                "catalog_schema_invalid",
                episode_id=episode_id,
                track=track.value,
                errors=e.error_count(),
            )
            raise CatalogFetchFailed(track, "invalid catalog payload") from e

        if not payload.success:
            raise CatalogFetchFailed(track, "upstream reported success=false")

        catalog = self._to_catalog(payload, episode_id, track)
        log.debug(
            "catalog_fetched",
            episode_id=episode_id,
            track=track.value,
            servers=len(catalog.servers),
        )
        return catalog
