"""Episode downloader: HLS segment-by-segment or progressive streaming."""

from __future__ import annotations

import asyncio
import contextlib
from collections.abc import AsyncIterator
from pathlib import Path
from typing import BinaryIO

import httpx
import structlog

from otakuhub.domain.entities.errors import DownloadFailed
from otakuhub.domain.entities.streams import MediaKind, PlayableSource
from otakuhub.domain.ports.downloader import ProgressCallback
from otakuhub.infrastructure.downloads.hls import (
    best_variant,
    is_master_playlist,
    parse_segments,
    parse_variants,
)

log = structlog.get_logger(__name__)

_CHUNK_SIZE = 65536


@contextlib.asynccontextmanager
async def _open_for_write(path: Path) -> AsyncIterator[BinaryIO]:
    fh = await asyncio.to_thread(path.open, "wb")
    try:
        yield fh
    finally:
        await asyncio.to_thread(fh.close)


class HttpxEpisodeDownloader:
    """Implements ``EpisodeDownloaderPort``.

    Output goes to ``<destination>.part`` and is renamed on success, so a
    crashed download never leaves a file that looks complete.
    """

    def __init__(
        self,
        *,
        http_client: httpx.AsyncClient,
        chunk_size: int = _CHUNK_SIZE,
    ) -> None:
        self._http = http_client
        self._chunk_size = chunk_size

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    async def _get_text(self, url: str, headers: dict[str, str]) -> str:
        resp = await self._http.get(url, headers=headers, follow_redirects=True)
        resp.raise_for_status()
        return resp.text

    async def _stream_into(
        self,
        url: str,
        headers: dict[str, str],
        fh,
    ) -> int:
        """Append the body of *url* to *fh*; returns bytes written."""
        written = 0
        async with self._http.stream(
            "GET", url, headers=headers, follow_redirects=True
        ) as resp:
            resp.raise_for_status()
            async for chunk in resp.aiter_bytes(chunk_size=self._chunk_size):
                await asyncio.to_thread(fh.write, chunk)
                written += len(chunk)
        return written

    async def _resolve_segments(self, source: PlayableSource) -> list[str]:
        playlist = await self._get_text(source.url, source.headers)
        playlist_url = source.url
        if is_master_playlist(playlist):
            variant = best_variant(parse_variants(playlist, source.url))
            if variant is None:
                raise DownloadFailed("master playlist lists no variants")
            log.debug(
                "hls_variant_selected",
                bandwidth=variant.bandwidth,
                height=variant.height,
            )
            playlist_url = variant.uri
            playlist = await self._get_text(playlist_url, source.headers)
        try:
            segments = parse_segments(playlist, playlist_url)
        except ValueError as e:
            raise DownloadFailed(str(e)) from e
        if not segments:
            raise DownloadFailed("playlist lists no segments")
        return segments

    async def _download_hls(
        self,
        source: PlayableSource,
        part: Path,
        on_progress: ProgressCallback | None,
    ) -> None:
        segments = await self._resolve_segments(source)
        log.info("hls_download_started", segments=len(segments))
        async with _open_for_write(part) as fh:
            for i, segment_url in enumerate(segments, start=1):
                await self._stream_into(segment_url, source.headers, fh)
                if on_progress is not None:
                    on_progress(i, len(segments))

    async def _download_progressive(
        self,
        source: PlayableSource,
        part: Path,
        on_progress: ProgressCallback | None,
    ) -> None:
        done = 0
        async with _open_for_write(part) as fh:
            async with self._http.stream(
                "GET", source.url, headers=source.headers, follow_redirects=True
            ) as resp:
                resp.raise_for_status()
                raw_length = resp.headers.get("content-length")
                total = int(raw_length) if raw_length and raw_length.isdigit() else None
                async for chunk in resp.aiter_bytes(chunk_size=self._chunk_size):
                    await asyncio.to_thread(fh.write, chunk)
                    done += len(chunk)
                    if on_progress is not None:
                        on_progress(done, total)

    # ------------------------------------------------------------------
    # Public API (EpisodeDownloaderPort)
    # ------------------------------------------------------------------

    async def download(
        self,
        source: PlayableSource,
        destination: Path,
        *,
        on_progress: ProgressCallback | None = None,
    ) -> Path:
        suffix = ".ts" if source.media_kind is MediaKind.HLS else ".mp4"
        target = destination.with_name(destination.name + suffix)
        part = target.with_name(target.name + ".part")
        await asyncio.to_thread(target.parent.mkdir, parents=True, exist_ok=True)

        try:
            if source.media_kind is MediaKind.HLS:
                await self._download_hls(source, part, on_progress)
            else:
                await self._download_progressive(source, part, on_progress)
        except httpx.HTTPStatusError as e:
            await asyncio.to_thread(part.unlink, missing_ok=True)
            raise DownloadFailed(
                f"HTTP {e.response.status_code} for {e.request.url}"
            ) from e
        except httpx.HTTPError as e:
            await asyncio.to_thread(part.unlink, missing_ok=True)
            raise DownloadFailed(f"network error: {e}") from e
        except BaseException:
            # Cancellation or DownloadFailed: never leave a partial file.
            await asyncio.to_thread(part.unlink, missing_ok=True)
            raise

        await asyncio.to_thread(part.replace, target)
        size = (await asyncio.to_thread(target.stat)).st_size
        log.info("download_written", path=str(target), bytes=size)
        return target
