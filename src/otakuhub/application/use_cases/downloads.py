"""Local episode download queue.

enqueue -> FIFO worker (one item at a time) -> catalog load -> selector
driven candidate attempts -> video file + caption files -> persisted
record.
"""

from __future__ import annotations

import asyncio
import re
from dataclasses import replace
from datetime import datetime, timezone
from pathlib import Path
from typing import Protocol

import structlog

from otakuhub.domain.entities.downloads import (
    DownloadedSubtitle,
    DownloadItem,
    DownloadStatus,
    download_key,
)
from otakuhub.domain.entities.errors import (
    DownloadFailed,
    NoStreamsAvailable,
    SubtitleFetchFailed,
)
from otakuhub.domain.entities.selection import FallbackPolicy, SelectionPhase
from otakuhub.domain.entities.streams import (
    AudioTrack,
    EpisodeCatalogs,
    ServerEntry,
    StreamCatalog,
)
from otakuhub.domain.ports.caption_source import CaptionSourcePort
from otakuhub.domain.ports.download_repository import DownloadRepository
from otakuhub.domain.ports.downloader import EpisodeDownloaderPort
from otakuhub.infrastructure.playback.selector import (
    AttemptFailed,
    AttemptSucceeded,
    candidate_for,
    initial_state,
    transition,
)
from otakuhub.infrastructure.subtitles.languages import language_code

log = structlog.get_logger(__name__)

_UNSAFE_CHARS_RE = re.compile(r'[<>:"/\\|?*]')
_WHITESPACE_RE = re.compile(r"\s+")

# Share of the progress bar reserved for caption files.
_VIDEO_PROGRESS_SHARE = 0.9


def sanitize_filename(name: str) -> str:
    """Filesystem-safe, lower-case file stem.

    >>> sanitize_filename('English (CC): "Full"')
    'english_(cc)___full_'
    """
    name = _UNSAFE_CHARS_RE.sub("_", name)
    return _WHITESPACE_RE.sub("_", name).lower()


class _CatalogLoader(Protocol):
    async def execute(
        self,
        episode_id: str,
        preferred_track: AudioTrack = AudioTrack.ORIGINAL,
        *,
        include_proxy: bool | None = None,
    ) -> EpisodeCatalogs: ...


def _only_track(catalogs: EpisodeCatalogs, track: AudioTrack) -> EpisodeCatalogs:
    """Hide the other track: a dub download never falls back to the sub."""
    empty = StreamCatalog.empty(catalogs.episode_id, track.other)
    if track is AudioTrack.ORIGINAL:
        return EpisodeCatalogs(original=catalogs.original, dubbed=empty)
    return EpisodeCatalogs(original=empty, dubbed=catalogs.dubbed)


class DownloadQueue:
    """Sequential download queue with persisted status records.

    Use as an async context manager; records are loaded on enter and the
    worker is cancelled on exit. Items found ``pending``/``downloading``
    on load were interrupted and come back as ``paused``.
    """

    def __init__(
        self,
        *,
        loader: _CatalogLoader,
        downloader: EpisodeDownloaderPort,
        repository: DownloadRepository,
        directory: Path,
        captions: CaptionSourcePort | None = None,
        policy: FallbackPolicy | None = None,
    ) -> None:
        self._loader = loader
        self._downloader = downloader
        self._repository = repository
        self._directory = Path(directory)
        self._captions = captions
        self._policy = policy or FallbackPolicy()

        self._items: dict[str, DownloadItem] = {}
        self._queue: asyncio.Queue[str] = asyncio.Queue()
        self._worker: asyncio.Task[None] | None = None
        self._current_key: str | None = None
        self._current_task: asyncio.Task[None] | None = None

    async def __aenter__(self) -> DownloadQueue:
        await self.load()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.aclose()

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    async def load(self) -> None:
        items = await self._repository.load_all()
        interrupted = False
        self._items = {}
        for item in items:
            if item.is_active:
                item = replace(
                    item, status=DownloadStatus.PAUSED, error_message="Interrupted"
                )
                interrupted = True
            self._items[item.key] = item
        if interrupted:
            await self._save()
        log.debug("download_queue_loaded", count=len(self._items))

    async def _save(self) -> None:
        await self._repository.save_all(list(self._items.values()))

    async def _update(self, key: str, *, persist: bool = True, **changes) -> DownloadItem:
        item = replace(self._items[key], **changes)
        self._items[key] = item
        if persist:
            await self._save()
        return item

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def list(self) -> list[DownloadItem]:
        """Newest first."""
        return sorted(self._items.values(), key=lambda i: i.created_at, reverse=True)

    def get(self, key: str) -> DownloadItem | None:
        return self._items.get(key)

    def is_downloaded(
        self, anime_slug: str, episode_number: int, track: AudioTrack
    ) -> bool:
        item = self._items.get(download_key(anime_slug, episode_number, track))
        return item is not None and item.status is DownloadStatus.COMPLETED

    @property
    def total_size(self) -> int:
        """Bytes on disk across completed downloads."""
        return sum(
            i.file_size or 0
            for i in self._items.values()
            if i.status is DownloadStatus.COMPLETED
        )

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    async def enqueue(
        self,
        *,
        anime_slug: str,
        anime_title: str,
        episode_id: str,
        episode_number: int,
        track: AudioTrack = AudioTrack.ORIGINAL,
    ) -> DownloadItem:
        """Queue an episode. Completed or active duplicates are returned as-is."""
        key = download_key(anime_slug, episode_number, track)
        existing = self._items.get(key)
        if existing is not None and (
            existing.is_active or existing.status is DownloadStatus.COMPLETED
        ):
            log.info("download_already_queued", key=key, status=existing.status.value)
            return existing

        item = DownloadItem(
            anime_slug=anime_slug,
            anime_title=anime_title,
            episode_id=episode_id,
            episode_number=episode_number,
            audio_track=track,
            created_at=datetime.now(timezone.utc),
        )
        self._items[key] = item
        await self._save()
        self._schedule(key)
        log.info("download_enqueued", key=key, episode_id=episode_id)
        return item

    async def retry(self, key: str) -> DownloadItem | None:
        """Re-queue a failed or paused item."""
        item = self._items.get(key)
        if item is None or item.is_active or item.status is DownloadStatus.COMPLETED:
            return item
        item = await self._update(
            key, status=DownloadStatus.PENDING, progress=0.0, error_message=None
        )
        self._schedule(key)
        log.info("download_retried", key=key)
        return item

    async def cancel(self, key: str) -> bool:
        """Pause a pending or running item. False when nothing was active."""
        item = self._items.get(key)
        if item is None or not item.is_active:
            return False
        if key == self._current_key and self._current_task is not None:
            self._current_task.cancel()
        await self._update(
            key, status=DownloadStatus.PAUSED, error_message="Cancelled by user"
        )
        log.info("download_cancelled", key=key)
        return True

    async def delete(self, key: str) -> bool:
        """Cancel if needed, remove files and forget the record."""
        item = self._items.get(key)
        if item is None:
            return False
        await self.cancel(key)
        paths = [item.file_path] if item.file_path else []
        paths.extend(s.file_path for s in item.subtitles)
        for path in paths:
            try:
                await asyncio.to_thread(Path(path).unlink, missing_ok=True)
            except OSError as e:
                log.warning("download_file_delete_failed", path=path, error=str(e))
        del self._items[key]
        await self._save()
        log.info("download_deleted", key=key)
        return True

    async def delete_anime(self, anime_slug: str) -> int:
        keys = [k for k, i in self._items.items() if i.anime_slug == anime_slug]
        for key in keys:
            await self.delete(key)
        return len(keys)

    async def delete_completed(self) -> int:
        keys = [
            k for k, i in self._items.items() if i.status is DownloadStatus.COMPLETED
        ]
        for key in keys:
            await self.delete(key)
        return len(keys)

    async def join(self) -> None:
        """Wait until every queued item has been processed."""
        await self._queue.join()

    async def aclose(self) -> None:
        worker, self._worker = self._worker, None
        if worker is not None:
            worker.cancel()
            await asyncio.gather(worker, return_exceptions=True)

    # ------------------------------------------------------------------
    # Worker
    # ------------------------------------------------------------------

    def _schedule(self, key: str) -> None:
        self._queue.put_nowait(key)
        if self._worker is None or self._worker.done():
            self._worker = asyncio.create_task(self._run(), name="download-worker")

    async def _run(self) -> None:
        while True:
            key = await self._queue.get()
            try:
                item = self._items.get(key)
                if item is None or item.status is not DownloadStatus.PENDING:
                    continue
                self._current_key = key
                self._current_task = asyncio.create_task(self._process(key))
                try:
                    await asyncio.wait({self._current_task})
                except asyncio.CancelledError:
                    self._current_task.cancel()
                    raise
                task = self._current_task
                if not task.cancelled() and task.exception() is not None:
                    error = task.exception()
                    log.error("download_crashed", key=key, error=str(error))
                    if key in self._items:
                        await self._update(
                            key, status=DownloadStatus.FAILED, error_message=str(error)
                        )
            finally:
                self._current_key = None
                self._current_task = None
                self._queue.task_done()

    async def _process(self, key: str) -> None:
        item = await self._update(key, status=DownloadStatus.DOWNLOADING, progress=0.0)
        log.info("download_started", key=key, episode_id=item.episode_id)

        try:
            catalogs = await self._loader.execute(item.episode_id, item.audio_track)
        except NoStreamsAvailable as e:
            await self._fail(key, str(e))
            return
        catalogs = _only_track(catalogs, item.audio_track)

        base_name = sanitize_filename(key)
        destination = self._directory / base_name

        def _on_progress(done: int, total: int | None) -> None:
            if total and key in self._items:
                self._items[key] = replace(
                    self._items[key],
                    progress=min(done / total, 1.0) * _VIDEO_PROGRESS_SHARE,
                )

        state = initial_state(catalogs, item.audio_track, self._policy)
        while state.phase is SelectionPhase.ATTEMPTING:
            source = candidate_for(state, catalogs)
            if source is None:
                break
            await self._update(key, persist=False, stream_url=source.url)
            try:
                path = await self._downloader.download(
                    source, destination, on_progress=_on_progress
                )
            except DownloadFailed as e:
                log.info(
                    "download_attempt_failed",
                    key=key,
                    server=source.server_name,
                    via_proxy=source.via_proxy,
                    error=str(e),
                )
                state = transition(state, AttemptFailed(str(e)), catalogs, self._policy)
                continue
            state = transition(state, AttemptSucceeded(), catalogs, self._policy)
            break

        if state.phase is not SelectionPhase.PLAYING:
            await self._fail(key, "All servers failed")
            return

        server = catalogs.for_track(state.active_track).servers[state.server_index]
        subtitles = await self._save_captions(server, base_name)
        size = await asyncio.to_thread(lambda: path.stat().st_size)
        await self._update(
            key,
            status=DownloadStatus.COMPLETED,
            progress=1.0,
            file_path=str(path),
            file_size=size,
            error_message=None,
            subtitles=subtitles,
        )
        log.info("download_completed", key=key, path=str(path), bytes=size)

    async def _fail(self, key: str, message: str) -> None:
        await self._update(key, status=DownloadStatus.FAILED, error_message=message)
        log.warning("download_failed", key=key, error=message)

    async def _save_captions(
        self, server: ServerEntry, base_name: str
    ) -> tuple[DownloadedSubtitle, ...]:
        """Write every caption track next to the video; failures are skipped."""
        if self._captions is None or not server.captions:
            return ()
        directory = self._directory / "subtitles"
        try:
            await asyncio.to_thread(directory.mkdir, parents=True, exist_ok=True)
        except OSError as e:
            log.warning("subtitle_download_failed", directory=str(directory), error=str(e))
            return ()

        saved: list[DownloadedSubtitle] = []
        for track in server.captions:
            try:
                text = await self._captions.fetch_text(track.file_url)
            except SubtitleFetchFailed as e:
                log.warning("subtitle_download_failed", label=track.label, error=str(e))
                continue
            path = directory / f"{base_name}_{sanitize_filename(track.label)}.vtt"
            try:
                await asyncio.to_thread(path.write_text, text, encoding="utf-8")
            except OSError as e:
                log.warning("subtitle_download_failed", label=track.label, error=str(e))
                continue
            saved.append(
                DownloadedSubtitle(
                    label=track.label,
                    language=language_code(track.label),
                    file_path=str(path),
                )
            )
        log.debug("subtitles_saved", count=len(saved))
        return tuple(saved)
