"""Episode catalog loading use case.

episode id -> concurrent original + dubbed fetches -> EpisodeCatalogs.
"""

from __future__ import annotations

import asyncio

import structlog

from otakuhub.domain.entities.errors import CatalogFetchFailed, NoStreamsAvailable
from otakuhub.domain.entities.streams import AudioTrack, EpisodeCatalogs, StreamCatalog
from otakuhub.domain.ports.catalog_source import StreamCatalogPort

log = structlog.get_logger(__name__)


class LoadEpisodeUseCase:
    """Fetch both audio tracks of an episode concurrently.

    A track whose fetch fails degrades to an empty catalog; only when
    both tracks are empty does the load fail with ``NoStreamsAvailable``.
    """

    def __init__(
        self,
        *,
        source: StreamCatalogPort,
        include_proxy: bool = True,
        fetch_timeout: float | None = None,
    ) -> None:
        self._source = source
        self._include_proxy = include_proxy
        self._fetch_timeout = fetch_timeout

    async def _fetch_track(
        self, episode_id: str, track: AudioTrack, include_proxy: bool
    ) -> StreamCatalog:
        try:
            return await asyncio.wait_for(
                self._source.fetch_catalog(
                    episode_id, track, include_proxy=include_proxy
                ),
                timeout=self._fetch_timeout,
            )
        except CatalogFetchFailed as e:
            log.warning(
                "catalog_fetch_failed",
                episode_id=episode_id,
                track=track.value,
                reason=e.reason,
            )
        except asyncio.TimeoutError:
            log.warning(
                "catalog_fetch_timeout",
                episode_id=episode_id,
                track=track.value,
                timeout=self._fetch_timeout,
            )
        return StreamCatalog.empty(episode_id, track)

    async def execute(
        self,
        episode_id: str,
        preferred_track: AudioTrack = AudioTrack.ORIGINAL,
        *,
        include_proxy: bool | None = None,
    ) -> EpisodeCatalogs:
        episode_id = episode_id.strip() if episode_id else ""
        if not episode_id:
            raise ValueError("episode_id must be a non-empty token")
        proxy = self._include_proxy if include_proxy is None else include_proxy

        # Both requests are in flight before either is awaited.
        tasks = {
            track: asyncio.create_task(
                self._fetch_track(episode_id, track, proxy),
                name=f"catalog-{track.value}",
            )
            for track in (preferred_track, preferred_track.other)
        }
        try:
            preferred = await tasks[preferred_track]
            if preferred.is_empty:
                log.info(
                    "catalog_track_empty",
                    episode_id=episode_id,
                    track=preferred_track.value,
                )
            other = await tasks[preferred_track.other]
        except asyncio.CancelledError:
            for task in tasks.values():
                task.cancel()
            raise

        by_track = {preferred_track: preferred, preferred_track.other: other}
        catalogs = EpisodeCatalogs(
            original=by_track[AudioTrack.ORIGINAL],
            dubbed=by_track[AudioTrack.DUBBED],
        )
        if catalogs.is_empty:
            log.warning("no_streams_available", episode_id=episode_id)
            raise NoStreamsAvailable(episode_id)

        log.info(
            "catalog_loaded",
            episode_id=episode_id,
            original_servers=len(catalogs.original.servers),
            dubbed_servers=len(catalogs.dubbed.servers),
        )
        return catalogs
