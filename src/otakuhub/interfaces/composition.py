"""Composition root: builds every collaborator from an ``AppConfig``."""

from __future__ import annotations

from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import AsyncIterator

import httpx
import structlog

from otakuhub.application.use_cases.downloads import DownloadQueue
from otakuhub.application.use_cases.load_episode import LoadEpisodeUseCase
from otakuhub.application.use_cases.playback_session import PlaybackSession
from otakuhub.domain.entities.selection import FallbackPolicy
from otakuhub.domain.ports.media_player import MediaPlayerPort
from otakuhub.infrastructure.cache import DiskcacheAdapter
from otakuhub.infrastructure.common.retry_transport import RetryTransport
from otakuhub.infrastructure.config.schema import AppConfig
from otakuhub.infrastructure.downloads.downloader import HttpxEpisodeDownloader
from otakuhub.infrastructure.hianime.client import HttpxStreamCatalogClient
from otakuhub.infrastructure.persistence.download_cache import (
    CacheDownloadRepository,
)
from otakuhub.infrastructure.subtitles.fetcher import HttpxCaptionSource

log = structlog.get_logger(__name__)


@dataclass
class AppContainer:
    """Live resources for one process; owned by ``build_container``."""

    config: AppConfig
    http_client: httpx.AsyncClient
    cache: DiskcacheAdapter
    policy: FallbackPolicy
    catalog_client: HttpxStreamCatalogClient
    loader: LoadEpisodeUseCase
    captions: HttpxCaptionSource
    downloads: DownloadQueue

    def playback_session(self, player: MediaPlayerPort) -> PlaybackSession:
        """New session bound to *player*; the caller closes it."""
        return PlaybackSession(
            loader=self.loader,
            player=player,
            captions=self.captions,
            policy=self.policy,
            open_timeout=self.config.playback.open_timeout_seconds,
            start_threshold=self.config.playback.start_threshold_seconds,
        )


def build_http_client(config: AppConfig) -> httpx.AsyncClient:
    transport = RetryTransport(
        wrapped=httpx.AsyncHTTPTransport(),
        max_retries=config.http_max_retries,
    )
    return httpx.AsyncClient(
        transport=transport,
        timeout=httpx.Timeout(config.http_timeout_seconds),
        headers={"User-Agent": config.http_user_agent},
        follow_redirects=True,
    )


@asynccontextmanager
async def build_container(config: AppConfig) -> AsyncIterator[AppContainer]:
    """Open the HTTP client, cache and download queue; close them in reverse."""
    http_client = build_http_client(config)
    cache = DiskcacheAdapter(directory=config.cache_dir)
    policy = FallbackPolicy(
        max_retries_per_server=config.playback.max_retries_per_server,
        max_total_servers=config.playback.max_total_servers,
    )
    catalog_client = HttpxStreamCatalogClient(
        base_url=config.api.base_url, http_client=http_client
    )
    loader = LoadEpisodeUseCase(
        source=catalog_client,
        include_proxy=config.api.include_proxy,
    )
    captions = HttpxCaptionSource(http_client=http_client)

    try:
        await cache.__aenter__()
        downloads = DownloadQueue(
            loader=loader,
            downloader=HttpxEpisodeDownloader(http_client=http_client),
            repository=CacheDownloadRepository(cache),
            directory=config.downloads.directory,
            captions=captions,
            policy=policy,
        )
        async with downloads:
            log.info(
                "container_ready",
                api=config.api.base_url,
                include_proxy=config.api.include_proxy,
            )
            yield AppContainer(
                config=config,
                http_client=http_client,
                cache=cache,
                policy=policy,
                catalog_client=catalog_client,
                loader=loader,
                captions=captions,
                downloads=downloads,
            )
    finally:
        await cache.aclose()
        await http_client.aclose()
        log.debug("container_closed")
