"""Port for fetching the stream listing of one episode and audio track."""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from otakuhub.domain.entities.streams import AudioTrack, StreamCatalog


@runtime_checkable
class StreamCatalogPort(Protocol):
    """Streaming-metadata collaborator (remote scraping API).

    Implementations raise ``CatalogFetchFailed`` on network, HTTP or
    schema errors; they never return a partially defaulted catalog.
    """

    async def fetch_catalog(
        self,
        episode_id: str,
        track: AudioTrack,
        *,
        include_proxy: bool = True,
    ) -> StreamCatalog: ...
