"""Port for transferring a playable source to a local file."""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path
from typing import Protocol, runtime_checkable

from otakuhub.domain.entities.streams import PlayableSource

ProgressCallback = Callable[[int, int | None], None]


@runtime_checkable
class EpisodeDownloaderPort(Protocol):
    async def download(
        self,
        source: PlayableSource,
        destination: Path,
        *,
        on_progress: ProgressCallback | None = None,
    ) -> Path:
        """Write the media behind *source* under *destination* (no suffix).

        Returns the final file path (suffix chosen by media kind).
        ``on_progress(done, total)`` reports bytes for progressive files
        and segments for HLS; ``total`` is None when unknown.
        """
        ...
