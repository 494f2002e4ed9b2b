"""Port for download record persistence."""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from otakuhub.domain.entities.downloads import DownloadItem


@runtime_checkable
class DownloadRepository(Protocol):
    """Async interface for storing the full list of download records."""

    async def load_all(self) -> list[DownloadItem]: ...

    async def save_all(self, items: list[DownloadItem]) -> None: ...
