"""SQLite-backed ``CachePort`` built on diskcache."""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from pathlib import Path
from typing import Any, TypeVar

import structlog
from diskcache import Cache

log = structlog.get_logger(__name__)

_T = TypeVar("_T")


class DiskcacheAdapter:
    """Runs the blocking diskcache API on worker threads.

    Open it with ``async with`` (or ``await adapter.__aenter__()``) before
    the first call. At most *max_concurrent* disk operations run at once
    so writers do not pile up on SQLite's file lock.
    """

    def __init__(
        self,
        directory: str | Path = "./.cache/otakuhub",
        max_concurrent: int = 4,
    ) -> None:
        self.directory = Path(directory)
        self._cache: Cache | None = None
        self._slots = asyncio.Semaphore(max_concurrent)

    async def __aenter__(self) -> DiskcacheAdapter:
        if self._cache is None:
            self._cache = await asyncio.to_thread(Cache, str(self.directory))
            log.debug("diskcache_opened", directory=str(self.directory))
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.aclose()

    async def _call(self, fn: Callable[..., _T], *args: Any, **kwargs: Any) -> _T:
        async with self._slots:
            return await asyncio.to_thread(fn, *args, **kwargs)

    def _opened(self) -> Cache:
        if self._cache is None:
            raise RuntimeError(f"diskcache at {self.directory} is not open")
        return self._cache

    async def get(self, key: str) -> Any:
        return await self._call(self._opened().get, key, default=None)

    async def set(self, key: str, value: Any, *, ttl: int | None = None) -> None:
        await self._call(self._opened().set, key, value, expire=ttl)

    async def delete(self, key: str) -> bool:
        return bool(await self._call(self._opened().delete, key))

    async def aclose(self) -> None:
        cache, self._cache = self._cache, None
        if cache is not None:
            await asyncio.to_thread(cache.close)
            log.debug("diskcache_closed", directory=str(self.directory))
