"""Port for the local key-value store behind persisted app state."""

from __future__ import annotations

from typing import Any, Protocol


class CachePort(Protocol):
    """Async key-value store; values live until deleted unless given a ttl.

    The download queue keeps its records here (``DiskcacheAdapter`` in
    production, an ``AsyncMock`` in tests).
    """

    async def get(self, key: str) -> Any:
        """Stored value, or None when the key is unknown or expired."""
        ...

    async def set(self, key: str, value: Any, *, ttl: int | None = None) -> None: ...

    async def delete(self, key: str) -> bool:
        """True when something was removed."""
        ...

    async def aclose(self) -> None: ...
