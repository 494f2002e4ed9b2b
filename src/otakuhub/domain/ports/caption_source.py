"""Port for downloading caption files."""

from __future__ import annotations

from typing import Protocol, runtime_checkable


@runtime_checkable
class CaptionSourcePort(Protocol):
    async def fetch_text(self, url: str) -> str:
        """Return the raw WebVTT/SRT text. Raises ``SubtitleFetchFailed``."""
        ...
