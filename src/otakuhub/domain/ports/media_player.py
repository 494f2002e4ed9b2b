"""Port for the media playback collaborator."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Protocol, runtime_checkable


class PlayerEventKind(str, Enum):
    PLAYING = "playing"
    POSITION = "position"
    BUFFERED = "buffered"
    DURATION = "duration"
    COMPLETED = "completed"
    ERROR = "error"


@dataclass(frozen=True)
class PlayerEvent:
    """Asynchronous signal emitted by the media player.

    ``value`` holds seconds for POSITION/BUFFERED/DURATION, a truthy flag
    for PLAYING/COMPLETED, and ``message`` describes an ERROR.
    """

    kind: PlayerEventKind
    value: float = 0.0
    message: str = ""


@runtime_checkable
class MediaPlayerPort(Protocol):
    """Opaque media player. Decoding, HLS demuxing and buffering live here.

    ``open`` raises on failure to open/initialize the source. A session
    owns exactly one player; ``stop`` releases the current source before
    the next ``open``.
    """

    async def open(self, url: str, headers: dict[str, str]) -> None: ...

    async def play(self) -> None: ...

    async def pause(self) -> None: ...

    async def seek(self, position: float) -> None: ...

    async def stop(self) -> None: ...

    async def aclose(self) -> None: ...
