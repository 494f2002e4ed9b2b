"""Working state of the source fallback engine."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from otakuhub.domain.entities.streams import AudioTrack


class SelectionPhase(str, Enum):
    IDLE = "idle"
    ATTEMPTING = "attempting"
    PLAYING = "playing"
    EXHAUSTED = "exhausted"


@dataclass(frozen=True)
class FallbackPolicy:
    """Retry bounds for one episode load.

    The defaults come from the upstream's observed failure modes; both
    are configurable via ``playback.*`` settings.
    """

    max_retries_per_server: int = 2
    max_total_servers: int = 6

    def __post_init__(self) -> None:
        if self.max_retries_per_server < 1:
            raise ValueError("max_retries_per_server must be >= 1")
        if self.max_total_servers < 1:
            raise ValueError("max_total_servers must be >= 1")


@dataclass(frozen=True)
class SelectionState:
    """Immutable snapshot; every transition returns a new instance.

    ``started`` is sticky: once set, automatic failures no longer move
    the indices. Only a manual switch clears it.
    """

    phase: SelectionPhase = SelectionPhase.IDLE
    active_track: AudioTrack = AudioTrack.ORIGINAL
    server_index: int = 0
    source_index: int = 0
    via_proxy: bool = False
    retries_for_server: int = 0
    servers_attempted: int = 0
    tracks_visited: frozenset[AudioTrack] = frozenset()
    started: bool = False

    @property
    def is_terminal(self) -> bool:
        return self.phase in (SelectionPhase.PLAYING, SelectionPhase.EXHAUSTED)
