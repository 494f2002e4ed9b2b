"""Timed caption cues and the active-cue lookup."""

from __future__ import annotations

from bisect import bisect_right
from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field


@dataclass(frozen=True)
class SubtitleCue:
    """A caption fragment; offsets are seconds from media start."""

    start: float
    end: float
    text: str

    def covers(self, position: float) -> bool:
        return self.start <= position < self.end


@dataclass(frozen=True)
class CueList:
    """Start-ordered, immutable cue sequence for one caption track.

    ``active_text`` runs on every position update, so lookups use a binary
    search over start times and a running maximum of end times instead of
    a linear scan.
    """

    cues: tuple[SubtitleCue, ...] = ()
    _starts: tuple[float, ...] = field(init=False, repr=False, compare=False)
    _max_ends: tuple[float, ...] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        ordered = tuple(sorted(self.cues, key=lambda c: (c.start, c.end)))
        max_ends: list[float] = []
        running = float("-inf")
        for cue in ordered:
            running = max(running, cue.end)
            max_ends.append(running)
        object.__setattr__(self, "cues", ordered)
        object.__setattr__(self, "_starts", tuple(c.start for c in ordered))
        object.__setattr__(self, "_max_ends", tuple(max_ends))

    @classmethod
    def of(cls, cues: Iterable[SubtitleCue]) -> CueList:
        return cls(cues=tuple(cues))

    def __len__(self) -> int:
        return len(self.cues)

    def __iter__(self) -> Iterator[SubtitleCue]:
        return iter(self.cues)

    def __bool__(self) -> bool:
        return bool(self.cues)

    def active_cue(self, position: float) -> SubtitleCue | None:
        """First cue (in list order) with ``start <= position < end``."""
        # Cues [0, upper) start at or before position.
        upper = bisect_right(self._starts, position)
        # First index whose running max end lies beyond position; that cue's
        # own end equals the running max, so it covers position.
        first = bisect_right(self._max_ends, position)
        if first < upper:
            return self.cues[first]
        return None

    def active_text(self, position: float) -> str:
        cue = self.active_cue(position)
        return cue.text if cue is not None else ""
