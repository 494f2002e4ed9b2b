"""Source fallback state machine.

Pure functions over immutable ``SelectionState`` snapshots; the playback
session and the download queue drive them from their async I/O loops.

Attempt order within one audio track::

    server 0: proxy of source 0 -> direct of source 0 -> source 1 ...
    server 1: ...

then the other audio track (once per cycle), then EXHAUSTED.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Union

from otakuhub.domain.entities.errors import NoSourcesInEntry
from otakuhub.domain.entities.selection import (
    FallbackPolicy,
    SelectionPhase,
    SelectionState,
)
from otakuhub.domain.entities.streams import (
    AudioTrack,
    EpisodeCatalogs,
    PlayableSource,
    ServerEntry,
    SourceCandidate,
)


@dataclass(frozen=True)
class AttemptSucceeded:
    """The player reported a positive playback signal."""


@dataclass(frozen=True)
class AttemptFailed:
    reason: str = ""


@dataclass(frozen=True)
class ManualSwitch:
    """User-initiated server change; overrides sticky success."""

    track: AudioTrack
    server_index: int


SelectionEvent = Union[AttemptSucceeded, AttemptFailed, ManualSwitch]


# ----------------------------------------------------------------------
# Lookups
# ----------------------------------------------------------------------


def _server(
    catalogs: EpisodeCatalogs, track: AudioTrack, index: int
) -> ServerEntry | None:
    servers = catalogs.for_track(track).servers
    if 0 <= index < len(servers):
        return servers[index]
    return None


def _candidate(
    state: SelectionState, catalogs: EpisodeCatalogs
) -> SourceCandidate | None:
    server = _server(catalogs, state.active_track, state.server_index)
    if server is None or not 0 <= state.source_index < len(server.sources):
        return None
    return server.sources[state.source_index]


# ----------------------------------------------------------------------
# State construction
# ----------------------------------------------------------------------


def _point_at(
    state: SelectionState,
    catalogs: EpisodeCatalogs,
    track: AudioTrack,
    server_index: int,
    source_index: int = 0,
    *,
    retries: int = 0,
) -> SelectionState:
    """Aim at a candidate, proxy route first when it has one."""
    moved = replace(
        state,
        phase=SelectionPhase.ATTEMPTING,
        active_track=track,
        server_index=server_index,
        source_index=source_index,
        retries_for_server=retries,
        tracks_visited=state.tracks_visited | {track},
    )
    candidate = _candidate(moved, catalogs)
    return replace(moved, via_proxy=candidate is not None and candidate.has_proxy)


def _exhausted(state: SelectionState) -> SelectionState:
    return replace(state, phase=SelectionPhase.EXHAUSTED, via_proxy=False)


def _give_up_server(
    state: SelectionState, catalogs: EpisodeCatalogs, policy: FallbackPolicy
) -> SelectionState:
    attempted = replace(state, servers_attempted=state.servers_attempted + 1)
    if attempted.servers_attempted >= policy.max_total_servers:
        return _exhausted(attempted)

    track = attempted.active_track
    next_index = attempted.server_index + 1
    if _server(catalogs, track, next_index) is not None:
        return _point_at(attempted, catalogs, track, next_index)

    other = track.other
    if other not in attempted.tracks_visited and not catalogs.for_track(other).is_empty:
        return _point_at(attempted, catalogs, other, 0)

    return _exhausted(attempted)


def _settle(
    state: SelectionState, catalogs: EpisodeCatalogs, policy: FallbackPolicy
) -> SelectionState:
    """Skip servers with no candidates; they fail without a retry."""
    while state.phase is SelectionPhase.ATTEMPTING:
        server = _server(catalogs, state.active_track, state.server_index)
        if server is not None and not server.is_empty:
            break
        state = _give_up_server(state, catalogs, policy)
    return state


# ----------------------------------------------------------------------
# Public API
# ----------------------------------------------------------------------


def initial_state(
    catalogs: EpisodeCatalogs,
    preferred_track: AudioTrack = AudioTrack.ORIGINAL,
    policy: FallbackPolicy | None = None,
) -> SelectionState:
    """First attempt: server 0 of the preferred track, else the other one."""
    policy = policy or FallbackPolicy()
    track = preferred_track
    if catalogs.for_track(track).is_empty:
        track = track.other
    if catalogs.for_track(track).is_empty:
        return _exhausted(SelectionState(active_track=preferred_track))
    return _settle(_point_at(SelectionState(), catalogs, track, 0), catalogs, policy)


def _on_failure(
    state: SelectionState, catalogs: EpisodeCatalogs, policy: FallbackPolicy
) -> SelectionState:
    candidate = _candidate(state, catalogs)
    # A failed proxy route never skips the direct route of the same source.
    if state.via_proxy and candidate is not None and candidate.has_direct:
        return replace(state, via_proxy=False)

    retries = state.retries_for_server + 1
    if retries >= policy.max_retries_per_server:
        return _settle(
            _give_up_server(replace(state, retries_for_server=retries), catalogs, policy),
            catalogs,
            policy,
        )

    server = _server(catalogs, state.active_track, state.server_index)
    next_source = state.source_index + 1
    if server is None or next_source >= len(server.sources):
        next_source = 0
    return _point_at(
        state,
        catalogs,
        state.active_track,
        state.server_index,
        next_source,
        retries=retries,
    )


def _manual_switch(event: ManualSwitch, catalogs: EpisodeCatalogs) -> SelectionState:
    server = _server(catalogs, event.track, event.server_index)
    if server is None:
        raise ValueError(
            f"Server index {event.server_index} out of range for the "
            f"{event.track.value} track"
        )
    if server.is_empty:
        raise NoSourcesInEntry(event.track, event.server_index)
    # Fresh counters and a cleared sticky flag.
    return _point_at(SelectionState(), catalogs, event.track, event.server_index)


def transition(
    state: SelectionState,
    event: SelectionEvent,
    catalogs: EpisodeCatalogs,
    policy: FallbackPolicy | None = None,
) -> SelectionState:
    """Apply *event* and return the next state.

    Raises:
        NoSourcesInEntry: ``ManualSwitch`` to a server without candidates.
        ValueError: ``ManualSwitch`` to a server index that does not exist.
    """
    policy = policy or FallbackPolicy()

    if isinstance(event, ManualSwitch):
        return _manual_switch(event, catalogs)

    if state.phase is not SelectionPhase.ATTEMPTING:
        # PLAYING is sticky; IDLE and EXHAUSTED have nothing to advance.
        return state

    if isinstance(event, AttemptSucceeded):
        return replace(state, phase=SelectionPhase.PLAYING, started=True)
    if isinstance(event, AttemptFailed):
        return _on_failure(state, catalogs, policy)
    raise TypeError(f"Unsupported selection event: {event!r}")


def candidate_for(
    state: SelectionState, catalogs: EpisodeCatalogs
) -> PlayableSource | None:
    """What to hand to the player for the current state.

    A proxy attempt carries no CDN headers; a direct attempt carries a
    copy of exactly the headers of the selected candidate.
    """
    if state.phase not in (SelectionPhase.ATTEMPTING, SelectionPhase.PLAYING):
        return None
    candidate = _candidate(state, catalogs)
    if candidate is None:
        return None
    server = _server(catalogs, state.active_track, state.server_index)
    server_name = server.name if server is not None else ""

    if state.via_proxy and candidate.proxy_url:
        url, headers = candidate.proxy_url, {}
    else:
        url, headers = candidate.direct_url, dict(candidate.headers)
    return PlayableSource(
        url=url,
        headers=headers,
        media_kind=candidate.media_kind,
        via_proxy=state.via_proxy,
        server_name=server_name,
        quality_label=candidate.quality_label,
    )


def plan_attempts(
    catalogs: EpisodeCatalogs,
    preferred_track: AudioTrack = AudioTrack.ORIGINAL,
    policy: FallbackPolicy | None = None,
) -> list[tuple[SelectionState, PlayableSource]]:
    """Every attempt the engine would make if all of them failed."""
    policy = policy or FallbackPolicy()
    attempts: list[tuple[SelectionState, PlayableSource]] = []
    state = initial_state(catalogs, preferred_track, policy)
    while state.phase is SelectionPhase.ATTEMPTING:
        source = candidate_for(state, catalogs)
        if source is not None:
            attempts.append((state, source))
        state = transition(state, AttemptFailed("planned"), catalogs, policy)
    return attempts
