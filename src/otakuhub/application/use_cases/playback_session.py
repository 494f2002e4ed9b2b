"""Playback session: drives the fallback engine against a media player.

One session owns one player. Candidate opens are strictly sequential and
every state change (automatic failure or manual switch) goes through the
same lock, so an automatic retry can never race a user's server switch.
"""

from __future__ import annotations

import asyncio
import contextlib
from collections.abc import Callable, Coroutine
from dataclasses import dataclass
from enum import Enum
from typing import Protocol

import structlog

from otakuhub.domain.entities.errors import AllTracksExhausted, SubtitleFetchFailed
from otakuhub.domain.entities.selection import (
    FallbackPolicy,
    SelectionPhase,
    SelectionState,
)
from otakuhub.domain.entities.streams import (
    AudioTrack,
    CaptionTrack,
    EpisodeCatalogs,
    PlayableSource,
    ServerEntry,
    SkipWindow,
)
from otakuhub.domain.entities.subtitles import CueList
from otakuhub.domain.ports.caption_source import CaptionSourcePort
from otakuhub.domain.ports.media_player import (
    MediaPlayerPort,
    PlayerEvent,
    PlayerEventKind,
)
from otakuhub.infrastructure.playback.selector import (
    AttemptFailed,
    AttemptSucceeded,
    ManualSwitch,
    SelectionEvent,
    candidate_for,
    initial_state,
    transition,
)
from otakuhub.infrastructure.subtitles.languages import default_caption_index
from otakuhub.infrastructure.subtitles.parser import parse_subtitles

log = structlog.get_logger(__name__)


class _CatalogLoader(Protocol):
    async def execute(
        self,
        episode_id: str,
        preferred_track: AudioTrack = AudioTrack.ORIGINAL,
        *,
        include_proxy: bool | None = None,
    ) -> EpisodeCatalogs: ...


class SessionEventKind(str, Enum):
    CANDIDATE_SELECTED = "candidate_selected"
    ATTEMPT_FAILED = "attempt_failed"
    PLAYING = "playing"
    PLAYBACK_STALLED = "playback_stalled"
    EXHAUSTED = "exhausted"
    SERVER_SWITCHED = "server_switched"
    CAPTIONS_LOADED = "captions_loaded"
    CAPTIONS_DISABLED = "captions_disabled"


@dataclass(frozen=True)
class SessionEvent:
    kind: SessionEventKind
    state: SelectionState
    source: PlayableSource | None = None
    detail: str = ""


SessionListener = Callable[[SessionEvent], None]


class PlaybackSession:
    """Exposed surface for a player screen.

    Usage::

        async with PlaybackSession(loader=..., player=..., captions=...) as s:
            await s.load_episode("one-piece-100?ep=2142")
            await s.start()
            ...  # forward player signals to s.handle_player_event()
    """

    def __init__(
        self,
        *,
        loader: _CatalogLoader,
        player: MediaPlayerPort,
        captions: CaptionSourcePort | None = None,
        policy: FallbackPolicy | None = None,
        open_timeout: float = 20.0,
        start_threshold: float = 2.0,
    ) -> None:
        self._loader = loader
        self._player = player
        self._captions = captions
        self._policy = policy or FallbackPolicy()
        self._open_timeout = open_timeout
        self._start_threshold = start_threshold

        self._lock = asyncio.Lock()
        self._listeners: list[SessionListener] = []
        self._catalogs: EpisodeCatalogs | None = None
        self._state = SelectionState()
        self._source: PlayableSource | None = None
        self._opened = False
        self._attempts = 0
        self._position = 0.0
        self._closed = False
        self._load_task: asyncio.Future[EpisodeCatalogs] | None = None

        self._cues = CueList()
        self._caption_index: int | None = None
        self._caption_generation = 0
        self._caption_task: asyncio.Task[None] | None = None

    async def __aenter__(self) -> PlaybackSession:
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.aclose()

    # ------------------------------------------------------------------
    # Read-only views
    # ------------------------------------------------------------------

    @property
    def state(self) -> SelectionState:
        return self._state

    @property
    def catalogs(self) -> EpisodeCatalogs | None:
        return self._catalogs

    @property
    def attempts(self) -> int:
        return self._attempts

    @property
    def position(self) -> float:
        return self._position

    def current_candidate(self) -> PlayableSource | None:
        if self._catalogs is None:
            return None
        return candidate_for(self._state, self._catalogs)

    def current_server(self) -> ServerEntry | None:
        if self._catalogs is None:
            return None
        servers = self._catalogs.for_track(self._state.active_track).servers
        if 0 <= self._state.server_index < len(servers):
            return servers[self._state.server_index]
        return None

    def caption_tracks(self) -> tuple[CaptionTrack, ...]:
        server = self.current_server()
        return server.captions if server is not None else ()

    @property
    def caption_index(self) -> int | None:
        return self._caption_index

    # ------------------------------------------------------------------
    # Observers
    # ------------------------------------------------------------------

    def subscribe(self, listener: SessionListener) -> Callable[[], None]:
        """Register *listener*; returns a callable that unsubscribes it."""
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def _emit(
        self,
        kind: SessionEventKind,
        *,
        source: PlayableSource | None = None,
        detail: str = "",
    ) -> None:
        event = SessionEvent(kind=kind, state=self._state, source=source, detail=detail)
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                log.exception("session_listener_failed", session_event=kind.value)

    # ------------------------------------------------------------------
    # Loading + attempts
    # ------------------------------------------------------------------

    async def load_episode(
        self,
        episode_id: str,
        preferred_track: AudioTrack = AudioTrack.ORIGINAL,
    ) -> EpisodeCatalogs:
        """Fetch both catalogs and reset the engine.

        Raises:
            NoStreamsAvailable: neither catalog yielded a server.
            RuntimeError: the session was closed before or during the load.
        """
        self._check_not_closed()
        task = asyncio.ensure_future(self._loader.execute(episode_id, preferred_track))
        self._load_task = task
        try:
            catalogs = await task
        except asyncio.CancelledError:
            if self._closed:
                raise RuntimeError("session is closed") from None
            raise
        finally:
            if self._load_task is task:
                self._load_task = None

        async with self._lock:
            self._check_not_closed()
            await self._release_player()
            self._catalogs = catalogs
            self._state = initial_state(catalogs, preferred_track, self._policy)
            self._attempts = 0
            self._position = 0.0
            self._reset_captions()
        log.info(
            "session_episode_loaded",
            episode_id=catalogs.episode_id,
            track=self._state.active_track.value,
            phase=self._state.phase.value,
        )
        return catalogs

    async def start(self) -> PlayableSource:
        """Open candidates one at a time until one opens.

        Raises:
            AllTracksExhausted: every candidate failed.
        """
        async with self._lock:
            self._check_not_closed()
            if self._catalogs is None:
                raise ValueError("No episode loaded")
            return await self._open_until_opened()

    async def report_outcome(self, success: bool, reason: str = "") -> PlayableSource | None:
        """Feed an attempt result into the engine.

        On failure the next candidate is opened and returned.

        Raises:
            AllTracksExhausted: the failure left nothing to try.
        """
        async with self._lock:
            self._check_not_closed()
            if success:
                self._on_success()
                return self._source
            return await self._fail_and_advance(reason or "reported failure")

    def handle_player_event(self, event: PlayerEvent) -> Coroutine[None, None, None]:
        """Translate an asynchronous player signal into engine input.

        The event is bound to the attempt that is current when this is
        called, before anything is awaited. If another candidate has been
        opened by the time the returned coroutine holds the lock, the event
        belongs to the previous source and is dropped.

        Exhaustion is published as an ``EXHAUSTED`` session event rather
        than raised, since this runs from player callbacks.
        """
        if event.kind is PlayerEventKind.POSITION:
            self._position = max(event.value, 0.0)
        return self._handle_player_event(event, self._attempts)

    async def _handle_player_event(self, event: PlayerEvent, attempt: int) -> None:
        async with self._lock:
            if attempt != self._attempts:
                log.debug(
                    "stale_player_event",
                    kind=event.kind.value,
                    attempt=attempt,
                    current=self._attempts,
                )
                return
            if not self._opened or self._state.phase not in (
                SelectionPhase.ATTEMPTING,
                SelectionPhase.PLAYING,
            ):
                return

            if self._is_positive(event):
                self._on_success()
                return

            if event.kind is not PlayerEventKind.ERROR:
                return

            if self._state.started:
                log.warning(
                    "playback_stalled",
                    server=self._source.server_name if self._source else "",
                    message=event.message,
                )
                self._emit(SessionEventKind.PLAYBACK_STALLED, detail=event.message)
                return

            try:
                await self._fail_and_advance(event.message or "player error")
            except AllTracksExhausted:
                pass

    async def switch_server(self, track: AudioTrack, server_index: int) -> PlayableSource:
        """Manual override. Works even after playback started.

        Raises:
            NoSourcesInEntry: the chosen server has no candidates.
            ValueError: no such server (or no episode loaded).
            AllTracksExhausted: the chosen server and every fallback failed.
        """
        async with self._lock:
            self._check_not_closed()
            if self._catalogs is None:
                raise ValueError("No episode loaded")
            self._apply(ManualSwitch(track=track, server_index=server_index))
            self._reset_captions()
            log.info("server_switched", track=track.value, server_index=server_index)
            self._emit(SessionEventKind.SERVER_SWITCHED)
            return await self._open_until_opened()

    # ------------------------------------------------------------------
    # Internals (lock held)
    # ------------------------------------------------------------------

    def _check_not_closed(self) -> None:
        if self._closed:
            raise RuntimeError("session is closed")

    def _apply(self, event: SelectionEvent) -> None:
        assert self._catalogs is not None
        self._state = transition(self._state, event, self._catalogs, self._policy)

    def _is_positive(self, event: PlayerEvent) -> bool:
        if event.kind is PlayerEventKind.PLAYING:
            return bool(event.value)
        if event.kind is PlayerEventKind.POSITION:
            return event.value > 0
        if event.kind is PlayerEventKind.BUFFERED:
            return event.value >= self._start_threshold
        return False

    def _on_success(self) -> None:
        if self._catalogs is None or self._state.started:
            return
        self._apply(AttemptSucceeded())
        if self._state.phase is not SelectionPhase.PLAYING:
            return
        log.info(
            "playback_started",
            server=self._source.server_name if self._source else "",
            via_proxy=self._state.via_proxy,
            attempts=self._attempts,
        )
        self._emit(SessionEventKind.PLAYING, source=self._source)
        self._start_default_captions()

    async def _fail_and_advance(self, reason: str) -> PlayableSource | None:
        if self._catalogs is None or self._state.phase is not SelectionPhase.ATTEMPTING:
            return None
        log.info(
            "source_attempt_failed",
            server=self._source.server_name if self._source else "",
            via_proxy=self._state.via_proxy,
            reason=reason,
        )
        self._emit(SessionEventKind.ATTEMPT_FAILED, source=self._source, detail=reason)
        self._apply(AttemptFailed(reason))
        return await self._open_until_opened()

    async def _release_player(self) -> None:
        if self._opened:
            self._opened = False
            await self._player.stop()

    async def _open_until_opened(self) -> PlayableSource:
        while True:
            source = self.current_candidate()
            if source is None or self._state.phase is not SelectionPhase.ATTEMPTING:
                if self._state.phase is SelectionPhase.PLAYING and source is not None:
                    return source
                await self._release_player()
                self._source = None
                log.warning("all_sources_exhausted", attempts=self._attempts)
                self._emit(SessionEventKind.EXHAUSTED)
                raise AllTracksExhausted(self._attempts)

            # The previous handle is released before the next open.
            await self._release_player()
            self._source = source
            self._attempts += 1
            self._emit(SessionEventKind.CANDIDATE_SELECTED, source=source)
            log.debug(
                "source_attempt",
                attempt=self._attempts,
                track=self._state.active_track.value,
                server=source.server_name,
                via_proxy=source.via_proxy,
            )
            # Live from here on: a failed or timed-out open is stopped too.
            self._opened = True
            try:
                await asyncio.wait_for(
                    self._player.open(source.url, dict(source.headers)),
                    timeout=self._open_timeout,
                )
                await self._player.play()
                return source
            except asyncio.TimeoutError:
                reason = f"open timed out after {self._open_timeout}s"
            except Exception as e:  # player adapters raise their own error types
                reason = str(e) or type(e).__name__

            log.info(
                "source_open_failed",
                server=source.server_name,
                via_proxy=source.via_proxy,
                reason=reason,
            )
            self._emit(SessionEventKind.ATTEMPT_FAILED, source=source, detail=reason)
            self._apply(AttemptFailed(reason))

    # ------------------------------------------------------------------
    # Captions
    # ------------------------------------------------------------------

    def _reset_captions(self) -> None:
        self._caption_generation += 1
        if self._caption_task is not None and not self._caption_task.done():
            self._caption_task.cancel()
        self._caption_task = None
        self._cues = CueList()
        self._caption_index = None

    def _start_default_captions(self) -> None:
        if self._captions is None:
            return
        index = default_caption_index([t.label for t in self.caption_tracks()])
        if index < 0:
            return
        self._caption_task = asyncio.create_task(
            self.select_caption(index), name="default-captions"
        )

    async def select_caption(self, index: int) -> bool:
        """Fetch and parse caption track *index* of the current server.

        A failed fetch disables captions; playback is unaffected.
        """
        tracks = self.caption_tracks()
        if not 0 <= index < len(tracks):
            raise ValueError(f"Caption index {index} out of range")
        if self._captions is None:
            self.disable_captions(reason="no caption source")
            return False

        self._caption_generation += 1
        generation = self._caption_generation
        track = tracks[index]
        try:
            text = await self._captions.fetch_text(track.file_url)
        except SubtitleFetchFailed as e:
            if generation == self._caption_generation:
                self.disable_captions(reason=str(e))
            return False

        cues = parse_subtitles(text)
        if generation != self._caption_generation:
            # Track or server changed while fetching.
            return False
        self._cues = cues
        self._caption_index = index
        log.info("captions_loaded", label=track.label, cues=len(cues))
        self._emit(SessionEventKind.CAPTIONS_LOADED, detail=track.label)
        return True

    def disable_captions(self, *, reason: str = "") -> None:
        self._caption_generation += 1
        self._cues = CueList()
        self._caption_index = None
        log.info("captions_disabled", reason=reason)
        self._emit(SessionEventKind.CAPTIONS_DISABLED, detail=reason)

    def active_cue_text(self, position: float) -> str:
        return self._cues.active_text(position)

    # ------------------------------------------------------------------
    # Skip windows
    # ------------------------------------------------------------------

    def _window(self, which: str) -> SkipWindow | None:
        server = self.current_server()
        if server is None:
            return None
        return server.intro if which == "intro" else server.outro

    def intro_window_at(self, position: float) -> bool:
        window = self._window("intro")
        return window is not None and window.contains(position)

    def outro_window_at(self, position: float) -> bool:
        window = self._window("outro")
        return window is not None and window.contains(position)

    async def _skip(self, which: str) -> bool:
        window = self._window(which)
        if window is None or not self._opened:
            return False
        await self._player.seek(float(window.end))
        self._position = float(window.end)
        log.debug("skip_window", window=which, to=window.end)
        return True

    async def skip_intro(self) -> bool:
        """Seek to the end of the intro; False when there is none."""
        return await self._skip("intro")

    async def skip_outro(self) -> bool:
        return await self._skip("outro")

    # ------------------------------------------------------------------
    # Teardown
    # ------------------------------------------------------------------

    async def aclose(self) -> None:
        """Cancel in-flight work and dispose the player (idempotent)."""
        if self._closed:
            return
        self._closed = True
        load = self._load_task
        if load is not None and not load.done():
            load.cancel()
            await asyncio.wait([load])
        task = self._caption_task
        self._reset_captions()
        if task is not None and not task.done():
            with contextlib.suppress(asyncio.CancelledError):
                await task
        try:
            await self._release_player()
        finally:
            await self._player.aclose()
        self._listeners.clear()
        log.debug("session_closed", attempts=self._attempts)
