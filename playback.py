"""
playback.py

Slideshow state machine.

    IDLE ──start()──▶ PLAYING ⇄ PAUSED ──close()──▶ IDLE
                        (toggle_play)

`advance()` is the only way the position moves.  The autoplay timer and
manual gestures (keys, swipes) both call it, with no lock between them.

Manual advances do **not** reset the autoplay timer: a swipe just before
a scheduled tick is followed by that tick, so two advances can land close
together.  Pausing and resuming is the only thing that restarts the
interval.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, List, Optional, Sequence

import config
from errors import PreconditionError
from media_ingest import ConversionStatus, MediaAsset
from timing import Scheduler, TimerHandle
from transitions import TransitionMode, TransitionPlanner, TransitionSpec

log = logging.getLogger(__name__)


class PlaybackState(Enum):
    IDLE    = "idle"
    PLAYING = "playing"
    PAUSED  = "paused"


@dataclass
class PlaybackSession:
    assets: tuple[MediaAsset, ...]
    interval_ms: float
    current_index: int = 0
    is_playing: bool = True
    last_direction: int = 0

    def __len__(self) -> int:
        return len(self.assets)

    @property
    def current(self) -> MediaAsset:
        return self.assets[self.current_index]


Listener = Callable[[PlaybackSession, TransitionSpec], None]


class PlaybackController:
    """Owns the single live PlaybackSession and its autoplay timer."""

    def __init__(self,
                 scheduler: Scheduler,
                 planner: TransitionPlanner | None = None,
                 interval_ms: float | None = None,
                 mode: TransitionMode | None = None) -> None:
        self.scheduler   = scheduler
        self.planner     = planner or TransitionPlanner()
        self.interval_ms = config.AUTO_ADVANCE_MS if interval_ms is None else interval_ms
        self.mode        = mode
        self.session: Optional[PlaybackSession] = None
        self.last_transition: Optional[TransitionSpec] = None
        self._timer: Optional[TimerHandle] = None
        self._listeners: List[Listener] = []

    # ---------------------------------------------------------------- state
    @property
    def state(self) -> PlaybackState:
        if self.session is None:
            return PlaybackState.IDLE
        return PlaybackState.PLAYING if self.session.is_playing else PlaybackState.PAUSED

    def add_listener(self, fn: Listener) -> None:
        self._listeners.append(fn)

    def remove_listener(self, fn: Listener) -> None:
        if fn in self._listeners:
            self._listeners.remove(fn)

    def _require_session(self) -> PlaybackSession:
        if self.session is None:
            raise PreconditionError("no presentation is running")
        return self.session

    # ----------------------------------------------------------- operations
    def start(self, assets: Sequence[MediaAsset]) -> PlaybackSession:
        if self.session is not None:
            raise PreconditionError("a presentation is already running")
        if not assets:
            raise PreconditionError("cannot start a presentation with no slides")
        if any(a.status is not ConversionStatus.CONVERTED for a in assets):
            raise PreconditionError("only converted assets can be presented")

        self.session = PlaybackSession(assets=tuple(assets), interval_ms=self.interval_ms)
        self._arm()
        log.info("[playback] started: %d slide(s), %.0f ms per slide",
                 len(self.session), self.interval_ms)
        return self.session

    def advance(self, direction: int) -> TransitionSpec:
        session = self._require_session()
        spec = self.planner.plan(direction, self.mode)

        n = len(session)
        session.current_index  = (session.current_index + direction + n) % n
        session.last_direction = direction
        self.last_transition   = spec
        log.debug("[playback] advance %+d → %d/%d", direction, session.current_index + 1, n)

        for fn in list(self._listeners):
            fn(session, spec)
        return spec

    def toggle_play(self) -> bool:
        session = self._require_session()
        session.is_playing = not session.is_playing
        if session.is_playing:
            self._arm()
        else:
            self._disarm()
        log.info("[playback] %s", "playing" if session.is_playing else "paused")
        return session.is_playing

    def hold(self) -> None:
        """Disarm autoplay without touching play state; used right before close()."""
        self._disarm()

    def close(self) -> None:
        session = self.session
        if session is None:
            return
        self._disarm()
        for asset in session.assets:
            if asset.handle is not None:
                asset.handle.release()
        self.session = None
        self.last_transition = None
        log.info("[playback] closed")

    # ------------------------------------------------------------ autoplay
    def _arm(self) -> None:
        self._disarm()
        self._timer = self.scheduler.call_later(self.interval_ms, self._on_tick)

    def _disarm(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _on_tick(self) -> None:
        self._timer = None
        session = self.session
        if session is None or not session.is_playing:
            return
        self.advance(+1)
        # a listener may have paused or closed the session
        if self.session is session and session.is_playing and self._timer is None:
            self._arm()
