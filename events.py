#!/usr/bin/env python3
"""
events.py  – central hub

• Translates raw Pygame events (keys, mouse/touch drags) to high-level
  action dicts.
• Exposes a thread-safe queue so *any* external source can inject the
  same actions (remote, test harness, etc.).

Actions
-------
{"type": "advance", "direction": ±1}
{"type": "toggle_play"}
{"type": "record"}
{"type": "close"}
{"type": "toggle_fullscreen"}
{"type": "quit"}
"""

from __future__ import annotations
import queue
from typing import Optional

from pygame.locals import *

import config

Action = dict      # alias for readability


class EventManager:
    _fifo: "queue.Queue[Action]" = queue.Queue()      # global, thread-safe
    _drag_x: Optional[int] = None                    # x where the current drag began

    # ── SDL / keyboard / pointer path ──────────────────────────────────
    @classmethod
    def handle(cls, event, presenting: bool) -> None:
        """Translate one Pygame event → action and enqueue it."""
        act = cls._translate_pygame(event, presenting)
        if act:
            cls._fifo.put(act)

    # ── external / programmatic path ───────────────────────────────────
    @classmethod
    def post(cls, action: Action) -> None:
        """
        Any thread may call this to inject an already-formed action dict, e.g.:
            EventManager.post({"type": "advance", "direction": -1})
        """
        cls._fifo.put(action)

    # ── main-loop consumer ─────────────────────────────────────────────
    @classmethod
    def poll(cls) -> Action | None:
        """Return next queued action or None (non-blocking)."""
        try:
            return cls._fifo.get_nowait()
        except queue.Empty:
            return None

    @classmethod
    def clear(cls) -> None:
        cls._drag_x = None
        while cls.poll() is not None:
            pass

    # ── internal translator ───────────────────────────────────────────
    @classmethod
    def _translate_pygame(cls, event, presenting: bool) -> Action | None:
        if event.type == QUIT:
            return {"type": "quit"}

        if event.type == KEYDOWN:
            if event.key == K_q:
                return {"type": "quit"}
            if event.key == K_f:
                return {"type": "toggle_fullscreen"}
            if not presenting:
                return None
            if event.key == K_ESCAPE:
                return {"type": "close"}
            if event.key in (K_RIGHT, K_SPACE):
                return {"type": "advance", "direction": 1}
            if event.key == K_LEFT:
                return {"type": "advance", "direction": -1}
            if event.key == K_p:
                return {"type": "toggle_play"}
            if event.key == K_r:
                return {"type": "record"}
            return None

        # swipe: drag right → previous slide, drag left → next slide
        if event.type == MOUSEBUTTONDOWN and event.button == 1:
            cls._drag_x = event.pos[0]
            return None
        if event.type == MOUSEBUTTONUP and event.button == 1 and cls._drag_x is not None:
            dx, cls._drag_x = event.pos[0] - cls._drag_x, None
            if not presenting:
                return None
            if dx > config.SWIPE_THRESHOLD:
                return {"type": "advance", "direction": -1}
            if dx < -config.SWIPE_THRESHOLD:
                return {"type": "advance", "direction": 1}

        return None
