#!/usr/bin/env python3
"""
app.py – pygame front end for the slideshow

Runs the window, the soundtrack and the draw loop on one asyncio event
loop.  Input is dispatched by events.py; all state changes go through the
Studio (ingest → playback → capture).
"""
from __future__ import annotations

import asyncio
import logging
import time
from typing import Dict, Optional, Sequence

import pygame

import config
from capture import PygameSurfaceSource
from errors import ConflictError, PreconditionError
from events import EventManager
from media_ingest import MediaAsset, RawFile
from overlays import draw_overlay
from playback import PlaybackSession
from renderer import render_slide
from studio import Studio
from timing import LoopScheduler
from transitions import REST, TransitionSpec, poses

log = logging.getLogger(__name__)


class SlideshowApp:
    def __init__(self,
                 files: Sequence[RawFile],
                 record: bool = False,
                 mode: Optional[str] = None,
                 output_dir: Optional[str] = None):
        self.files      = list(files)
        self.record     = record
        self.mode       = mode
        self.output_dir = output_dir

        # window ----------------------------------------------------------
        pygame.init()
        self.audio_ok = True
        try:
            pygame.mixer.init()
        except pygame.error as exc:
            log.warning("[app] no audio device, soundtrack disabled: %s", exc)
            self.audio_ok = False
        self.screen = self._set_mode()

        # view state ------------------------------------------------------
        self.images: Dict[int, pygame.Surface] = {}
        self.prev_index: Optional[int] = None
        self.transition: Optional[TransitionSpec] = None
        self.transition_start = 0.0
        self.overlay_expire   = 0.0
        self.error_text: Optional[str] = None
        self.error_expire     = 0.0
        self.studio: Optional[Studio] = None

    def _set_mode(self) -> pygame.Surface:
        return pygame.display.set_mode(
            (0, 0) if config.FULLSCREEN else config.WINDOWED_SIZE,
            pygame.FULLSCREEN if config.FULLSCREEN else 0,
        )

    # ── helpers ─────────────────────────────────────────────────────────────
    def _flash_error(self, text: str) -> None:
        self.error_text   = text
        self.error_expire = time.time() + config.ERROR_DURATION

    def _image(self, asset: MediaAsset) -> Optional[pygame.Surface]:
        if asset.id not in self.images:
            try:
                surf = pygame.image.load(asset.handle.open(), asset.name).convert_alpha()
            except (pygame.error, ValueError) as exc:
                log.warning("[app] cannot decode %s: %s", asset.name, exc)
                surf = None
            self.images[asset.id] = surf
        return self.images[asset.id]

    def _on_advance(self, session: PlaybackSession, spec: TransitionSpec) -> None:
        n = len(session)
        self.prev_index       = (session.current_index - spec.direction) % n
        self.transition       = spec
        self.transition_start = time.time()
        self.overlay_expire   = time.time() + config.OVERLAY_DURATION

    def _start_music(self) -> None:
        track = self.studio.soundtrack
        if track is None or not self.audio_ok:
            return
        try:
            pygame.mixer.music.load(track.open(), track.name)
            pygame.mixer.music.play(loops=-1)
        except pygame.error as exc:
            log.warning("[app] soundtrack %s not playable: %s", track.name, exc)

    async def _record(self) -> None:
        try:
            job = await self.studio.save_video()
        except (ConflictError, PreconditionError) as exc:
            self._flash_error(str(exc))
            return
        if job is None:
            self._flash_error(f"Cannot record: {self.studio.last_error}")
            return
        await job.wait()
        if job.artifact is not None:
            self._flash_error(f"Saved {job.artifact.name}")
        elif job.error is not None:
            self._flash_error(f"Recording failed: {job.error}")

    # ── drawing ─────────────────────────────────────────────────────────────
    def _draw(self, session: PlaybackSession) -> None:
        bgs = config.BACKGROUNDS
        self.screen.fill(bgs[session.current_index % len(bgs)])

        progress = 1.0
        if self.transition is not None:
            progress = (time.time() - self.transition_start) / config.TRANSITION_SEC
            if progress >= 1.0:
                self.transition = None

        if self.transition is not None and self.prev_index is not None:
            out_pose, in_pose = poses(self.transition, progress)
            prev = self._image(session.assets[self.prev_index])
            if prev is not None:
                render_slide(self.screen, prev, out_pose)
        else:
            in_pose = REST
        cur = self._image(session.current)
        if cur is not None:
            render_slide(self.screen, cur, in_pose)

        now = time.time()
        job = self.studio.recording
        draw_overlay(
            self.screen,
            (session.current_index + 1, len(session)) if now < self.overlay_expire or not session.is_playing else None,
            not session.is_playing,
            self.studio.scheduler.now_ms() - job.started_at if job and job.started_at is not None else None,
            job.planned_duration_ms if job else None,
            self.error_text if now < self.error_expire else None,
        )

    # ── main loop ───────────────────────────────────────────────────────────
    async def run(self) -> None:
        self.studio = Studio(
            LoopScheduler(),
            mode=self.mode,
            output_dir=self.output_dir,
            source=PygameSurfaceSource(lambda: self.screen),
        )
        n = await self.studio.load(self.files)
        if not n:
            log.error("[app] nothing to show – no usable images")
            pygame.quit()
            return

        self.studio.player.add_listener(self._on_advance)
        session = self.studio.present()
        self.overlay_expire = time.time() + config.OVERLAY_DURATION
        self._start_music()
        tasks: set[asyncio.Task] = set()

        def _spawn_record() -> None:
            t = asyncio.create_task(self._record())
            tasks.add(t)
            t.add_done_callback(tasks.discard)

        if self.record:
            _spawn_record()

        running = True
        while running:
            for e in pygame.event.get():
                EventManager.handle(e, presenting=True)

            while (act := EventManager.poll()):
                t = act["type"]
                if t in ("quit", "close"):
                    running = False
                elif t == "advance":
                    self.studio.player.advance(act.get("direction", 1))
                elif t == "toggle_play":
                    self.studio.player.toggle_play()
                    self.overlay_expire = time.time() + config.OVERLAY_DURATION
                elif t == "record":
                    _spawn_record()
                elif t == "toggle_fullscreen":
                    config.FULLSCREEN ^= True
                    self.screen = self._set_mode()

            self._draw(session)
            pygame.display.flip()
            await asyncio.sleep(1 / config.FPS)

        await self.studio.exit()
        for t in list(tasks):
            t.cancel()
        if self.audio_ok:
            pygame.mixer.music.stop()
        pygame.quit()
