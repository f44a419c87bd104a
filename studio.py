"""
studio.py – one presentation lifecycle: load → present → (record) → exit.

Owns the ingestor, the playback controller and the capture recorder so
the front end only talks to one object.  Exiting always finishes an
active recording *before* the slides it was showing are released.
"""
from __future__ import annotations

import logging
import random
from typing import Optional, Sequence

import config
from capture import CaptureJob, CaptureSession, SurfaceSource
from errors import CaptureSourceError, PreconditionError
from media_ingest import (Converter, MediaAsset, MediaHandle, MediaIngestor,
                          RawFile, load_soundtrack, pick_soundtrack)
from playback import PlaybackController, PlaybackSession
from timing import Scheduler
from transitions import TransitionMode, TransitionPlanner

log = logging.getLogger(__name__)


class Studio:
    def __init__(self,
                 scheduler: Scheduler,
                 converter: Converter | None = None,
                 rng: random.Random | None = None,
                 source: SurfaceSource | None = None,
                 mode: TransitionMode | str | None = None,
                 output_dir: str | None = None,
                 interval_ms: float | None = None,
                 per_asset_ms: float | None = None,
                 recorder: CaptureSession | None = None) -> None:
        self.scheduler    = scheduler
        self.ingestor     = MediaIngestor(converter)
        self.planner      = TransitionPlanner(mode=mode, rng=rng)
        self.player       = PlaybackController(scheduler, self.planner, interval_ms)
        self.recorder     = recorder or CaptureSession(scheduler, source, output_dir)
        self.per_asset_ms = config.PER_ASSET_MS if per_asset_ms is None else per_asset_ms

        self.assets: list[MediaAsset] = []
        self.soundtrack: Optional[MediaHandle] = None
        self.last_error: Optional[Exception] = None

    @property
    def session(self) -> Optional[PlaybackSession]:
        return self.player.session

    @property
    def recording(self) -> Optional[CaptureJob]:
        job = self.recorder.job
        return job if job is not None and not job.finished else None

    # ---------------------------------------------------------------- load
    async def load(self, files: Sequence[RawFile]) -> int:
        """Ingest a fresh pick.  Replaces anything loaded but not yet presented."""
        if self.player.session is not None:
            raise PreconditionError("exit the running presentation before loading new files")
        self._release_pending()

        self.assets = await self.ingestor.ingest(files)
        track = pick_soundtrack(files)
        self.soundtrack = load_soundtrack(track) if track else None
        return len(self.assets)

    def present(self) -> PlaybackSession:
        session = self.player.start(self.assets)
        self.assets = []            # now owned by the session
        return session

    # -------------------------------------------------------------- capture
    async def save_video(self) -> Optional[CaptureJob]:
        """
        Start recording the running presentation.  Returns None (and sets
        `last_error`) when the capture source cannot be acquired; playback
        carries on regardless.
        """
        self.last_error = None
        try:
            return await self.recorder.start(self.player.session, self.per_asset_ms)
        except CaptureSourceError as exc:
            self.last_error = exc
            return None

    # ----------------------------------------------------------------- exit
    async def exit(self) -> None:
        self.player.hold()
        job = self.recording
        if job is not None and self.recorder.cancel(job):
            log.info("[studio] capture cancelled while acquiring its source")
        elif job is not None:
            log.info("[studio] finishing recording before exit")
            try:
                await self.recorder.stop(job)
                await job.wait()                # may already be finalizing
            except Exception as exc:
                self.last_error = exc
                log.error("[studio] recording could not be saved: %s", exc)
        self.player.close()
        self._release_pending()

    def _release_pending(self) -> None:
        for asset in self.assets:
            if asset.handle is not None:
                asset.handle.release()
        self.assets = []
        if self.soundtrack is not None:
            self.soundtrack.release()
            self.soundtrack = None
