"""
capture.py – records the running presentation into a single WebM file.

The recording length is fixed when the job starts:

    planned_duration_ms = number of slides × per-slide duration

and the job stops itself at that deadline (or earlier, on `stop()`).  The
recorder never looks at slide content or transitions; it samples whatever
the capture source shows, at `config.CAPTURE_FPS`.

Only one job may hold the capture source at a time, process-wide.
"""
from __future__ import annotations

import asyncio
import io
import logging
import os
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, ClassVar, List, Optional, Protocol

import av
import numpy as np
import pygame

import config
from errors import CaptureSourceError, ConflictError, PreconditionError
from playback import PlaybackSession
from timing import Scheduler, TimerHandle

log = logging.getLogger(__name__)


# ── sources ─────────────────────────────────────────────────────────────────
class FrameStream(Protocol):
    def read(self) -> Optional[np.ndarray]: ...

    def close(self) -> None: ...


class SurfaceSource(Protocol):
    async def acquire(self) -> FrameStream: ...


class _SurfaceStream:
    def __init__(self, surface_fn: Callable[[], Optional[pygame.Surface]]):
        self._surface_fn = surface_fn
        self.closed = False

    def read(self) -> Optional[np.ndarray]:
        if self.closed:
            return None
        surf = self._surface_fn()
        if surf is None:
            return None
        # surfarray is (W, H, 3); encoders want (H, W, 3)
        return np.ascontiguousarray(pygame.surfarray.array3d(surf).swapaxes(0, 1))

    def close(self) -> None:
        self.closed = True


class PygameSurfaceSource:
    """Captures a pygame surface (by default the display surface)."""

    def __init__(self, surface_fn: Callable[[], Optional[pygame.Surface]] | None = None):
        self.surface_fn = surface_fn or pygame.display.get_surface

    async def acquire(self) -> FrameStream:
        try:
            surf = self.surface_fn()
        except pygame.error as exc:
            raise CaptureSourceError(f"display unavailable: {exc}") from exc
        if surf is None:
            raise CaptureSourceError("no display surface to capture")
        return _SurfaceStream(self.surface_fn)


# ── encoder ─────────────────────────────────────────────────────────────────
class WebmEncoder:
    """
    Incremental VP8/WebM encoder.  Encoded packets are buffered in memory;
    `finish()` flushes and returns the whole file.
    """

    def __init__(self, fps: int, codec: str | None = None, bit_rate: int | None = None):
        self.fps      = fps
        self.codec    = codec or config.OUTPUT_CODEC
        self.bit_rate = bit_rate or config.OUTPUT_BITRATE
        self.frames   = 0
        self._buf     = io.BytesIO()
        self._box     = None
        self._stream  = None
        self._size: Optional[tuple[int, int]] = None

    def _open(self, w: int, h: int) -> None:
        self._box = av.open(self._buf, mode="w", format="webm")
        self._stream = self._box.add_stream(self.codec, rate=self.fps)
        self._stream.width    = w
        self._stream.height   = h
        self._stream.pix_fmt  = "yuv420p"
        self._stream.bit_rate = self.bit_rate
        self._size = (w, h)

    def add(self, frame: np.ndarray) -> None:
        h, w = frame.shape[0] & ~1, frame.shape[1] & ~1    # yuv420p wants even sizes
        if self._box is None:
            self._open(w, h)
        elif (w, h) != self._size:
            log.debug("[capture] dropping %dx%d frame (recording is %dx%d)", w, h, *self._size)
            return

        vf = av.VideoFrame.from_ndarray(np.ascontiguousarray(frame[:h, :w]), format="rgb24")
        for packet in self._stream.encode(vf):
            self._box.mux(packet)
        self.frames += 1

    def finish(self) -> bytes:
        if self._box is None:
            return b""
        for packet in self._stream.encode():
            self._box.mux(packet)
        self._box.close()
        self._box = None
        return self._buf.getvalue()


# ── jobs ────────────────────────────────────────────────────────────────────
class CaptureStatus(Enum):
    IDLE       = "idle"
    RECORDING  = "recording"
    FINALIZING = "finalizing"
    COMPLETED  = "completed"
    ABORTED    = "aborted"


@dataclass(frozen=True)
class CaptureArtifact:
    path: str
    mime: str
    frame_count: int
    size: int

    @property
    def name(self) -> str:
        return os.path.basename(self.path)


@dataclass
class CaptureJob:
    planned_duration_ms: float
    status: CaptureStatus = CaptureStatus.IDLE
    started_at: Optional[float] = None
    artifact: Optional[CaptureArtifact] = None
    error: Optional[BaseException] = None
    _done: asyncio.Event = field(default_factory=asyncio.Event, repr=False)

    @property
    def finished(self) -> bool:
        return self.status in (CaptureStatus.COMPLETED, CaptureStatus.ABORTED)

    async def wait(self) -> "CaptureJob":
        await self._done.wait()
        return self


EncoderFactory = Callable[[int], WebmEncoder]


class CaptureSession:
    """Drives one capture source for a planned duration and emits one artifact."""

    _active: ClassVar[Optional[CaptureJob]] = None      # process-wide slot

    def __init__(self,
                 scheduler: Scheduler,
                 source: SurfaceSource | None = None,
                 output_dir: str | None = None,
                 fps: int | None = None,
                 encoder_factory: EncoderFactory | None = None) -> None:
        self.scheduler  = scheduler
        self.source     = source or PygameSurfaceSource()
        self.output_dir = output_dir or config.OUTPUT_DIR
        self.fps        = fps or config.CAPTURE_FPS
        self.encoder_factory = encoder_factory or WebmEncoder
        self.job: Optional[CaptureJob] = None
        self._stream: Optional[FrameStream] = None
        self._encoder: Optional[WebmEncoder] = None
        self._deadline: Optional[TimerHandle] = None
        self._pump: Optional[TimerHandle] = None
        self._stop_task: Optional[asyncio.Task] = None

    @classmethod
    def active_job(cls) -> Optional[CaptureJob]:
        return cls._active

    @property
    def output_path(self) -> str:
        return os.path.join(self.output_dir, config.OUTPUT_NAME)

    # ---------------------------------------------------------------- start
    async def start(self, session: PlaybackSession, per_asset_ms: float | None = None) -> CaptureJob:
        active = CaptureSession._active
        if active is not None and not active.finished:
            raise ConflictError(f"a capture is already {active.status.value}")
        if session is None or not session.assets:
            raise PreconditionError("cannot record a presentation with no slides")

        per_asset_ms = config.PER_ASSET_MS if per_asset_ms is None else per_asset_ms
        job = CaptureJob(planned_duration_ms=len(session.assets) * per_asset_ms)
        CaptureSession._active = job              # hold the slot while acquiring
        self.job = job

        try:
            stream = await self.source.acquire()
        except Exception as exc:
            self._abort(job, exc)
            if isinstance(exc, CaptureSourceError):
                exc.job = job
                raise
            raise CaptureSourceError(f"capture source failed: {exc}", job) from exc

        if job.status is CaptureStatus.ABORTED:  # cancelled while acquiring
            stream.close()
            raise CaptureSourceError("capture cancelled before recording began", job)

        self._stream   = stream
        self._encoder  = self.encoder_factory(self.fps)
        job.status     = CaptureStatus.RECORDING
        job.started_at = self.scheduler.now_ms()
        self._deadline = self.scheduler.call_later(job.planned_duration_ms, self._on_deadline)
        log.info("[capture] recording %.1f s → %s", job.planned_duration_ms / 1000, self.output_path)

        try:
            self.sample()
        except Exception as exc:
            self._release()
            self._abort(job, exc)
            raise CaptureSourceError(f"capture source failed: {exc}", job) from exc
        self._arm_pump()
        return job

    def cancel(self, job: CaptureJob | None = None) -> bool:
        """
        Abandon a job whose source is still being acquired.  The source is
        closed as soon as acquisition returns; nothing is recorded.
        """
        job = job or self.job
        if job is None or job.status is not CaptureStatus.IDLE:
            return False
        self._abort(job, CaptureSourceError("capture cancelled", job))
        return True

    def _release(self) -> None:
        for timer in (self._deadline, self._pump):
            if timer is not None:
                timer.cancel()
        self._deadline = self._pump = None
        self._encoder = None
        try:
            if self._stream is not None:
                self._stream.close()
        finally:
            self._stream = None

    def _abort(self, job: CaptureJob, exc: BaseException) -> None:
        if job.finished:
            return
        job.status = CaptureStatus.ABORTED
        job.error  = exc
        job._done.set()
        if CaptureSession._active is job:
            CaptureSession._active = None
        log.warning("[capture] aborted: %s", exc)

    # -------------------------------------------------------------- sampling
    def sample(self) -> bool:
        """Buffer one frame from the source.  False if nothing was taken."""
        job = self.job
        if job is None or job.status is not CaptureStatus.RECORDING or self._stream is None:
            return False
        frame = self._stream.read()
        if frame is None:
            return False
        self._encoder.add(frame)
        return True

    def _arm_pump(self) -> None:
        self._pump = self.scheduler.call_later(1000.0 / self.fps, self._on_pump)

    def _on_pump(self) -> None:
        self._pump = None
        if self.job is not None and self.job.status is CaptureStatus.RECORDING:
            self.sample()
            self._arm_pump()

    def _on_deadline(self) -> None:
        self._deadline = None
        job = self.job
        if job is not None and job.status is CaptureStatus.RECORDING:
            log.debug("[capture] planned duration reached")
            if self._pump is not None:           # nothing past the deadline
                self._pump.cancel()
                self._pump = None
            self._stop_task = asyncio.ensure_future(self.stop(job))
            self._stop_task.add_done_callback(_retrieve)

    # ------------------------------------------------------------------ stop
    async def stop(self, job: CaptureJob | None = None) -> Optional[CaptureArtifact]:
        """
        Finish recording and write the artifact.  A job that is not
        recording is left alone and its current artifact (if any) returned.
        """
        job = job or self.job
        if job is None or job.status is not CaptureStatus.RECORDING:
            return job.artifact if job else None

        job.status = CaptureStatus.FINALIZING
        encoder = self._encoder
        self._release()

        try:
            data = await asyncio.to_thread(encoder.finish)
            path = self.output_path
            await asyncio.to_thread(_write_file, path, data)
        except Exception as exc:
            self._abort(job, exc)
            raise

        job.artifact = CaptureArtifact(path=path, mime="video/webm",
                                       frame_count=encoder.frames, size=len(data))
        job.status = CaptureStatus.COMPLETED
        job._done.set()
        if CaptureSession._active is job:
            CaptureSession._active = None
        log.info("[capture] saved %s (%d frames, %d bytes)", path, encoder.frames, len(data))
        return job.artifact


def _retrieve(task: asyncio.Task) -> None:
    # the failure is already on job.error; only mark it as seen
    if not task.cancelled():
        task.exception()


def _write_file(path: str, data: bytes) -> None:
    os.makedirs(os.path.dirname(os.path.abspath(path)), exist_ok=True)
    with open(path, "wb") as f:
        f.write(data)
