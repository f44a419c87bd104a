import asyncio
import gc
import io
import os

import av
import numpy as np
import pygame
import pytest

import config
from capture import (CaptureSession, CaptureStatus, PygameSurfaceSource, WebmEncoder)
from conftest import make_assets
from errors import CaptureSourceError, ConflictError, PreconditionError
from playback import PlaybackSession


class FakeStream:
    def __init__(self, frames=True):
        self.frames = frames
        self.reads = 0
        self.closed = False

    def read(self):
        if not self.frames or self.closed:
            return None
        self.reads += 1
        return np.full((4, 6, 3), self.reads % 255, dtype=np.uint8)

    def close(self):
        self.closed = True


class FakeSource:
    def __init__(self, frames=True, fail=None):
        self.stream = FakeStream(frames)
        self.fail = fail
        self.acquired = 0

    async def acquire(self):
        self.acquired += 1
        if self.fail is not None:
            raise self.fail
        return self.stream


class FakeEncoder:
    instances = []

    def __init__(self, fps):
        self.fps = fps
        self.frames = 0
        self.finished = 0
        FakeEncoder.instances.append(self)

    def add(self, frame):
        self.frames += 1

    def finish(self):
        self.finished += 1
        return b"webm" * self.frames


def session_of(n, interval_ms=4000):
    return PlaybackSession(assets=tuple(make_assets(n)), interval_ms=interval_ms)


def recorder(scheduler, tmp_path, source=None, fps=10):
    return CaptureSession(scheduler, source or FakeSource(), str(tmp_path), fps, FakeEncoder)


@pytest.mark.asyncio
async def test_planned_duration_is_slides_times_budget(scheduler, tmp_path):
    rec = recorder(scheduler, tmp_path)
    session = session_of(3)
    job = await rec.start(session, per_asset_ms=2500)

    assert job.status is CaptureStatus.RECORDING
    assert job.planned_duration_ms == 7500
    assert job.started_at == 0
    assert CaptureSession.active_job() is job

    session.assets = session.assets + tuple(make_assets(2))   # fixed at start
    assert job.planned_duration_ms == 7500


@pytest.mark.asyncio
async def test_stops_itself_at_the_planned_deadline(scheduler, tmp_path):
    source = FakeSource()
    rec = recorder(scheduler, tmp_path, source, fps=10)
    job = await rec.start(session_of(2), per_asset_ms=1000)

    scheduler.advance(1999)
    assert job.status is CaptureStatus.RECORDING
    scheduler.advance(1)
    await job.wait()

    assert job.status is CaptureStatus.COMPLETED
    assert source.stream.closed
    assert job.artifact.path == os.path.join(str(tmp_path), config.OUTPUT_NAME)
    assert job.artifact.mime == "video/webm"
    # one frame at start, then one every 100 ms until the deadline
    assert job.artifact.frame_count == 20
    with open(job.artifact.path, "rb") as f:
        assert f.read() == b"webm" * 20
    assert CaptureSession.active_job() is None


@pytest.mark.asyncio
async def test_second_start_while_recording_conflicts(scheduler, tmp_path):
    first = recorder(scheduler, tmp_path)
    job = await first.start(session_of(2), 1000)

    other_source = FakeSource()
    with pytest.raises(ConflictError):
        await recorder(scheduler, tmp_path, other_source).start(session_of(1), 1000)

    assert other_source.acquired == 0
    assert job.status is CaptureStatus.RECORDING
    assert job.planned_duration_ms == 2000
    assert CaptureSession.active_job() is job


@pytest.mark.asyncio
async def test_empty_session_is_a_precondition_failure(scheduler, tmp_path):
    source = FakeSource()
    with pytest.raises(PreconditionError):
        await recorder(scheduler, tmp_path, source).start(session_of(0), 1000)
    assert source.acquired == 0
    assert CaptureSession.active_job() is None


@pytest.mark.asyncio
async def test_source_refusal_aborts_without_artifact(scheduler, tmp_path):
    rec = recorder(scheduler, tmp_path, FakeSource(fail=PermissionError("denied")))
    with pytest.raises(CaptureSourceError) as err:
        await rec.start(session_of(2), 1000)

    job = err.value.job
    assert job.status is CaptureStatus.ABORTED
    assert job.artifact is None
    assert isinstance(job.error, PermissionError)
    assert CaptureSession.active_job() is None
    assert scheduler.pending == 0
    assert not os.path.exists(os.path.join(str(tmp_path), config.OUTPUT_NAME))

    # the slot is free again
    job2 = await recorder(scheduler, tmp_path).start(session_of(1), 1000)
    assert job2.status is CaptureStatus.RECORDING


@pytest.mark.asyncio
async def test_stop_is_idempotent(scheduler, tmp_path):
    rec = recorder(scheduler, tmp_path)
    job = await rec.start(session_of(3), 1000)
    scheduler.advance(250)

    artifact = await rec.stop()
    again = await rec.stop(job)
    scheduler.advance(10_000)                    # deadline was cancelled

    assert again is artifact
    assert job.status is CaptureStatus.COMPLETED
    assert FakeEncoder.instances[-1].finished == 1
    assert scheduler.pending == 0


@pytest.mark.asyncio
async def test_stop_without_a_job_is_harmless(scheduler, tmp_path):
    assert await recorder(scheduler, tmp_path).stop() is None


@pytest.mark.asyncio
async def test_stop_before_any_frame_gives_empty_artifact(scheduler, tmp_path):
    rec = CaptureSession(scheduler, FakeSource(frames=False), str(tmp_path), 10)
    job = await rec.start(session_of(1), 1000)
    artifact = await rec.stop(job)

    assert job.status is CaptureStatus.COMPLETED
    assert artifact.frame_count == 0
    assert artifact.size == 0
    assert os.path.getsize(artifact.path) == 0


@pytest.mark.asyncio
async def test_encoder_failure_aborts_and_frees_slot(scheduler, tmp_path):
    class Broken(FakeEncoder):
        def finish(self):
            raise RuntimeError("disk full")

    rec = CaptureSession(scheduler, FakeSource(), str(tmp_path), 10, Broken)
    job = await rec.start(session_of(1), 1000)
    with pytest.raises(RuntimeError):
        await rec.stop(job)
    assert job.status is CaptureStatus.ABORTED
    assert job.artifact is None
    assert CaptureSession.active_job() is None


def test_webm_encoder_writes_decodable_video():
    enc = WebmEncoder(fps=10)
    for i in range(3):
        frame = np.zeros((49, 65, 3), dtype=np.uint8)   # odd sizes get cropped
        frame[..., i] = 200
        enc.add(frame)
    data = enc.finish()
    assert enc.frames == 3
    assert data

    with av.open(io.BytesIO(data)) as box:
        stream = box.streams.video[0]
        decoded = list(box.decode(stream))
    assert len(decoded) == 3
    assert (decoded[0].width, decoded[0].height) == (64, 48)


def test_webm_encoder_with_no_frames_is_empty():
    assert WebmEncoder(fps=10).finish() == b""


@pytest.mark.asyncio
async def test_pygame_source_reads_height_width_frames():
    surf = pygame.Surface((8, 6))
    surf.fill((10, 20, 30))
    stream = await PygameSurfaceSource(lambda: surf).acquire()
    frame = stream.read()
    assert frame.shape == (6, 8, 3)
    assert tuple(frame[0, 0]) == (10, 20, 30)
    stream.close()
    assert stream.read() is None


@pytest.mark.asyncio
async def test_pygame_source_without_surface_refuses():
    with pytest.raises(CaptureSourceError):
        await PygameSurfaceSource(lambda: None).acquire()


@pytest.mark.asyncio
async def test_auto_stop_failure_is_kept_on_the_job(scheduler, tmp_path):
    class Broken(FakeEncoder):
        def finish(self):
            raise RuntimeError("disk full")

    loop = asyncio.get_running_loop()
    reported = []
    loop.set_exception_handler(lambda _loop, ctx: reported.append(ctx))
    try:
        rec = CaptureSession(scheduler, FakeSource(), str(tmp_path), 10, Broken)
        job = await rec.start(session_of(1), 50)
        scheduler.advance(50)
        await job.wait()
        await asyncio.sleep(0)

        assert job.status is CaptureStatus.ABORTED
        assert isinstance(job.error, RuntimeError)
        assert CaptureSession.active_job() is None

        rec._stop_task = None
        gc.collect()
        await asyncio.sleep(0)
        assert reported == []
    finally:
        loop.set_exception_handler(None)


@pytest.mark.asyncio
async def test_first_frame_failure_releases_everything(scheduler, tmp_path):
    class Exploding(FakeStream):
        def read(self):
            raise OSError("surface lost")

    source = FakeSource()
    source.stream = Exploding()
    rec = recorder(scheduler, tmp_path, source)

    with pytest.raises(CaptureSourceError) as err:
        await rec.start(session_of(2), 1000)

    job = err.value.job
    assert job.status is CaptureStatus.ABORTED
    assert isinstance(job.error, OSError)
    assert source.stream.closed
    assert scheduler.pending == 0
    assert CaptureSession.active_job() is None


@pytest.mark.asyncio
async def test_cancel_only_applies_before_recording(scheduler, tmp_path):
    rec = recorder(scheduler, tmp_path)
    assert rec.cancel() is False
    job = await rec.start(session_of(1), 1000)
    assert rec.cancel(job) is False
    assert job.status is CaptureStatus.RECORDING
