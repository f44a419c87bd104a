"""
Shared fixtures: deterministic clock, converted assets, and a clean
process-wide capture slot / event queue for every test.
"""
import os

os.environ.setdefault("SDL_VIDEODRIVER", "dummy")
os.environ.setdefault("SDL_AUDIODRIVER", "dummy")

import pytest

from capture import CaptureSession
from events import EventManager
from media_ingest import ConversionStatus, MediaAsset, MediaHandle
from timing import SteppedScheduler


def make_assets(n: int) -> list[MediaAsset]:
    return [
        MediaAsset(
            id=1000 + i,
            handle=MediaHandle(b"img-%d" % i, "image/png", f"{i}.png"),
            ordinal=i,
            status=ConversionStatus.CONVERTED,
        )
        for i in range(n)
    ]


@pytest.fixture
def scheduler():
    return SteppedScheduler()


@pytest.fixture
def assets():
    return make_assets(3)


@pytest.fixture(autouse=True)
def _reset_globals():
    CaptureSession._active = None
    EventManager.clear()
    yield
    CaptureSession._active = None
    EventManager.clear()
