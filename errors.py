"""
errors.py – failure taxonomy shared by ingest, playback and capture.
"""
from __future__ import annotations

from typing import Any


class SlideshowError(Exception):
    """Base class for every failure this package reports."""


class PreconditionError(SlideshowError):
    """Operation invoked without its required input (e.g. zero slides)."""


class ConversionError(SlideshowError):
    """A single file could not be made displayable. Never fatal."""


class ConflictError(SlideshowError):
    """A capture was requested while another one is still recording."""


class CaptureSourceError(SlideshowError):
    """The capturable surface could not be acquired."""

    def __init__(self, message: str, job: Any = None) -> None:
        super().__init__(message)
        self.job = job
