"""
media_ingest.py – turns picked files into displayable slides.

Every picked file becomes one MediaAsset.  Camera-native containers
(HEIC/HEIF) are re-encoded to JPEG through a conversion capability; all
other images are displayed as-is.  A file that fails to convert is logged
and dropped; the rest keep their submission order.
"""
from __future__ import annotations

import asyncio
import io
import itertools
import logging
import mimetypes
import os
from dataclasses import dataclass, replace
from enum import Enum
from typing import Awaitable, Callable, Iterable, Optional, Sequence

import pillow_heif
from PIL import Image

import config
from errors import ConversionError

log = logging.getLogger(__name__)

_ids = itertools.count(1)

pillow_heif.register_heif_opener()


# ── raw input ───────────────────────────────────────────────────────────────
@dataclass(frozen=True)
class RawFile:
    """Opaque blob plus the name/type hint the file picker gave us."""
    name: str
    data: bytes
    mime: Optional[str] = None

    @classmethod
    def from_path(cls, path: str) -> "RawFile":
        with open(path, "rb") as f:
            data = f.read()
        mime, _ = mimetypes.guess_type(path)
        return cls(name=os.path.basename(path), data=data, mime=mime)

    @property
    def suffix(self) -> str:
        return os.path.splitext(self.name)[1].lower()


def is_audio(raw: RawFile) -> bool:
    if raw.mime:
        return raw.mime.startswith("audio/")
    return raw.suffix in config.AUDIO_SUFFIXES


def needs_conversion(raw: RawFile) -> bool:
    """True for formats the display cannot decode natively."""
    if raw.mime and raw.mime.lower() in config.CONVERT_MIME_TYPES:
        return True
    return raw.suffix in config.CONVERT_SUFFIXES


# ── handles ─────────────────────────────────────────────────────────────────
class MediaHandle:
    """
    Process-local displayable blob.  Held by exactly one session and
    released when that session closes.
    """

    def __init__(self, data: bytes, mime: str, name: str = ""):
        self._data: Optional[bytes] = data
        self.mime = mime
        self.name = name

    @property
    def released(self) -> bool:
        return self._data is None

    @property
    def size(self) -> int:
        return len(self._data) if self._data is not None else 0

    def open(self) -> io.BytesIO:
        if self._data is None:
            raise ValueError(f"handle {self.name!r} already released")
        return io.BytesIO(self._data)

    def release(self) -> None:
        self._data = None

    def __repr__(self) -> str:
        state = "released" if self.released else f"{self.size} B"
        return f"<MediaHandle {self.name!r} {self.mime} {state}>"


# ── assets ──────────────────────────────────────────────────────────────────
class ConversionStatus(Enum):
    PENDING   = "pending"
    CONVERTED = "converted"
    FAILED    = "failed"


@dataclass(frozen=True)
class MediaAsset:
    id: int
    handle: Optional[MediaHandle]
    ordinal: int
    status: ConversionStatus = ConversionStatus.PENDING

    @property
    def name(self) -> str:
        return self.handle.name if self.handle else ""


Converter = Callable[[RawFile], Awaitable[bytes]]


def _pillow_to_jpeg(data: bytes, quality: int) -> bytes:
    with Image.open(io.BytesIO(data)) as im:
        out = io.BytesIO()
        im.convert("RGB").save(out, format="JPEG", quality=quality)
    return out.getvalue()


async def convert_with_pillow(raw: RawFile) -> bytes:
    """Default conversion capability: decode with Pillow, re-encode as JPEG."""
    try:
        return await asyncio.to_thread(_pillow_to_jpeg, raw.data, config.CONVERT_QUALITY)
    except (OSError, ValueError) as exc:
        raise ConversionError(f"{raw.name}: {exc}") from exc


# ── ingestor ────────────────────────────────────────────────────────────────
class MediaIngestor:
    """Converts a picked file list into ordered, displayable assets."""

    def __init__(self, converter: Converter | None = None) -> None:
        self.converter = converter or convert_with_pillow

    async def ingest(self, files: Sequence[RawFile]) -> list[MediaAsset]:
        slides = [(i, f) for i, f in enumerate(files) if not is_audio(f)]
        for f in files:
            if is_audio(f):
                log.debug("[ingest] %s is audio, not a slide", f.name)
        if not slides:
            return []

        log.info("[ingest] processing %d file(s) …", len(slides))
        results = await asyncio.gather(*(self._one(i, f) for i, f in slides))

        assets = sorted(
            (a for a in results if a.status is ConversionStatus.CONVERTED),
            key=lambda a: a.ordinal,
        )
        dropped = len(slides) - len(assets)
        if dropped:
            log.warning("[ingest] %d file(s) dropped, %d usable", dropped, len(assets))
        return assets

    async def _one(self, ordinal: int, raw: RawFile) -> MediaAsset:
        asset = MediaAsset(id=next(_ids), handle=None, ordinal=ordinal)

        if not needs_conversion(raw):
            handle = MediaHandle(raw.data, raw.mime or "application/octet-stream", raw.name)
            return replace(asset, handle=handle, status=ConversionStatus.CONVERTED)

        try:
            data = await self.converter(raw)
            if not isinstance(data, (bytes, bytearray)) or not data:
                raise ConversionError(f"{raw.name}: converter returned no image data")
        except Exception as exc:                      # any converter fault drops the file
            log.warning("[ingest] ! skipping unconvertible file %s: %s", raw.name, exc)
            return replace(asset, status=ConversionStatus.FAILED)

        handle = MediaHandle(bytes(data), "image/jpeg", raw.name)
        return replace(asset, handle=handle, status=ConversionStatus.CONVERTED)


# ── soundtrack ──────────────────────────────────────────────────────────────
def pick_soundtrack(files: Iterable[RawFile]) -> Optional[RawFile]:
    """First audio file in the pick, if any.  Extra audio files are ignored."""
    audio = [f for f in files if is_audio(f)]
    if len(audio) > 1:
        log.info("[ingest] %d audio files picked, using %s", len(audio), audio[0].name)
    return audio[0] if audio else None


def load_soundtrack(raw: RawFile) -> MediaHandle:
    mime = raw.mime or mimetypes.guess_type(raw.name)[0] or "audio/mpeg"
    return MediaHandle(raw.data, mime, raw.name)
