"""
overlays.py

Pygame status badges for the slideshow: slide position, paused marker,
recording timer, and transient error text.
"""

from __future__ import annotations

import pygame

# ── colours ────────────────────────────────────────────────────────────────
WHITE = (255, 255, 255)
RED   = (255,  50, 50)
YEL   = (200, 200, 50)
BG    = (0, 0, 0, 150)


# ── helpers ────────────────────────────────────────────────────────────────
def _font_size(h: int) -> int:
    return max(16, h // 36)


def _fmt_ms(ms: float) -> str:
    sec = int(max(0, ms) // 1000)
    m, s = divmod(sec, 60)
    return f"{m:02d}:{s:02d}"


def _badge(surface: pygame.Surface, font, text: str, colour, pos: tuple[int, int], anchor: str) -> None:
    txt = font.render(text, True, colour)
    pad = font.get_height() // 3
    bg  = pygame.Surface((txt.get_width() + pad * 2, txt.get_height() + pad), pygame.SRCALPHA)
    bg.fill(BG)
    bg.blit(txt, (pad, pad // 2))
    rect = bg.get_rect(**{anchor: pos})
    surface.blit(bg, rect.topleft)


# ── main entry point ───────────────────────────────────────────────────────
def draw_overlay(
    surface: pygame.Surface,
    position: tuple[int, int] | None,
    paused: bool,
    rec_elapsed_ms: float | None = None,
    rec_total_ms: float | None = None,
    error: str | None = None,
) -> None:
    """
    position        – (1-based index, count) or None to hide the badge
    rec_elapsed_ms  – None when not recording
    """
    sw, sh = surface.get_size()
    font   = pygame.font.SysFont("monospace", _font_size(sh))
    margin = 10

    if position:
        idx, n = position
        label  = f"{idx} / {n}" + ("  paused" if paused else "")
        _badge(surface, font, label, WHITE, (sw - margin, margin), "topright")

    if rec_elapsed_ms is not None:
        label = f"REC {_fmt_ms(rec_elapsed_ms)}"
        if rec_total_ms:
            label += f" / {_fmt_ms(rec_total_ms)}"
        _badge(surface, font, label, RED, (margin, margin), "topleft")

    if error:
        _badge(surface, font, error, YEL, (sw // 2, sh - margin), "midbottom")
