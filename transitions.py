# transitions.py
"""
Transition planning between slides.

Two modes:
  • directional  – the new slide slides in from the side the user swiped
                   towards; the old one leaves the other way.
  • random_exit  – the old slide flies off to one of a fixed set of exit
                   points (config.EXIT_POINTS); the new one grows in.

A plan is computed fresh on every advance and only lives for the length
of one animation.  Random choices come from an injected `random.Random`
so a seeded planner always picks the same sequence.
"""
from __future__ import annotations

import random
from dataclasses import dataclass
from enum import Enum
from typing import NamedTuple, Sequence

import config


class TransitionMode(Enum):
    DIRECTIONAL     = "directional"
    RANDOMIZED_EXIT = "random_exit"


class Vector(NamedTuple):
    dx: float
    dy: float
    rotation: float


@dataclass(frozen=True)
class TransitionSpec:
    mode: TransitionMode
    vector: Vector
    direction: int


class Pose(NamedTuple):
    """Where to draw a slide: offset from centre, rotation, scale, opacity."""
    x: float
    y: float
    rotation: float
    scale: float
    alpha: float


class TransitionPlanner:
    def __init__(self,
                 mode: TransitionMode | str | None = None,
                 palette: Sequence[tuple[float, float, float]] | None = None,
                 rng: random.Random | None = None,
                 distance: float | None = None):
        self.mode     = TransitionMode(mode or config.TRANSITION_MODE)
        palette       = config.EXIT_POINTS if palette is None else palette
        self.palette  = tuple(Vector(*p) for p in palette)
        self.rng      = rng or random.Random()
        self.distance = config.SLIDE_DISTANCE if distance is None else distance
        if not self.palette:
            raise ValueError("exit palette must not be empty")

    def plan(self, direction: int, mode: TransitionMode | None = None) -> TransitionSpec:
        if direction not in (1, -1):
            raise ValueError(f"direction must be +1 or -1, got {direction!r}")
        mode = mode or self.mode

        if mode is TransitionMode.DIRECTIONAL:
            vec = Vector(direction * self.distance, 0.0, 0.0)
        else:
            vec = self.rng.choice(self.palette)
        return TransitionSpec(mode, vec, direction)


# ── animation ───────────────────────────────────────────────────────────────
REST = Pose(0.0, 0.0, 0.0, 1.0, 1.0)


def _ease(t: float) -> float:
    return t * t * (3.0 - 2.0 * t)


def poses(spec: TransitionSpec, progress: float) -> tuple[Pose, Pose]:
    """
    Return (outgoing, incoming) poses at `progress` ∈ [0, 1].
    At 0 the outgoing slide is at rest; at 1 the incoming one is.
    """
    t = _ease(min(1.0, max(0.0, progress)))
    v = spec.vector

    if spec.mode is TransitionMode.DIRECTIONAL:
        outgoing = Pose(-v.dx * t, -v.dy * t, 0.0, 1.0, 1.0 - t)
        incoming = Pose(v.dx * (1 - t), v.dy * (1 - t), 0.0, 1.0, t)
        return outgoing, incoming

    outgoing = Pose(v.dx * t, v.dy * t, v.rotation * t, 1.0 - (1.0 - config.ENTER_SCALE) * t, 1.0 - t)
    incoming = Pose(0.0, 0.0, 0.0, config.ENTER_SCALE + (1.0 - config.ENTER_SCALE) * t, t)
    return outgoing, incoming
