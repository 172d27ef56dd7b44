"""Spin sources: where raw outcomes come from.

The engine does not care how a wheel was spun.  ``WeightedDraw`` samples the
weight distribution directly; ``LandingAngle`` simulates a wheel coming to rest
at a uniformly random angle and reads the segment under the pointer.
"""

from __future__ import annotations

import random
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Protocol

from ..core.models import Segment
from ..core.selection import TAU, draw_index, segment_at_angle

__all__ = ["LandingAngle", "RawSpin", "SpinSource", "WeightedDraw", "make_source"]


@dataclass(frozen=True)
class RawSpin:
    index: int
    segment: Segment
    angle: float | None = None


class SpinSource(Protocol):
    def spin(self, segments: Sequence[Segment]) -> RawSpin: ...


@dataclass
class WeightedDraw:
    rng: random.Random

    def spin(self, segments: Sequence[Segment]) -> RawSpin:
        index = draw_index(segments, self.rng)
        return RawSpin(index=index, segment=segments[index])


@dataclass
class LandingAngle:
    rng: random.Random
    extra_rotations: int = 3

    def spin(self, segments: Sequence[Segment]) -> RawSpin:
        angle = self.extra_rotations * TAU + self.rng.random() * TAU
        index = segment_at_angle(angle, segments)
        return RawSpin(index=index, segment=segments[index], angle=angle)


def make_source(kind: str, rng: random.Random) -> SpinSource:
    key = (kind or "draw").strip().lower()
    if key == "angle":
        return LandingAngle(rng)
    if key == "draw":
        return WeightedDraw(rng)
    raise ValueError(f"unknown spin source '{kind}'")
