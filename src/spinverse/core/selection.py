"""Weighted segment selection.

Two ways of picking an outcome are supported and they agree with each other:
drawing directly from the weight distribution, or looking up which segment
owns the angle a physically simulated wheel came to rest at.  Segment spans
are proportional to weight, so a uniformly random landing angle reproduces
the same distribution as a direct draw.
"""

from __future__ import annotations

import logging
import math
import random
from bisect import bisect_right
from collections.abc import Sequence

from .models import Rarity, Segment

__all__ = [
    "EmptySegmentSet",
    "RARITY_WEIGHTS",
    "TAU",
    "compute_probabilities",
    "draw_index",
    "normalize_angle",
    "segment_angular_spans",
    "segment_at_angle",
    "segment_center_angle",
]

logger = logging.getLogger(__name__)

TAU = 2.0 * math.pi

RARITY_WEIGHTS: dict[Rarity, float] = {
    Rarity.COMMON: 40.0,
    Rarity.UNCOMMON: 30.0,
    Rarity.RARE: 20.0,
    Rarity.LEGENDARY: 10.0,
}


class EmptySegmentSet(ValueError):
    """Raised when a selector is asked to operate on a wheel with no segments."""

    def __init__(self, message: str = "wheel has no segments") -> None:
        super().__init__(message)


def _require_segments(segments: Sequence[Segment]) -> None:
    if not segments:
        raise EmptySegmentSet()


def _weight(segment: Segment) -> float:
    value = float(segment.weight)
    if value != value or value < 0.0:  # NaN or negative
        return 0.0
    return value


def compute_probabilities(segments: Sequence[Segment]) -> list[float]:
    """Return each segment's share of the total weight.

    A wheel whose weights sum to zero is treated as uniform.
    """

    _require_segments(segments)
    weights = [_weight(segment) for segment in segments]
    total = sum(weights)
    if total <= 0.0:
        logger.debug("Weight sum <= 0 detected; falling back to uniform distribution.")
        share = 1.0 / len(segments)
        return [share] * len(segments)
    return [weight / total for weight in weights]


def segment_angular_spans(segments: Sequence[Segment]) -> list[tuple[float, float]]:
    """Half-open ``[start, end)`` spans over ``[0, 2π)`` in segment order."""

    probabilities = compute_probabilities(segments)
    spans: list[tuple[float, float]] = []
    cumulative = 0.0
    for prob in probabilities:
        start = cumulative * TAU
        cumulative += prob
        spans.append((start, cumulative * TAU))
    # Pin the final edge so rounding never leaves a gap before 2π.
    last_start, _ = spans[-1]
    spans[-1] = (last_start, TAU)
    return spans


def normalize_angle(angle: float) -> float:
    normalized = math.fmod(angle, TAU)
    if normalized < 0.0:
        normalized += TAU
    if normalized >= TAU:
        normalized = 0.0
    return normalized


def segment_at_angle(angle: float, segments: Sequence[Segment]) -> int:
    """Return the index of the segment whose span contains ``angle``.

    An angle sitting exactly on a boundary belongs to the segment that starts
    there.  Zero-width segments own no angle.
    """

    spans = segment_angular_spans(segments)
    normalized = normalize_angle(angle)
    starts = [start for start, _ in spans]
    index = bisect_right(starts, normalized) - 1
    return max(0, min(index, len(spans) - 1))


def segment_center_angle(index: int, segments: Sequence[Segment]) -> float:
    start, end = segment_angular_spans(segments)[index]
    return (start + end) / 2.0


def draw_index(segments: Sequence[Segment], rng: random.Random) -> int:
    """Draw a segment index in proportion to its weight."""

    probabilities = compute_probabilities(segments)
    target = rng.random()
    cumulative = 0.0
    for idx, prob in enumerate(probabilities):
        cumulative += prob
        if target < cumulative:
            return idx
    # Rounding left the target just past the last edge.
    return max(idx for idx, prob in enumerate(probabilities) if prob > 0.0)
