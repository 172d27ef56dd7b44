from __future__ import annotations

import random

import pytest

from spinverse.core.models import Segment
from spinverse.core.selection import TAU, segment_at_angle
from spinverse.engine.sources import LandingAngle, WeightedDraw, make_source


def _segments() -> list[Segment]:
    return [Segment(id="a", text="A", weight=1), Segment(id="b", text="B", weight=0), Segment(id="c", text="C", weight=3)]


def test_weighted_draw_returns_matching_segment():
    source = WeightedDraw(random.Random(11))
    segments = _segments()
    for _ in range(50):
        raw = source.spin(segments)
        assert raw.segment == segments[raw.index]
        assert raw.index != 1
        assert raw.angle is None


def test_landing_angle_reads_segment_under_pointer():
    source = LandingAngle(random.Random(5), extra_rotations=4)
    segments = _segments()
    for _ in range(50):
        raw = source.spin(segments)
        assert raw.angle >= 4 * TAU
        assert raw.index == segment_at_angle(raw.angle, segments)
        assert raw.segment == segments[raw.index]


def test_make_source():
    rng = random.Random(1)
    assert isinstance(make_source("draw", rng), WeightedDraw)
    assert isinstance(make_source(" Angle ", rng), LandingAngle)
    with pytest.raises(ValueError):
        make_source("dice", rng)
