from __future__ import annotations

from spinverse.core.models import Branch, Condition, Segment, Sequence, SequenceResult, SpinResult, Step, Wheel
from spinverse.engine.graph import is_sequence_complete, narrative_line, progress, sequence_path


def _step(step_id: str, *segments: str, default: str | None = None, branches=()) -> Step:
    wheel = Wheel(segments=tuple(Segment(id=seg, text=seg.title()) for seg in segments))
    return Step(id=step_id, title=step_id.title(), wheel=wheel, default_next_step=default, branches=tuple(branches))


def _result(step_id: str, segment_id: str, extra: tuple[str, ...] = ()) -> SequenceResult:
    spin = SpinResult(segment=Segment(id=segment_id, text=segment_id.title()), index=0, timestamp=0.0)
    multi = None
    if extra:
        multi = (spin,) + tuple(
            SpinResult(segment=Segment(id=seg, text=seg.title()), index=0, timestamp=0.0) for seg in extra
        )
    return SequenceResult(step_id=step_id, spin_result=spin, timestamp=0.0, multi_spin_results=multi)


def _sequence() -> Sequence:
    return Sequence(
        id="g",
        name="Graph",
        steps=(
            _step("start", "left", "right", default="plain", branches=[Branch.create("fancy", [Condition.equals("start", "left")])]),
            _step("plain", "p", default="end"),
            _step("fancy", "f", default="end"),
            _step("end", "e"),
        ),
        start_step_id="start",
    )


def test_path_follows_recorded_branch():
    sequence = _sequence()
    assert [step.id for step in sequence_path(sequence, [])] == ["start"]
    history = [_result("start", "left")]
    assert [step.id for step in sequence_path(sequence, history)] == ["start", "fancy"]
    history.append(_result("fancy", "f"))
    assert [step.id for step in sequence_path(sequence, history)] == ["start", "fancy", "end"]


def test_completion_and_progress():
    sequence = _sequence()
    history = [_result("start", "right"), _result("plain", "p")]
    assert not is_sequence_complete(sequence, history)
    current = progress(sequence, history)
    assert (current.completed, current.total) == (2, 3)
    assert current.percentage == 67

    history.append(_result("end", "e"))
    assert is_sequence_complete(sequence, history)
    assert progress(sequence, history).percentage == 100


def test_path_stops_on_cycle():
    sequence = Sequence(
        id="c",
        name="Cycle",
        steps=(_step("a", "x", default="b"), _step("b", "y", default="a")),
        start_step_id="a",
    )
    history = [_result("a", "x"), _result("b", "y")]
    assert [step.id for step in sequence_path(sequence, history)] == ["a", "b"]
    assert is_sequence_complete(sequence, history)


def test_narrative_joins_multi_spin_results():
    history = [_result("start", "left"), _result("trials", "fire", extra=("water", "air"))]
    assert narrative_line(history) == "Left → Fire + Water + Air"
    assert narrative_line(history, separator=" | ") == "Left | Fire + Water + Air"
    assert narrative_line([]) == ""
