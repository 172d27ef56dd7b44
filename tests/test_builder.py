from __future__ import annotations

import pytest

from spinverse.core.builder import determiner_for, insert_determiner, make_determiner_step, remove_determiner
from spinverse.core.models import Branch, Condition, MultiSpinConfig, Segment, Sequence, Step, StepKind, Wheel
from spinverse.engine.multispin import decode_spin_count


def _wheel(*ids: str) -> Wheel:
    return Wheel(segments=tuple(Segment(id=seg, text=seg) for seg in ids))


def _sequence() -> Sequence:
    return Sequence(
        id="b",
        name="Builder",
        steps=(
            Step(
                id="intro",
                title="Intro",
                wheel=_wheel("x", "y"),
                default_next_step="trial",
                branches=(Branch.create("trial", [Condition.equals("intro", "x")]),),
            ),
            Step(
                id="trial",
                title="Trial",
                wheel=_wheel("a", "b"),
                default_next_step="end",
                multi_spin=MultiSpinConfig(enabled=True, mode="fixed", fixed_count=4),
            ),
            Step(id="end", title="End", wheel=_wheel("z")),
        ),
        start_step_id="intro",
    )


def test_determiner_wheel_decodes_to_one_through_five():
    step = make_determiner_step("trial")
    assert step.id == "trial-determiner"
    assert step.kind is StepKind.DETERMINER
    assert step.default_next_step == "trial"
    assert [decode_spin_count(segment_id) for segment_id in step.wheel.segment_ids()] == [1, 2, 3, 4, 5]
    assert sum(segment.weight for segment in step.wheel.segments) == 100


def test_insert_rewires_pointers_and_switches_to_dynamic():
    sequence = insert_determiner(_sequence(), "trial")
    assert [step.id for step in sequence.steps] == ["intro", "trial-determiner", "trial", "end"]
    intro = sequence.step("intro")
    assert intro.default_next_step == "trial-determiner"
    assert intro.branches[0].next_step_id == "trial-determiner"
    trial = sequence.step("trial")
    assert trial.kind is StepKind.MULTI_SPIN_DYNAMIC
    assert trial.multi_spin.determiner_step_id == "trial-determiner"
    assert determiner_for(sequence, "trial") is sequence.step("trial-determiner")
    assert insert_determiner(sequence, "trial") is sequence


def test_insert_before_start_step_moves_start():
    sequence = insert_determiner(_sequence(), "intro")
    assert sequence.start_step_id == "intro-determiner"


def test_insert_unknown_step_raises():
    with pytest.raises(KeyError):
        insert_determiner(_sequence(), "ghost")


def test_remove_restores_fixed_mode():
    original = _sequence()
    restored = remove_determiner(insert_determiner(original, "trial"), "trial")
    assert [step.id for step in restored.steps] == ["intro", "trial", "end"]
    assert restored.step("intro").default_next_step == "trial"
    assert restored.step("intro").branches[0].next_step_id == "trial"
    trial = restored.step("trial")
    assert trial.kind is StepKind.MULTI_SPIN_FIXED
    assert trial.multi_spin.fixed_count == 4
    assert remove_determiner(restored, "trial") is restored
