"""Determiner step construction for dynamic multi-spin.

A determiner is an ordinary step whose wheel decides how many times the step
after it spins.  These helpers create one, splice it in front of its target and
take it out again, rewiring pointers so the graph stays connected.
"""

from __future__ import annotations

from dataclasses import replace

from .models import MultiSpinConfig, Rarity, Segment, Sequence, Step, Wheel

__all__ = ["determiner_for", "insert_determiner", "make_determiner_step", "remove_determiner"]

_DETERMINER_SEGMENTS: tuple[Segment, ...] = (
    Segment(id="1-spin", text="1", color="#FF6B6B", weight=20, rarity=Rarity.COMMON),
    Segment(id="2-spins", text="2", color="#4ECDC4", weight=25, rarity=Rarity.COMMON),
    Segment(id="3-spins", text="3", color="#45B7D1", weight=25, rarity=Rarity.COMMON),
    Segment(id="4-spins", text="4", color="#96CEB4", weight=20, rarity=Rarity.UNCOMMON),
    Segment(id="5-spins", text="5", color="#FECA57", weight=10, rarity=Rarity.RARE),
)

_DEFAULT_FIXED_COUNT = 3


def make_determiner_step(target_step_id: str) -> Step:
    return Step(
        id=f"{target_step_id}-determiner",
        title="Spin Count Determiner",
        description="This step determines how many times the next step will spin.",
        wheel=Wheel(segments=_DETERMINER_SEGMENTS),
        default_next_step=target_step_id,
        is_determiner=True,
        target_step_id=target_step_id,
    )


def determiner_for(sequence: Sequence, target_step_id: str) -> Step | None:
    for step in sequence.steps:
        if step.is_determiner and step.target_step_id == target_step_id:
            return step
    return None


def _retarget(step: Step, old: str, new: str) -> Step:
    branches = tuple(
        replace(branch, next_step_id=new) if branch.next_step_id == old else branch for branch in step.branches
    )
    default = new if step.default_next_step == old else step.default_next_step
    return replace(step, branches=branches, default_next_step=default)


def insert_determiner(sequence: Sequence, target_step_id: str) -> Sequence:
    """Put a determiner in front of ``target_step_id`` and make it dynamic.

    Every pointer that led to the target now leads to the determiner, which in
    turn continues to the target.  Inserting twice is a no-op.
    """

    target = sequence.step(target_step_id)
    if target is None:
        raise KeyError(f"step '{target_step_id}' not found")
    if determiner_for(sequence, target_step_id) is not None:
        return sequence
    determiner = make_determiner_step(target_step_id)
    config = target.multi_spin or MultiSpinConfig()
    updated_target = replace(
        target,
        multi_spin=replace(config, enabled=True, mode="dynamic", determiner_step_id=determiner.id),
    )
    steps: list[Step] = []
    for step in sequence.steps:
        if step.id == target_step_id:
            steps.append(determiner)
            steps.append(updated_target)
        else:
            steps.append(_retarget(step, target_step_id, determiner.id))
    start = determiner.id if sequence.start_step_id == target_step_id else sequence.start_step_id
    return replace(sequence, steps=tuple(steps), start_step_id=start)


def remove_determiner(sequence: Sequence, target_step_id: str) -> Sequence:
    """Undo ``insert_determiner``; the target falls back to fixed mode."""

    determiner = determiner_for(sequence, target_step_id)
    if determiner is None:
        return sequence
    steps: list[Step] = []
    for step in sequence.steps:
        if step.id == determiner.id:
            continue
        if step.id == target_step_id and step.multi_spin is not None:
            step = replace(
                step,
                multi_spin=replace(
                    step.multi_spin,
                    mode="fixed",
                    fixed_count=step.multi_spin.fixed_count or _DEFAULT_FIXED_COUNT,
                    determiner_step_id=None,
                ),
            )
        steps.append(_retarget(step, determiner.id, target_step_id))
    start = target_step_id if sequence.start_step_id == determiner.id else sequence.start_step_id
    return replace(sequence, steps=tuple(steps), start_step_id=start)
