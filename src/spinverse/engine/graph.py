"""Read-only queries over a sequence and its run history."""

from __future__ import annotations

from collections.abc import Sequence as SequenceABC
from dataclasses import dataclass

from ..core.models import Sequence, SequenceResult, Step
from .resolver import find_result, resolve_next

__all__ = ["Progress", "is_sequence_complete", "narrative_line", "progress", "sequence_path"]


@dataclass(frozen=True)
class Progress:
    completed: int
    total: int

    @property
    def percentage(self) -> int:
        if self.total <= 0:
            return 0
        return round(100 * self.completed / self.total)


def sequence_path(sequence: Sequence, history: SequenceABC[SequenceResult]) -> list[Step]:
    """Steps visited (or about to be visited) for ``history``.

    Starting from the start step, follow the resolver using only results
    recorded for steps already on the path.  The walk stops at the first step
    without a recorded result, at a missing step, or when a step repeats.
    """

    path: list[Step] = []
    seen: set[str] = set()
    step_id: str | None = sequence.start_step_id
    while step_id is not None and step_id not in seen:
        step = sequence.step(step_id)
        if step is None:
            break
        path.append(step)
        seen.add(step.id)
        if find_result(history, step.id) is None:
            break
        relevant = [result for result in history if result.step_id in seen]
        step_id = resolve_next(step, relevant).next_step_id
    return path


def is_sequence_complete(sequence: Sequence, history: SequenceABC[SequenceResult]) -> bool:
    path = sequence_path(sequence, history)
    recorded = {result.step_id for result in history}
    return all(step.id in recorded for step in path)


def progress(sequence: Sequence, history: SequenceABC[SequenceResult]) -> Progress:
    completed = len(history)
    total = max(len(sequence_path(sequence, history)), completed)
    return Progress(completed=completed, total=total)


def narrative_line(history: SequenceABC[SequenceResult], separator: str = " → ") -> str:
    parts: list[str] = []
    for result in history:
        if result.multi_spin_results:
            parts.append(" + ".join(spin.segment.text for spin in result.multi_spin_results))
        else:
            parts.append(result.spin_result.segment.text)
    return separator.join(parts)
