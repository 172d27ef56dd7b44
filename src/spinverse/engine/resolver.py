"""Branch resolution for a step that has just produced its result.

Branches are evaluated in authored order and the first one whose conditions
hold wins, even when later branches would also match.  Anything that cannot be
evaluated (a condition pointing at a step with no recorded result, an unknown
operator) counts as a non-match rather than an error.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence as SequenceABC
from dataclasses import dataclass

from ..core.models import Branch, Condition, Sequence, SequenceResult, Step, WeightOverride

__all__ = [
    "Resolution",
    "evaluate_branch",
    "evaluate_condition",
    "find_result",
    "resolve_next",
]

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Resolution:
    next_step_id: str | None
    weight_overrides: tuple[WeightOverride, ...] = ()
    branch_index: int | None = None

    def completes(self, sequence: Sequence) -> bool:
        """True when the resolved successor does not exist in ``sequence``."""

        return not sequence.has_step(self.next_step_id)


def find_result(history: SequenceABC[SequenceResult], step_id: str) -> SequenceResult | None:
    for result in history:
        if result.step_id == step_id:
            return result
    return None


def evaluate_condition(condition: Condition, history: SequenceABC[SequenceResult]) -> bool:
    result = find_result(history, condition.step_id)
    if result is None:
        return False
    actual = result.segment_id
    expected = condition.expected
    operator = condition.operator or "equals"
    if operator == "equals":
        return actual == expected
    if operator == "not_equals":
        return actual != expected
    if operator in ("in", "not_in"):
        if not isinstance(expected, (tuple, list)):
            return False
        found = actual in expected
        return found if operator == "in" else not found
    logger.debug("Unknown condition operator %r; treating as no match", operator)
    return False


def evaluate_branch(branch: Branch, history: SequenceABC[SequenceResult]) -> bool:
    outcomes = (evaluate_condition(condition, history) for condition in branch.conditions)
    if (branch.operator or "and") == "or":
        return any(outcomes)
    return all(outcomes)


def resolve_next(step: Step, history: SequenceABC[SequenceResult]) -> Resolution:
    """Pick the successor of ``step`` given the run history so far."""

    for index, branch in enumerate(step.branches):
        if evaluate_branch(branch, history):
            return Resolution(
                next_step_id=branch.next_step_id,
                weight_overrides=tuple(branch.weight_overrides),
                branch_index=index,
            )
    return Resolution(next_step_id=step.default_next_step or None)
