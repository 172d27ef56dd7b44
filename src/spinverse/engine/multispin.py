"""Multi-spin bookkeeping.

A multi-spin step takes several physical spins but contributes a single entry
to run history.  The helpers here decide how many spins a step needs, track the
collecting session and fold the collected spins into that one entry.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Sequence as SequenceABC
from dataclasses import replace

from ..core.models import (
    MAX_SPIN_COUNT,
    MultiSpinState,
    SequenceResult,
    SpinResult,
    Step,
    StepKind,
)
from .resolver import find_result

__all__ = [
    "IDLE",
    "collect",
    "decode_spin_count",
    "fold_results",
    "resolve_spin_count",
    "start_session",
]

logger = logging.getLogger(__name__)

IDLE = MultiSpinState()

_COUNT_PATTERN = re.compile(r"^(\d+)-spins?$")


def decode_spin_count(segment_id: str) -> int | None:
    """Decode a determiner segment id (``"1-spin"`` .. ``"5-spins"``)."""

    match = _COUNT_PATTERN.match(segment_id.strip().lower())
    if match is None:
        return None
    count = int(match.group(1))
    if not 1 <= count <= MAX_SPIN_COUNT:
        return None
    return count


def resolve_spin_count(step: Step, history: SequenceABC[SequenceResult]) -> int:
    """Return how many spins ``step`` needs; 1 means an ordinary single spin."""

    config = step.multi_spin
    kind = step.kind
    if kind is StepKind.MULTI_SPIN_FIXED:
        count = config.fixed_count if config is not None else None
        if count is None or count < 1:
            logger.warning(
                "Fixed multi-spin without a usable count; defaulting to 1 spin",
                extra={"step_id": step.id, "fixed_count": count},
            )
            return 1
        return min(int(count), MAX_SPIN_COUNT)
    if kind is StepKind.MULTI_SPIN_DYNAMIC:
        determiner_id = config.determiner_step_id if config is not None else None
        result = find_result(history, determiner_id) if determiner_id else None
        if result is None:
            logger.warning(
                "No determiner result for dynamic multi-spin; defaulting to 1 spin",
                extra={"step_id": step.id, "determiner_step_id": determiner_id},
            )
            return 1
        decoded = decode_spin_count(result.segment_id)
        if decoded is None:
            logger.warning(
                "Unrecognised spin count segment; defaulting to 1 spin",
                extra={"step_id": step.id, "determiner_step_id": determiner_id, "segment_id": result.segment_id},
            )
            return 1
        return decoded
    return 1


def start_session(step: Step, total_count: int, first: SpinResult) -> MultiSpinState:
    aggregate = step.multi_spin.aggregate_results if step.multi_spin is not None else True
    return MultiSpinState(
        is_active=True,
        current_step_id=step.id,
        current_count=1,
        total_count=total_count,
        results=(first,),
        aggregate_results=aggregate,
    )


def collect(state: MultiSpinState, spin: SpinResult) -> MultiSpinState:
    return replace(
        state,
        current_count=state.current_count + 1,
        results=state.results + (spin,),
    )


def fold_results(step_id: str, spins: tuple[SpinResult, ...], aggregate: bool, timestamp: float) -> SequenceResult:
    """Fold collected spins into one history entry.

    Aggregate mode keeps the first spin as the logical result and retains every
    spin; override mode keeps only the last spin.
    """

    if aggregate:
        return SequenceResult(
            step_id=step_id,
            spin_result=spins[0],
            timestamp=timestamp,
            multi_spin_results=spins,
        )
    return SequenceResult(step_id=step_id, spin_result=spins[-1], timestamp=timestamp)
