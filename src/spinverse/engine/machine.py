"""Run state machine.

``advance`` is a pure transition function: it takes the current ``RunState``
and one event and returns the next state together with the effects the host
should act on.  The host owns the single mutable reference to the state and
must feed events one at a time; the session service does that under a lock.

Spin outcomes carry a monotonically increasing ``event_id``.  Anything that is
not newer than the last processed event, targets a step other than the current
one, or targets a step that already has a recorded result is discarded and
reported as an ``OutcomeDiscarded`` effect instead of changing the run.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from typing import Union

from ..core.models import MultiSpinState, Segment, Sequence, SequenceResult, SpinResult, Step, WeightOverride
from ..core.overrides import apply_weight_overrides
from .multispin import IDLE, collect, fold_results, resolve_spin_count, start_session
from .resolver import Resolution, find_result, resolve_next

__all__ = [
    "Effect",
    "Event",
    "OutcomeDiscarded",
    "Reset",
    "RunReset",
    "RunState",
    "SequenceCompleted",
    "SpinCollected",
    "SpinOutcome",
    "StepCompleted",
    "Transitioned",
    "advance",
    "start_run",
]

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------- events
@dataclass(frozen=True)
class SpinOutcome:
    step_id: str
    segment_index: int
    event_id: int
    timestamp: float
    segment: Segment | None = None
    angle: float | None = None


@dataclass(frozen=True)
class Reset:
    timestamp: float = 0.0


Event = Union[SpinOutcome, Reset]


# --------------------------------------------------------------------- effects
@dataclass(frozen=True)
class SpinCollected:
    step_id: str
    spin: SpinResult
    current_count: int
    total_count: int


@dataclass(frozen=True)
class StepCompleted:
    result: SequenceResult


@dataclass(frozen=True)
class Transitioned:
    from_step_id: str
    to_step_id: str
    weight_overrides: tuple[WeightOverride, ...] = ()
    branch_index: int | None = None


@dataclass(frozen=True)
class SequenceCompleted:
    last_step_id: str
    reason: str


@dataclass(frozen=True)
class OutcomeDiscarded:
    step_id: str
    event_id: int
    reason: str


@dataclass(frozen=True)
class RunReset:
    timestamp: float


Effect = Union[SpinCollected, StepCompleted, Transitioned, SequenceCompleted, OutcomeDiscarded, RunReset]


# ----------------------------------------------------------------------- state
@dataclass(frozen=True)
class RunState:
    sequence: Sequence
    current_step_id: str | None
    wheel: tuple[Segment, ...] = ()
    history: tuple[SequenceResult, ...] = ()
    multi_spin: MultiSpinState = field(default=IDLE)
    last_event_id: int | None = None
    redistribute_overrides: bool = False

    @property
    def current_step(self) -> Step | None:
        return self.sequence.step(self.current_step_id)

    @property
    def is_complete(self) -> bool:
        return self.current_step is None


def start_run(sequence: Sequence, *, redistribute_overrides: bool = False) -> RunState:
    start = sequence.step(sequence.start_step_id)
    if start is None:
        logger.info("Start step %r missing; run is complete before it begins", sequence.start_step_id)
        return RunState(sequence=sequence, current_step_id=None, redistribute_overrides=redistribute_overrides)
    return RunState(
        sequence=sequence,
        current_step_id=start.id,
        wheel=start.wheel.segments,
        redistribute_overrides=redistribute_overrides,
    )


def advance(state: RunState, event: Event) -> tuple[RunState, list[Effect]]:
    if isinstance(event, Reset):
        fresh = start_run(state.sequence, redistribute_overrides=state.redistribute_overrides)
        # Event ids keep increasing across resets.
        fresh = replace(fresh, last_event_id=state.last_event_id)
        return fresh, [RunReset(timestamp=event.timestamp)]
    return _handle_outcome(state, event)


def _discard(state: RunState, event: SpinOutcome, reason: str) -> tuple[RunState, list[Effect]]:
    logger.debug(
        "Discarding spin outcome",
        extra={"step_id": event.step_id, "event_id": event.event_id, "reason": reason},
    )
    return state, [OutcomeDiscarded(step_id=event.step_id, event_id=event.event_id, reason=reason)]


def _handle_outcome(state: RunState, event: SpinOutcome) -> tuple[RunState, list[Effect]]:
    if state.last_event_id is not None and event.event_id <= state.last_event_id:
        return _discard(state, event, "stale_event")
    step = state.current_step
    if step is None:
        return _discard(state, event, "run_complete")
    state = replace(state, last_event_id=event.event_id)
    if event.step_id != step.id:
        return _discard(state, event, "not_current_step")
    if not 0 <= event.segment_index < len(state.wheel):
        return _discard(state, event, "segment_out_of_range")

    spin = SpinResult(
        segment=event.segment if event.segment is not None else state.wheel[event.segment_index],
        index=event.segment_index,
        timestamp=event.timestamp,
        angle=event.angle,
    )
    session = state.multi_spin

    if session.is_active and session.current_step_id == step.id:
        session = collect(session, spin)
        effects: list[Effect] = [SpinCollected(step.id, spin, session.current_count, session.total_count)]
        if session.current_count < session.total_count:
            return replace(state, multi_spin=session), effects
        # The session finishes under the parameters it started with.
        result = fold_results(step.id, session.results, session.aggregate_results, event.timestamp)
        return _complete_step(replace(state, multi_spin=IDLE), step, result, effects)

    if find_result(state.history, step.id) is not None:
        return _discard(state, event, "already_recorded")

    total = resolve_spin_count(step, state.history)
    if total > 1:
        session = start_session(step, total, spin)
        return replace(state, multi_spin=session), [SpinCollected(step.id, spin, 1, total)]
    result = SequenceResult(step_id=step.id, spin_result=spin, timestamp=event.timestamp)
    return _complete_step(state, step, result, [])


def _complete_step(
    state: RunState,
    step: Step,
    result: SequenceResult,
    effects: list[Effect],
) -> tuple[RunState, list[Effect]]:
    history = state.history + (result,)
    effects.append(StepCompleted(result))
    resolution = resolve_next(step, history)
    state = replace(state, history=history)
    return _transition(state, step, resolution, effects)


def _transition(
    state: RunState,
    step: Step,
    resolution: Resolution,
    effects: list[Effect],
) -> tuple[RunState, list[Effect]]:
    target = state.sequence.step(resolution.next_step_id)
    reason: str | None = None
    if resolution.next_step_id is None:
        reason = "no_successor"
    elif target is None:
        logger.info("Next step %r does not exist; treating as sequence complete", resolution.next_step_id)
        reason = "missing_step"
    elif find_result(state.history, target.id) is not None:
        logger.info("Next step %r already visited; treating as sequence complete", target.id)
        reason = "already_visited"

    if reason is not None or target is None:
        effects.append(SequenceCompleted(last_step_id=step.id, reason=reason or "missing_step"))
        return replace(state, current_step_id=None, wheel=(), multi_spin=IDLE), effects

    wheel = apply_weight_overrides(
        target.wheel.segments,
        resolution.weight_overrides,
        redistribute=state.redistribute_overrides,
    )
    effects.append(
        Transitioned(
            from_step_id=step.id,
            to_step_id=target.id,
            weight_overrides=resolution.weight_overrides,
            branch_index=resolution.branch_index,
        )
    )
    return replace(state, current_step_id=target.id, wheel=wheel, multi_spin=IDLE), effects
