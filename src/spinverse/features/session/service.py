from __future__ import annotations

import logging
import random
import secrets
import string
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass, field

from ...core import feature_flags
from ...core.models import SequenceResult, SpinResult
from ...core.models import Sequence as SpinSequence
from ...core.selection import compute_probabilities
from ...core.validation import ValidationReport
from ...data.sequence_loader import SequenceRepository, get_repository
from ...engine.graph import narrative_line, progress
from ...engine.machine import (
    Effect,
    OutcomeDiscarded,
    Reset,
    RunState,
    SequenceCompleted,
    SpinCollected,
    SpinOutcome,
    StepCompleted,
    advance,
    start_run,
)
from ...engine.sources import SpinSource, make_source
from .concurrency import run_blocking
from .schemas import (
    HistoryPayload,
    MultiSpinPayload,
    ProgressPayload,
    ResultPayload,
    SegmentPayload,
    SequenceSummaryPayload,
    SpinPayload,
    SpinResponse,
    StepPayload,
    StepResponse,
    ValidationIssuePayload,
    ValidationPayload,
)

__all__ = [
    "SessionConfig",
    "SessionManager",
    "SessionState",
    "sequence_summary",
    "validation_payload",
]

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SessionConfig:
    """Configuration for a spin session."""

    sequence_id: str
    seed: int | None = None
    source: str = "draw"


@dataclass
class SessionState:
    config: SessionConfig
    run: RunState
    source: SpinSource
    next_event_id: int = 1
    effects: list[Effect] = field(default_factory=list)

    def take_event_id(self, requested: int | None = None) -> int:
        event_id = self.next_event_id if requested is None else requested
        self.next_event_id = max(self.next_event_id, event_id + 1)
        return event_id


class SessionManager:
    """Owns run state per session and feeds events to the engine one at a time."""

    def __init__(
        self,
        repository: SequenceRepository | None = None,
        *,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._repository = repository
        self._clock = clock
        self._sessions: dict[str, SessionState] = {}
        self._lock = threading.Lock()

    @property
    def repository(self) -> SequenceRepository:
        if self._repository is None:
            self._repository = get_repository()
        return self._repository

    # ------------------------------------------------------------------ lifecycle
    def create_session(self, config: SessionConfig) -> str:
        sequence = self.repository.get(config.sequence_id)
        return self.create_session_for(sequence, seed=config.seed, source=config.source)

    def create_session_for(self, sequence: SpinSequence, *, seed: int | None = None, source: str = "draw") -> str:
        seed = seed if seed is not None else secrets.SystemRandom().getrandbits(32)
        spin_source = make_source(source, random.Random(seed))
        run = start_run(
            sequence,
            redistribute_overrides=feature_flags.is_enabled(feature_flags.REDISTRIBUTE_OVERRIDES),
        )
        state = SessionState(
            config=SessionConfig(sequence_id=sequence.id, seed=seed, source=source),
            run=run,
            source=spin_source,
        )
        session_id = _sid()
        with self._lock:
            self._sessions[session_id] = state
        logger.debug("session created", extra={"session_id": session_id, "sequence_id": sequence.id})
        return session_id

    async def create_session_async(self, config: SessionConfig) -> str:
        return await run_blocking(self.create_session, config)

    def close(self, session_id: str) -> None:
        with self._lock:
            self._sessions.pop(session_id, None)

    # -------------------------------------------------------------------- queries
    def current_step(self, session_id: str) -> StepResponse:
        with self._lock:
            state = self._require_session(session_id)
            return _step_response(state.run)

    async def current_step_async(self, session_id: str) -> StepResponse:
        return await run_blocking(self.current_step, session_id)

    def history(self, session_id: str) -> HistoryPayload:
        with self._lock:
            state = self._require_session(session_id)
            return _history_payload(state.run)

    async def history_async(self, session_id: str) -> HistoryPayload:
        return await run_blocking(self.history, session_id)

    # -------------------------------------------------------------------- actions
    def spin(self, session_id: str) -> SpinResponse:
        """Spin the current wheel with the session's own spin source."""

        with self._lock:
            state = self._require_session(session_id)
            step = state.run.current_step
            if step is None:
                raise ValueError("sequence already complete")
            raw = state.source.spin(state.run.wheel)
            event = SpinOutcome(
                step_id=step.id,
                segment_index=raw.index,
                segment=raw.segment,
                angle=raw.angle,
                event_id=state.take_event_id(),
                timestamp=self._clock(),
            )
            return self._dispatch(session_id, state, event)

    async def spin_async(self, session_id: str) -> SpinResponse:
        return await run_blocking(self.spin, session_id)

    def submit_outcome(
        self,
        session_id: str,
        step_id: str,
        segment_index: int,
        *,
        event_id: int | None = None,
        angle: float | None = None,
    ) -> SpinResponse:
        """Record an outcome produced by a client-side wheel.

        Duplicate or stale deliveries are acknowledged with ``accepted=False``.
        """

        with self._lock:
            state = self._require_session(session_id)
            if segment_index < 0:
                raise ValueError("segment index must be non-negative")
            event = SpinOutcome(
                step_id=step_id,
                segment_index=segment_index,
                angle=angle,
                event_id=state.take_event_id(event_id),
                timestamp=self._clock(),
            )
            return self._dispatch(session_id, state, event)

    async def submit_outcome_async(
        self,
        session_id: str,
        step_id: str,
        segment_index: int,
        *,
        event_id: int | None = None,
        angle: float | None = None,
    ) -> SpinResponse:
        return await run_blocking(
            self.submit_outcome, session_id, step_id, segment_index, event_id=event_id, angle=angle
        )

    def reset(self, session_id: str) -> StepResponse:
        with self._lock:
            state = self._require_session(session_id)
            state.run, state.effects = advance(state.run, Reset(timestamp=self._clock()))
            logger.debug("session reset", extra={"session_id": session_id})
            return _step_response(state.run)

    async def reset_async(self, session_id: str) -> StepResponse:
        return await run_blocking(self.reset, session_id)

    # ------------------------------------------------------------------- internal
    def _dispatch(self, session_id: str, state: SessionState, event: SpinOutcome) -> SpinResponse:
        state.run, state.effects = advance(state.run, event)
        accepted = True
        reason: str | None = None
        spin: SpinResult | None = None
        completed: SequenceResult | None = None
        for effect in state.effects:
            if isinstance(effect, OutcomeDiscarded):
                accepted = False
                reason = effect.reason
            elif isinstance(effect, SpinCollected):
                spin = effect.spin
            elif isinstance(effect, StepCompleted):
                completed = effect.result
                spin = spin or effect.result.spin_result
            elif isinstance(effect, SequenceCompleted):
                logger.debug(
                    "sequence completed",
                    extra={"session_id": session_id, "reason": effect.reason, "steps": len(state.run.history)},
                )
        return SpinResponse(
            accepted=accepted,
            reason=reason,
            spin=_spin_payload(spin) if spin is not None else None,
            completed_step=_result_payload(completed) if completed is not None else None,
            next_payload=_step_response(state.run),
        )

    def _require_session(self, session_id: str) -> SessionState:
        state = self._sessions.get(session_id)
        if state is None:
            raise KeyError(f"session '{session_id}' not found")
        return state


def _sid(length: int = 10) -> str:
    alphabet = string.ascii_lowercase + string.digits
    return "".join(secrets.choice(alphabet) for _ in range(length))


def _step_response(run: RunState) -> StepResponse:
    stats = progress(run.sequence, run.history)
    progress_payload = ProgressPayload(completed=stats.completed, total=stats.total, percentage=stats.percentage)
    step = run.current_step
    if step is None:
        return StepResponse(
            done=True,
            sequence_id=run.sequence.id,
            progress=progress_payload,
            narrative=narrative_line(run.history),
        )
    probabilities = compute_probabilities(run.wheel) if run.wheel else []
    session = run.multi_spin
    multi = None
    if session.is_active and session.current_step_id == step.id:
        multi = MultiSpinPayload(
            active=True,
            current=session.current_count,
            total=session.total_count,
            remaining=session.remaining,
            aggregate=session.aggregate_results,
        )
    return StepResponse(
        done=False,
        sequence_id=run.sequence.id,
        progress=progress_payload,
        step=StepPayload(
            id=step.id,
            title=step.title,
            description=step.description,
            kind=step.kind.value,
            segments=[
                SegmentPayload(
                    id=segment.id,
                    text=segment.text,
                    color=segment.color,
                    weight=segment.weight,
                    probability=prob,
                    rarity=segment.rarity.value,
                )
                for segment, prob in zip(run.wheel, probabilities, strict=True)
            ],
            multi_spin=multi,
        ),
    )


def _spin_payload(spin: SpinResult) -> SpinPayload:
    return SpinPayload(
        segment_id=spin.segment.id,
        text=spin.segment.text,
        index=spin.index,
        timestamp=spin.timestamp,
        angle=spin.angle,
    )


def _result_payload(result: SequenceResult) -> ResultPayload:
    return ResultPayload(
        step_id=result.step_id,
        segment_id=result.segment_id,
        text=result.spin_result.segment.text,
        timestamp=result.timestamp,
        multi_spin=(
            [_spin_payload(spin) for spin in result.multi_spin_results]
            if result.multi_spin_results is not None
            else None
        ),
    )


def _history_payload(run: RunState) -> HistoryPayload:
    return HistoryPayload(
        sequence_id=run.sequence.id,
        complete=run.is_complete,
        narrative=narrative_line(run.history),
        results=[_result_payload(result) for result in run.history],
    )


def sequence_summary(sequence: SpinSequence) -> SequenceSummaryPayload:
    return SequenceSummaryPayload(
        id=sequence.id,
        name=sequence.name,
        description=sequence.description,
        steps=len(sequence.steps),
        start_step_id=sequence.start_step_id,
    )


def validation_payload(report: ValidationReport) -> ValidationPayload:
    def _issues(items):
        return [
            ValidationIssuePayload(
                code=issue.code,
                message=issue.message,
                severity=issue.severity,
                step_id=issue.step_id,
                segment_id=issue.segment_id,
            )
            for issue in items
        ]

    return ValidationPayload(valid=report.is_valid, errors=_issues(report.errors), warnings=_issues(report.warnings))
