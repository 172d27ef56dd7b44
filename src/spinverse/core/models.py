"""Domain types for authored sequences and run history.

Everything here is immutable.  Sequences are authored up front and treated as
read-only while a run is in progress; history entries are appended once and
never touched again.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Literal

__all__ = [
    "Branch",
    "Condition",
    "ConditionOperator",
    "BranchOperator",
    "MAX_SPIN_COUNT",
    "MultiSpinConfig",
    "MultiSpinState",
    "Rarity",
    "Segment",
    "Sequence",
    "SequenceResult",
    "SpinResult",
    "Step",
    "StepKind",
    "WeightOverride",
    "Wheel",
]

ConditionOperator = Literal["equals", "not_equals", "in", "not_in"]
BranchOperator = Literal["and", "or"]

MAX_SPIN_COUNT = 5


class Rarity(str, Enum):
    COMMON = "common"
    UNCOMMON = "uncommon"
    RARE = "rare"
    LEGENDARY = "legendary"


class StepKind(str, Enum):
    NORMAL = "normal"
    DETERMINER = "determiner"
    MULTI_SPIN_FIXED = "multi_spin_fixed"
    MULTI_SPIN_DYNAMIC = "multi_spin_dynamic"


@dataclass(frozen=True)
class Segment:
    id: str
    text: str
    color: str = "#888888"
    weight: float = 1.0
    rarity: Rarity = Rarity.COMMON

    def with_weight(self, weight: float) -> Segment:
        return replace(self, weight=float(weight))


@dataclass(frozen=True)
class Wheel:
    segments: tuple[Segment, ...]

    def segment(self, segment_id: str) -> Segment | None:
        for segment in self.segments:
            if segment.id == segment_id:
                return segment
        return None

    def segment_ids(self) -> list[str]:
        return [segment.id for segment in self.segments]


@dataclass(frozen=True)
class Condition:
    """A single test against the recorded result of ``step_id``.

    ``value`` is the expected segment id (or ids, for ``in``/``not_in``).  When
    omitted the comparison falls back to ``segment_id``.
    """

    step_id: str
    segment_id: str
    operator: ConditionOperator = "equals"
    value: str | tuple[str, ...] | None = None

    @property
    def expected(self) -> str | tuple[str, ...]:
        return self.segment_id if self.value is None else self.value

    @classmethod
    def equals(cls, step_id: str, segment_id: str) -> Condition:
        return cls(step_id=step_id, segment_id=segment_id, operator="equals", value=segment_id)

    @classmethod
    def not_equals(cls, step_id: str, segment_id: str) -> Condition:
        return cls(step_id=step_id, segment_id=segment_id, operator="not_equals", value=segment_id)

    @classmethod
    def one_of(cls, step_id: str, segment_ids: list[str] | tuple[str, ...]) -> Condition:
        ids = tuple(segment_ids)
        return cls(step_id=step_id, segment_id=ids[0] if ids else "", operator="in", value=ids)


@dataclass(frozen=True)
class WeightOverride:
    segment_id: str
    new_weight: float


@dataclass(frozen=True)
class Branch:
    conditions: tuple[Condition, ...]
    next_step_id: str
    operator: BranchOperator = "and"
    weight_overrides: tuple[WeightOverride, ...] = ()

    @classmethod
    def create(
        cls,
        next_step_id: str,
        conditions: list[Condition] | tuple[Condition, ...],
        operator: BranchOperator = "and",
        weight_overrides: list[WeightOverride] | tuple[WeightOverride, ...] = (),
    ) -> Branch:
        return cls(
            conditions=tuple(conditions),
            next_step_id=next_step_id,
            operator=operator,
            weight_overrides=tuple(weight_overrides),
        )


@dataclass(frozen=True)
class MultiSpinConfig:
    enabled: bool = False
    mode: Literal["fixed", "dynamic"] = "fixed"
    fixed_count: int | None = None
    determiner_step_id: str | None = None
    aggregate_results: bool = True


@dataclass(frozen=True)
class Step:
    id: str
    title: str
    wheel: Wheel
    description: str = ""
    default_next_step: str | None = None
    branches: tuple[Branch, ...] = ()
    multi_spin: MultiSpinConfig | None = None
    is_determiner: bool = False
    target_step_id: str | None = None

    @property
    def kind(self) -> StepKind:
        config = self.multi_spin
        if config is not None and config.enabled:
            if config.mode == "dynamic":
                return StepKind.MULTI_SPIN_DYNAMIC
            return StepKind.MULTI_SPIN_FIXED
        if self.is_determiner:
            return StepKind.DETERMINER
        return StepKind.NORMAL


@dataclass(frozen=True)
class Sequence:
    id: str
    name: str
    steps: tuple[Step, ...]
    start_step_id: str
    description: str = ""

    def step(self, step_id: str | None) -> Step | None:
        if step_id is None:
            return None
        for step in self.steps:
            if step.id == step_id:
                return step
        return None

    def has_step(self, step_id: str | None) -> bool:
        return self.step(step_id) is not None


@dataclass(frozen=True)
class SpinResult:
    """One physical spin: the segment the wheel landed on."""

    segment: Segment
    index: int
    timestamp: float
    angle: float | None = None


@dataclass(frozen=True)
class SequenceResult:
    step_id: str
    spin_result: SpinResult
    timestamp: float
    multi_spin_results: tuple[SpinResult, ...] | None = None

    @property
    def segment_id(self) -> str:
        return self.spin_result.segment.id


@dataclass(frozen=True)
class MultiSpinState:
    """Transient collecting session for a multi-spin step."""

    is_active: bool = False
    current_step_id: str | None = None
    current_count: int = 0
    total_count: int = 0
    results: tuple[SpinResult, ...] = field(default_factory=tuple)
    aggregate_results: bool = True

    @property
    def remaining(self) -> int:
        return max(0, self.total_count - self.current_count)
