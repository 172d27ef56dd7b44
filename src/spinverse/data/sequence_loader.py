from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_camel

from ..core import feature_flags
from ..core.models import (
    Branch,
    Condition,
    MultiSpinConfig,
    Rarity,
    Segment,
    Sequence,
    Step,
    WeightOverride,
    Wheel,
)
from ..core.selection import RARITY_WEIGHTS

__all__ = [
    "SequenceLoadError",
    "SequenceRepository",
    "SequenceRepositoryConfig",
    "get_repository",
    "parse_sequence",
    "sequence_to_payload",
]

logger = logging.getLogger(__name__)

_BUNDLED_DIR = Path(__file__).with_name("sequences")
_FALLBACK_WEIGHT = 1.0


class SequenceLoadError(ValueError):
    """Raised when a sequence payload cannot be read or does not validate."""


class _FileModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


class SegmentModel(_FileModel):
    id: str
    text: str
    color: str = "#888888"
    weight: Optional[float] = None
    rarity: Rarity = Rarity.COMMON


class WheelModel(_FileModel):
    segments: list[SegmentModel] = Field(default_factory=list)


class ConditionModel(_FileModel):
    step_id: str
    segment_id: str = ""
    operator: Literal["equals", "not_equals", "in", "not_in"] = "equals"
    value: Union[str, list[str], None] = None


class WeightOverrideModel(_FileModel):
    segment_id: str
    new_weight: float


class BranchModel(_FileModel):
    conditions: list[ConditionModel] = Field(default_factory=list)
    next_step_id: str
    operator: Literal["and", "or"] = "and"
    weight_overrides: list[WeightOverrideModel] = Field(default_factory=list)


class MultiSpinModel(_FileModel):
    enabled: bool = False
    mode: Literal["fixed", "dynamic"] = "fixed"
    fixed_count: Optional[int] = None
    determiner_step_id: Optional[str] = None
    aggregate_results: bool = True


class StepModel(_FileModel):
    id: str
    title: str
    description: str = ""
    wheel_config: WheelModel
    default_next_step: Optional[str] = None
    branches: list[BranchModel] = Field(default_factory=list)
    multi_spin: Optional[MultiSpinModel] = None
    is_determiner: bool = False
    target_step_id: Optional[str] = None


class SequenceModel(_FileModel):
    id: str
    name: str
    description: str = ""
    start_step_id: str
    steps: list[StepModel] = Field(default_factory=list)


def _segment(model: SegmentModel, rarity_defaults: bool) -> Segment:
    weight = model.weight
    if weight is None:
        weight = RARITY_WEIGHTS[model.rarity] if rarity_defaults else _FALLBACK_WEIGHT
    return Segment(id=model.id, text=model.text, color=model.color, weight=float(weight), rarity=model.rarity)


def _condition(model: ConditionModel) -> Condition:
    value = tuple(model.value) if isinstance(model.value, list) else model.value
    return Condition(step_id=model.step_id, segment_id=model.segment_id, operator=model.operator, value=value)


def _step(model: StepModel, rarity_defaults: bool) -> Step:
    multi = model.multi_spin
    return Step(
        id=model.id,
        title=model.title,
        description=model.description,
        wheel=Wheel(segments=tuple(_segment(seg, rarity_defaults) for seg in model.wheel_config.segments)),
        default_next_step=model.default_next_step or None,
        branches=tuple(
            Branch(
                conditions=tuple(_condition(cond) for cond in branch.conditions),
                next_step_id=branch.next_step_id,
                operator=branch.operator,
                weight_overrides=tuple(
                    WeightOverride(segment_id=item.segment_id, new_weight=item.new_weight)
                    for item in branch.weight_overrides
                ),
            )
            for branch in model.branches
        ),
        multi_spin=(
            MultiSpinConfig(
                enabled=multi.enabled,
                mode=multi.mode,
                fixed_count=multi.fixed_count,
                determiner_step_id=multi.determiner_step_id,
                aggregate_results=multi.aggregate_results,
            )
            if multi is not None
            else None
        ),
        is_determiner=model.is_determiner,
        target_step_id=model.target_step_id,
    )


def parse_sequence(payload: dict[str, Any]) -> Sequence:
    """Build a ``Sequence`` from its JSON payload (camelCase or snake_case keys)."""

    try:
        model = SequenceModel.model_validate(payload)
    except ValidationError as exc:
        raise SequenceLoadError(f"invalid sequence payload: {exc.error_count()} error(s)") from exc
    rarity_defaults = feature_flags.is_enabled(feature_flags.RARITY_DEFAULTS)
    return Sequence(
        id=model.id,
        name=model.name,
        description=model.description,
        start_step_id=model.start_step_id,
        steps=tuple(_step(step, rarity_defaults) for step in model.steps),
    )


def sequence_to_payload(sequence: Sequence) -> dict[str, Any]:
    model = SequenceModel(
        id=sequence.id,
        name=sequence.name,
        description=sequence.description,
        start_step_id=sequence.start_step_id,
        steps=[
            StepModel(
                id=step.id,
                title=step.title,
                description=step.description,
                wheel_config=WheelModel(
                    segments=[
                        SegmentModel(
                            id=seg.id,
                            text=seg.text,
                            color=seg.color,
                            weight=seg.weight,
                            rarity=seg.rarity,
                        )
                        for seg in step.wheel.segments
                    ]
                ),
                default_next_step=step.default_next_step,
                branches=[
                    BranchModel(
                        conditions=[
                            ConditionModel(
                                step_id=cond.step_id,
                                segment_id=cond.segment_id,
                                operator=cond.operator,
                                value=list(cond.value) if isinstance(cond.value, tuple) else cond.value,
                            )
                            for cond in branch.conditions
                        ],
                        next_step_id=branch.next_step_id,
                        operator=branch.operator,
                        weight_overrides=[
                            WeightOverrideModel(segment_id=item.segment_id, new_weight=item.new_weight)
                            for item in branch.weight_overrides
                        ],
                    )
                    for branch in step.branches
                ],
                multi_spin=(
                    MultiSpinModel(
                        enabled=step.multi_spin.enabled,
                        mode=step.multi_spin.mode,
                        fixed_count=step.multi_spin.fixed_count,
                        determiner_step_id=step.multi_spin.determiner_step_id,
                        aggregate_results=step.multi_spin.aggregate_results,
                    )
                    if step.multi_spin is not None
                    else None
                ),
                is_determiner=step.is_determiner,
                target_step_id=step.target_step_id,
            )
            for step in sequence.steps
        ],
    )
    return model.model_dump(by_alias=True, exclude_none=True, mode="json")


@dataclass(slots=True)
class SequenceRepositoryConfig:
    """Where to look for sequence JSON files."""

    directory: Path


class SequenceRepository:
    """Load authored sequences from a directory of JSON files."""

    def __init__(self, config: SequenceRepositoryConfig | None = None) -> None:
        directory = config.directory if config else _BUNDLED_DIR
        self._config = SequenceRepositoryConfig(directory=directory)
        self._sequences: dict[str, Sequence] = {}
        for path in sorted(directory.glob("*.json")):
            sequence = self.load_file(path)
            if sequence.id in self._sequences:
                logger.warning("Duplicate sequence id %s in %s; keeping the first", sequence.id, path)
                continue
            self._sequences[sequence.id] = sequence

    @staticmethod
    def load_file(path: Path) -> Sequence:
        try:
            with path.open("r", encoding="utf-8") as fh:
                data = json.load(fh)
        except (OSError, json.JSONDecodeError) as exc:
            raise SequenceLoadError(f"cannot read sequence file {path}: {exc}") from exc
        if not isinstance(data, dict):
            raise SequenceLoadError(f"sequence file {path} must contain a JSON object")
        return parse_sequence(data)

    def get(self, sequence_id: str) -> Sequence:
        sequence = self._sequences.get(sequence_id)
        if sequence is None:
            raise KeyError(f"sequence '{sequence_id}' not found")
        return sequence

    def ids(self) -> list[str]:
        return list(self._sequences)

    def all(self) -> list[Sequence]:
        return list(self._sequences.values())


_REPOSITORY: Optional[SequenceRepository] = None


def get_repository() -> SequenceRepository:
    """Return the repository of bundled sequences."""

    global _REPOSITORY
    if _REPOSITORY is None:
        _REPOSITORY = SequenceRepository()
    return _REPOSITORY
