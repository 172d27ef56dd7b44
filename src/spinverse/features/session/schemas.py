from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

__all__ = [
    "HistoryPayload",
    "MultiSpinPayload",
    "ProgressPayload",
    "ResultPayload",
    "SegmentPayload",
    "SequenceSummaryPayload",
    "SpinPayload",
    "SpinResponse",
    "StepPayload",
    "StepResponse",
    "ValidationIssuePayload",
    "ValidationPayload",
]


class _APIModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class SegmentPayload(_APIModel):
    id: str
    text: str
    color: str
    weight: float
    probability: float
    rarity: str


class MultiSpinPayload(_APIModel):
    active: bool
    current: int
    total: int
    remaining: int
    aggregate: bool


class StepPayload(_APIModel):
    id: str
    title: str
    description: str
    kind: str
    segments: list[SegmentPayload]
    multi_spin: MultiSpinPayload | None = None


class ProgressPayload(_APIModel):
    completed: int
    total: int
    percentage: int


class StepResponse(_APIModel):
    done: bool
    sequence_id: str
    progress: ProgressPayload
    step: StepPayload | None = None
    narrative: str | None = None


class SpinPayload(_APIModel):
    segment_id: str
    text: str
    index: int
    timestamp: float
    angle: float | None = None


class ResultPayload(_APIModel):
    step_id: str
    segment_id: str
    text: str
    timestamp: float
    multi_spin: list[SpinPayload] | None = None


class SpinResponse(_APIModel):
    accepted: bool
    reason: str | None = None
    spin: SpinPayload | None = None
    completed_step: ResultPayload | None = None
    next_payload: StepResponse = Field(..., alias="next")


class HistoryPayload(_APIModel):
    sequence_id: str
    complete: bool
    narrative: str
    results: list[ResultPayload]


class SequenceSummaryPayload(_APIModel):
    id: str
    name: str
    description: str
    steps: int
    start_step_id: str


class ValidationIssuePayload(_APIModel):
    code: str
    message: str
    severity: str
    step_id: str | None = None
    segment_id: str | None = None


class ValidationPayload(_APIModel):
    valid: bool
    errors: list[ValidationIssuePayload]
    warnings: list[ValidationIssuePayload]
