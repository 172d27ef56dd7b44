"""Authoring-time checks for a sequence.

The engine itself degrades gracefully on broken data; this report exists so
editors and loaders can tell authors about problems before a run starts.
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from typing import Literal

from .models import MAX_SPIN_COUNT, Sequence, Step, StepKind
from .overrides import OVERRIDE_BUDGET, override_budget

__all__ = ["ValidationIssue", "ValidationReport", "validate_sequence"]

Severity = Literal["error", "warning"]


@dataclass(frozen=True)
class ValidationIssue:
    code: str
    message: str
    severity: Severity = "error"
    step_id: str | None = None
    segment_id: str | None = None


@dataclass
class ValidationReport:
    errors: list[ValidationIssue] = field(default_factory=list)
    warnings: list[ValidationIssue] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.errors

    def error(self, code: str, message: str, **where: str | None) -> None:
        self.errors.append(ValidationIssue(code, message, "error", **where))

    def warn(self, code: str, message: str, **where: str | None) -> None:
        self.warnings.append(ValidationIssue(code, message, "warning", **where))

    def codes(self) -> set[str]:
        return {issue.code for issue in [*self.errors, *self.warnings]}


def validate_sequence(sequence: Sequence) -> ValidationReport:
    report = ValidationReport()
    ids = Counter(step.id for step in sequence.steps)
    for step_id, count in ids.items():
        if count > 1:
            report.error("duplicate-step", f"Step id '{step_id}' is used {count} times", step_id=step_id)
    if not sequence.has_step(sequence.start_step_id):
        report.error("missing-start", f"Start step '{sequence.start_step_id}' does not exist")

    for step in sequence.steps:
        _check_wheel(report, step)
        _check_pointers(report, sequence, step)
        _check_conditions(report, sequence, step)
        _check_multi_spin(report, sequence, step)
        _check_conflicts(report, step)

    referenced = {
        step.multi_spin.determiner_step_id
        for step in sequence.steps
        if step.kind is StepKind.MULTI_SPIN_DYNAMIC and step.multi_spin is not None
    }
    for step in sequence.steps:
        if step.is_determiner and step.id not in referenced:
            report.warn(
                "orphaned-determiner",
                f"Determiner '{step.id}' is not used by any dynamic multi-spin step",
                step_id=step.id,
            )
    return report


def _check_wheel(report: ValidationReport, step: Step) -> None:
    segments = step.wheel.segments
    if not segments:
        report.error("empty-wheel", f"Step '{step.id}' has no segments", step_id=step.id)
        return
    for segment_id, count in Counter(segment.id for segment in segments).items():
        if count > 1:
            report.error(
                "duplicate-segment",
                f"Segment id '{segment_id}' repeats on step '{step.id}'",
                step_id=step.id,
                segment_id=segment_id,
            )
    for segment in segments:
        if segment.weight < 0:
            report.error(
                "negative-weight",
                f"Segment '{segment.id}' on step '{step.id}' has a negative weight",
                step_id=step.id,
                segment_id=segment.id,
            )
    if sum(max(0.0, segment.weight) for segment in segments) <= 0:
        report.warn("zero-weights", f"All weights on step '{step.id}' are zero; spins will be uniform", step_id=step.id)


def _check_pointers(report: ValidationReport, sequence: Sequence, step: Step) -> None:
    if step.default_next_step and not sequence.has_step(step.default_next_step):
        report.error(
            "dangling-default",
            f"Step '{step.id}' continues to unknown step '{step.default_next_step}'",
            step_id=step.id,
        )
    for branch in step.branches:
        target = sequence.step(branch.next_step_id)
        if target is None:
            report.error(
                "dangling-branch",
                f"A branch on step '{step.id}' points at unknown step '{branch.next_step_id}'",
                step_id=step.id,
            )
            continue
        if not branch.weight_overrides:
            continue
        for override in branch.weight_overrides:
            if target.wheel.segment(override.segment_id) is None:
                report.warn(
                    "unknown-override-segment",
                    f"Weight override names '{override.segment_id}', which is not on step '{target.id}'",
                    step_id=step.id,
                    segment_id=override.segment_id,
                )
        budget = override_budget(target.wheel.segments, branch.weight_overrides)
        if not budget.is_valid:
            report.warn(
                "override-budget",
                f"Weight overrides into '{target.id}' exceed {OVERRIDE_BUDGET:g}",
                step_id=step.id,
            )


def _check_conditions(report: ValidationReport, sequence: Sequence, step: Step) -> None:
    for branch in step.branches:
        for condition in branch.conditions:
            source = sequence.step(condition.step_id)
            if source is None:
                report.warn(
                    "unknown-condition-step",
                    f"Condition on step '{step.id}' references unknown step '{condition.step_id}'",
                    step_id=step.id,
                )
                continue
            expected = condition.expected
            values = expected if isinstance(expected, tuple) else (expected,)
            for value in values:
                if source.wheel.segment(value) is None:
                    report.warn(
                        "unknown-condition-segment",
                        f"Condition on step '{step.id}' expects '{value}', which step '{source.id}' never produces",
                        step_id=step.id,
                        segment_id=value,
                    )


def _check_multi_spin(report: ValidationReport, sequence: Sequence, step: Step) -> None:
    config = step.multi_spin
    kind = step.kind
    if kind is StepKind.MULTI_SPIN_FIXED and config is not None:
        count = config.fixed_count
        if count is None or not 2 <= count <= MAX_SPIN_COUNT:
            report.error(
                "fixed-count",
                f"Step '{step.id}' needs a fixed spin count between 2 and {MAX_SPIN_COUNT}",
                step_id=step.id,
            )
    elif kind is StepKind.MULTI_SPIN_DYNAMIC and config is not None:
        determiner = sequence.step(config.determiner_step_id)
        if determiner is None:
            report.error(
                "missing-determiner",
                f"Dynamic multi-spin on '{step.id}' has no determiner step",
                step_id=step.id,
            )


def _check_conflicts(report: ValidationReport, step: Step) -> None:
    branches = step.branches
    for i, first in enumerate(branches):
        for j in range(i + 1, len(branches)):
            second = branches[j]
            if len(first.conditions) != 1 or len(second.conditions) != 1:
                continue
            a, b = first.conditions[0], second.conditions[0]
            if a.operator == b.operator == "equals" and a.step_id == b.step_id and a.expected == b.expected:
                report.warn(
                    "branch-conflict",
                    f"Branches {i + 1} and {j + 1} on step '{step.id}' trigger on the same result; "
                    f"only branch {i + 1} will run",
                    step_id=step.id,
                )
