"""Weight overrides applied when a branch transitions into a step."""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass

from .models import Segment, WeightOverride

__all__ = ["OVERRIDE_BUDGET", "OverrideBudget", "apply_weight_overrides", "override_budget"]

OVERRIDE_BUDGET = 100.0


@dataclass(frozen=True)
class OverrideBudget:
    remaining: float
    per_remaining: float
    untouched: tuple[str, ...]

    @property
    def is_valid(self) -> bool:
        return 0.0 <= self.remaining <= OVERRIDE_BUDGET


def _override_map(segments: Sequence[Segment], overrides: Iterable[WeightOverride]) -> dict[str, float]:
    known = {segment.id for segment in segments}
    mapping: dict[str, float] = {}
    for override in overrides:
        if override.segment_id in known:
            mapping[override.segment_id] = max(0.0, float(override.new_weight))
    return mapping


def override_budget(
    segments: Sequence[Segment],
    overrides: Iterable[WeightOverride],
    budget: float = OVERRIDE_BUDGET,
) -> OverrideBudget:
    """How the authoring convention splits weight between untouched segments."""

    mapping = _override_map(segments, overrides)
    remaining = budget - sum(mapping.values())
    untouched = tuple(segment.id for segment in segments if segment.id not in mapping)
    per_remaining = max(0.0, remaining / len(untouched)) if untouched else 0.0
    return OverrideBudget(remaining=remaining, per_remaining=per_remaining, untouched=untouched)


def apply_weight_overrides(
    segments: Sequence[Segment],
    overrides: Iterable[WeightOverride],
    *,
    redistribute: bool = False,
    budget: float = OVERRIDE_BUDGET,
) -> tuple[Segment, ...]:
    """Return a copy of ``segments`` with override weights applied.

    Overrides naming unknown segments are ignored.  With ``redistribute`` the
    segments not named share whatever is left of ``budget`` equally; otherwise
    they keep their authored weights.
    """

    overrides = tuple(overrides)
    mapping = _override_map(segments, overrides)
    if not mapping:
        return tuple(segments)
    share: float | None = None
    if redistribute:
        share = override_budget(segments, overrides, budget).per_remaining
    adjusted: list[Segment] = []
    for segment in segments:
        if segment.id in mapping:
            adjusted.append(segment.with_weight(mapping[segment.id]))
        elif share is not None:
            adjusted.append(segment.with_weight(share))
        else:
            adjusted.append(segment)
    return tuple(adjusted)
