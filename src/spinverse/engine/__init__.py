"""Branch resolution, multi-spin orchestration and the run state machine."""

from .machine import Reset, RunState, SpinOutcome, advance, start_run
from .resolver import Resolution, resolve_next

__all__ = ["Reset", "Resolution", "RunState", "SpinOutcome", "advance", "resolve_next", "start_run"]
