from __future__ import annotations

import random
import secrets
import time

from .core import feature_flags
from .core.models import Sequence, SequenceResult
from .engine.graph import progress
from .engine.machine import SpinCollected, SpinOutcome, StepCompleted, advance, start_run
from .engine.sources import make_source
from .ui.presenters import RichPresenter


def run_play(
    sequence: Sequence,
    *,
    seed: int | None = None,
    source: str = "draw",
    presenter: RichPresenter | None = None,
    auto: bool = False,
    _input_fn=input,
) -> tuple[SequenceResult, ...]:
    """Play ``sequence`` in the terminal and return the run history."""

    presenter = presenter or RichPresenter()
    actual_seed = seed if seed is not None else secrets.randbits(32)
    spinner = make_source(source, random.Random(actual_seed))
    state = start_run(
        sequence,
        redistribute_overrides=feature_flags.is_enabled(feature_flags.REDISTRIBUTE_OVERRIDES),
    )
    presenter.start_run(sequence)
    event_id = 0

    while (step := state.current_step) is not None:
        presenter.show_step(step, state.wheel, progress(sequence, state.history), state.multi_spin)
        if not auto and not presenter.prompt_spin(_input_fn):
            break
        raw = spinner.spin(state.wheel)
        event_id += 1
        state, effects = advance(
            state,
            SpinOutcome(
                step_id=step.id,
                segment_index=raw.index,
                segment=raw.segment,
                angle=raw.angle,
                event_id=event_id,
                timestamp=time.time(),
            ),
        )
        announced = False
        for effect in effects:
            if isinstance(effect, SpinCollected):
                presenter.show_spin(effect.spin.segment, effect.current_count, effect.total_count)
                announced = True
            elif isinstance(effect, StepCompleted):
                if not announced:
                    presenter.show_spin(effect.result.spin_result.segment)
                presenter.show_completed(effect.result)

    presenter.summary(sequence, state.history)
    return state.history
