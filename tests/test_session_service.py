from __future__ import annotations

import asyncio
import itertools

import pytest

from spinverse.core.models import Segment, Sequence, Step, Wheel
from spinverse.features.session import (
    HistoryPayload,
    SessionConfig,
    SessionManager,
    SpinResponse,
    StepResponse,
)
from spinverse.features.session.concurrency import shutdown_executor


def _manager() -> SessionManager:
    ticks = itertools.count(100)
    return SessionManager(clock=lambda: float(next(ticks)))


def _two_step_sequence() -> Sequence:
    return Sequence(
        id="pair",
        name="Pair",
        steps=(
            Step(
                id="first",
                title="First",
                wheel=Wheel(segments=(Segment(id="a", text="A", weight=1), Segment(id="b", text="B", weight=1))),
                default_next_step="second",
            ),
            Step(id="second", title="Second", wheel=Wheel(segments=(Segment(id="z", text="Z"),))),
        ),
        start_step_id="first",
    )


def test_session_manager_plays_bundled_sequence_to_completion():
    manager = _manager()
    session_id = manager.create_session(SessionConfig(sequence_id="mystical-academy", seed=1234))

    first = manager.current_step(session_id)
    assert isinstance(first, StepResponse)
    data = first.to_dict()
    assert not data["done"]
    assert data["step"]["id"] == "origin"
    assert data["step"]["kind"] == "normal"
    probabilities = [segment["probability"] for segment in data["step"]["segments"]]
    assert sum(probabilities) == pytest.approx(1.0)

    spins = 0
    current = data
    while not current["done"]:
        response = manager.spin(session_id)
        assert isinstance(response, SpinResponse)
        payload = response.to_dict()
        assert payload["accepted"] is True
        assert "spin" in payload
        current = payload["next"]
        spins += 1
        assert spins < 30, "session did not converge"

    history = manager.history(session_id)
    assert isinstance(history, HistoryPayload)
    assert history.complete is True
    step_ids = [result.step_id for result in history.results]
    assert step_ids[0] == "origin"
    assert step_ids[-1] == "career"
    assert len(step_ids) == len(set(step_ids))
    assert current["narrative"] == history.narrative

    with pytest.raises(ValueError):
        manager.spin(session_id)


def test_same_seed_gives_same_story():
    stories = []
    for _ in range(2):
        manager = _manager()
        session_id = manager.create_session(SessionConfig(sequence_id="detective-mystery", seed=99, source="angle"))
        while not manager.current_step(session_id).done:
            manager.spin(session_id)
        stories.append(manager.history(session_id).narrative)
    assert stories[0] == stories[1]


def test_submit_outcome_deduplicates_events():
    manager = _manager()
    session_id = manager.create_session_for(_two_step_sequence(), seed=1)

    accepted = manager.submit_outcome(session_id, "first", 1, event_id=5)
    assert accepted.accepted is True
    assert accepted.completed_step.segment_id == "b"
    assert accepted.completed_step.timestamp == 100.0
    assert accepted.next_payload.step.id == "second"

    replay = manager.submit_outcome(session_id, "first", 1, event_id=5)
    assert replay.accepted is False
    assert replay.reason == "stale_event"

    wrong_step = manager.submit_outcome(session_id, "first", 0)
    assert wrong_step.accepted is False
    assert wrong_step.reason == "not_current_step"

    with pytest.raises(ValueError):
        manager.submit_outcome(session_id, "second", -1)

    final = manager.submit_outcome(session_id, "second", 0)
    assert final.accepted is True
    assert final.next_payload.done is True
    assert [result.segment_id for result in manager.history(session_id).results] == ["b", "z"]


def test_reset_restarts_the_run():
    manager = _manager()
    session_id = manager.create_session_for(_two_step_sequence(), seed=3)
    manager.spin(session_id)
    assert manager.current_step(session_id).step.id == "second"

    payload = manager.reset(session_id)
    assert payload.step.id == "first"
    assert payload.progress.completed == 0
    assert manager.history(session_id).results == []
    assert manager.submit_outcome(session_id, "first", 0).accepted is True


def test_unknown_session_and_sequence_raise_key_error():
    manager = _manager()
    with pytest.raises(KeyError):
        manager.current_step("missing")
    with pytest.raises(KeyError):
        manager.create_session(SessionConfig(sequence_id="nope"))

    session_id = manager.create_session_for(_two_step_sequence())
    manager.close(session_id)
    with pytest.raises(KeyError):
        manager.history(session_id)


def test_async_wrappers_delegate():
    manager = _manager()

    async def _flow() -> tuple[StepResponse, SpinResponse]:
        session_id = await manager.create_session_async(SessionConfig(sequence_id="detective-mystery", seed=7))
        step = await manager.current_step_async(session_id)
        spun = await manager.spin_async(session_id)
        return step, spun

    step, spun = asyncio.run(_flow())
    assert step.step.id == "case"
    assert spun.accepted is True


def test_worker_pool_restarts_after_shutdown():
    manager = _manager()
    session_id = manager.create_session_for(_two_step_sequence(), seed=2)

    shutdown_executor()
    step = asyncio.run(manager.current_step_async(session_id))
    assert step.step.id == "first"
    shutdown_executor()
