from __future__ import annotations

from fastapi.testclient import TestClient

from spinverse.data.sequence_loader import get_repository, sequence_to_payload
from spinverse.features.session import SessionManager
from spinverse.web.app import create_app


def _client() -> tuple[TestClient, SessionManager]:
    manager = SessionManager()
    return TestClient(create_app(manager)), manager


def _play_session(client: TestClient, sid: str) -> dict:
    for _ in range(30):
        step = client.get(f"/api/v1/session/{sid}/step").json()
        if step["done"]:
            return step
        response = client.post(f"/api/v1/session/{sid}/spin")
        assert response.status_code == 200
    raise AssertionError("session did not converge")


def test_list_sequences() -> None:
    client, _ = _client()
    data = client.get("/api/v1/sequences").json()
    ids = {item["id"] for item in data["sequences"]}
    assert {"mystical-academy", "detective-mystery"} <= ids
    assert all(item["steps"] > 0 for item in data["sequences"])


def test_create_session_normalizes_source_and_plays_to_completion() -> None:
    client, manager = _client()

    response = client.post("/api/v1/session", json={"sequence": "detective-mystery", "seed": "42", "source": "Wobble"})
    assert response.status_code == 200
    data = response.json()
    sid = data["session"]
    assert data["step"]["step"]["id"] == "case"

    state = manager._sessions[sid]
    assert state.config.seed == 42
    assert state.config.source == "draw"

    final = _play_session(client, sid)
    assert final["done"] is True
    assert final["narrative"]

    history = client.get(f"/api/v1/session/{sid}/history").json()
    assert history["complete"] is True
    step_ids = [item["step_id"] for item in history["results"]]
    assert step_ids[:2] == ["case", "leads"]
    assert step_ids[-1] in {"verdict", "cold-case"}

    assert client.post(f"/api/v1/session/{sid}/spin").status_code == 400


def test_outcome_endpoint_rejects_duplicates() -> None:
    client, _ = _client()
    sid = client.post("/api/v1/session", json={"sequence": "detective-mystery", "seed": 1}).json()["session"]

    first = client.post(f"/api/v1/session/{sid}/outcome", json={"step_id": "case", "segment_index": 2, "event_id": 10})
    body = first.json()
    assert body["accepted"] is True
    assert body["completed_step"]["segment_id"] == "poison"
    assert body["next"]["step"]["id"] == "leads"

    again = client.post(f"/api/v1/session/{sid}/outcome", json={"step_id": "case", "segment_index": 2, "event_id": 10})
    assert again.json()["accepted"] is False
    assert again.json()["reason"] == "stale_event"

    bad_index = client.post(f"/api/v1/session/{sid}/outcome", json={"step_id": "leads", "segment_index": -3})
    assert bad_index.status_code == 400


def test_multi_spin_progress_is_reported() -> None:
    client, _ = _client()
    sid = client.post("/api/v1/session", json={"sequence": "detective-mystery", "seed": 5}).json()["session"]
    client.post(f"/api/v1/session/{sid}/outcome", json={"step_id": "case", "segment_index": 0})

    body = client.post(f"/api/v1/session/{sid}/outcome", json={"step_id": "leads", "segment_index": 3}).json()
    assert body["accepted"] is True
    assert "completed_step" not in body
    multi = body["next"]["step"]["multi_spin"]
    assert multi == {"active": True, "current": 1, "total": 3, "remaining": 2, "aggregate": False}
    # The theft branch boosts the informant lead.
    informant = next(seg for seg in body["next"]["step"]["segments"] if seg["id"] == "informant")
    assert informant["weight"] == 50

    client.post(f"/api/v1/session/{sid}/outcome", json={"step_id": "leads", "segment_index": 3})
    last = client.post(f"/api/v1/session/{sid}/outcome", json={"step_id": "leads", "segment_index": 1}).json()
    assert last["completed_step"]["segment_id"] == "fingerprints"
    assert last["next"]["step"]["id"] == "verdict"


def test_reset_and_unknown_ids() -> None:
    client, _ = _client()
    assert client.post("/api/v1/session", json={"sequence": "nope"}).status_code == 404
    assert client.get("/api/v1/session/missing/step").status_code == 404
    assert client.post("/api/v1/session/missing/spin").status_code == 404
    assert client.get("/api/v1/session/missing/history").status_code == 404

    sid = client.post("/api/v1/session", json={"sequence": "mystical-academy"}).json()["session"]
    client.post(f"/api/v1/session/{sid}/spin")
    reset = client.post(f"/api/v1/session/{sid}/reset").json()
    assert reset["step"]["id"] == "origin"
    assert reset["progress"]["completed"] == 0


def test_validate_endpoint() -> None:
    client, _ = _client()
    payload = sequence_to_payload(get_repository().get("mystical-academy"))
    ok = client.post("/api/v1/sequences/validate", json=payload).json()
    assert ok["valid"] is True

    payload["startStepId"] = "nowhere"
    broken = client.post("/api/v1/sequences/validate", json=payload).json()
    assert broken["valid"] is False
    assert "missing-start" in {issue["code"] for issue in broken["errors"]}

    assert client.post("/api/v1/sequences/validate", json={"id": "x"}).status_code == 422


def test_healthz() -> None:
    client, _ = _client()
    assert client.get("/healthz").json() == {"status": "ok", "features": []}
