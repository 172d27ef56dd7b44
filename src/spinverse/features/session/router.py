from __future__ import annotations

from typing import Any

from fastapi import APIRouter, HTTPException
from fastapi.responses import JSONResponse
from pydantic import BaseModel, model_validator

from ...core.validation import validate_sequence
from ...data.sequence_loader import SequenceLoadError, parse_sequence
from .service import SessionConfig, SessionManager, sequence_summary, validation_payload

__all__ = ["CreateSessionRequest", "OutcomeRequest", "create_session_router"]

_SOURCES = ("draw", "angle")


class CreateSessionRequest(BaseModel):
    sequence: str
    seed: int | None = None
    source: str | None = None

    @model_validator(mode="before")
    @classmethod
    def _coerce(cls, data: dict[str, object]) -> dict[str, object]:
        if not isinstance(data, dict):
            return data
        cleaned: dict[str, object] = dict(data)
        value = cleaned.get("seed")
        if value in (None, ""):
            cleaned["seed"] = None
        elif isinstance(value, str):
            try:
                cleaned["seed"] = int(value)
            except ValueError:
                cleaned["seed"] = None
        return cleaned

    @model_validator(mode="after")
    def _normalize(self) -> CreateSessionRequest:
        source = (self.source or "draw").strip().lower()
        if source not in _SOURCES:
            source = "draw"
        self.source = source
        return self


class OutcomeRequest(BaseModel):
    step_id: str
    segment_index: int
    event_id: int | None = None
    angle: float | None = None


class _SessionController:
    def __init__(self, manager: SessionManager) -> None:
        self.manager = manager

    def _json_response(self, data: dict[str, object]) -> JSONResponse:
        return JSONResponse(data)

    # ------------------------------------------------------------------ actions
    async def sequences(self) -> JSONResponse:
        items = [sequence_summary(sequence).to_dict() for sequence in self.manager.repository.all()]
        return self._json_response({"sequences": items})

    async def validate(self, payload: dict[str, Any]) -> JSONResponse:
        try:
            sequence = parse_sequence(payload)
        except SequenceLoadError as exc:
            raise HTTPException(422, str(exc)) from exc
        return self._json_response(validation_payload(validate_sequence(sequence)).to_dict())

    async def create(self, body: CreateSessionRequest) -> JSONResponse:
        config = SessionConfig(sequence_id=body.sequence, seed=body.seed, source=body.source or "draw")
        try:
            session_id = await self.manager.create_session_async(config)
        except KeyError as exc:
            raise HTTPException(404, str(exc)) from exc
        payload = await self.manager.current_step_async(session_id)
        return self._json_response({"session": session_id, "step": payload.to_dict()})

    async def step(self, sid: str) -> JSONResponse:
        try:
            payload = await self.manager.current_step_async(sid)
        except KeyError as exc:
            raise HTTPException(404, str(exc)) from exc
        return self._json_response(payload.to_dict())

    async def spin(self, sid: str) -> JSONResponse:
        try:
            result = await self.manager.spin_async(sid)
        except KeyError as exc:
            raise HTTPException(404, str(exc)) from exc
        except ValueError as exc:
            raise HTTPException(400, str(exc)) from exc
        return self._json_response(result.to_dict())

    async def outcome(self, sid: str, body: OutcomeRequest) -> JSONResponse:
        try:
            result = await self.manager.submit_outcome_async(
                sid,
                body.step_id,
                body.segment_index,
                event_id=body.event_id,
                angle=body.angle,
            )
        except KeyError as exc:
            raise HTTPException(404, str(exc)) from exc
        except ValueError as exc:
            raise HTTPException(400, str(exc)) from exc
        return self._json_response(result.to_dict())

    async def reset(self, sid: str) -> JSONResponse:
        try:
            payload = await self.manager.reset_async(sid)
        except KeyError as exc:
            raise HTTPException(404, str(exc)) from exc
        return self._json_response(payload.to_dict())

    async def history(self, sid: str) -> JSONResponse:
        try:
            payload = await self.manager.history_async(sid)
        except KeyError as exc:
            raise HTTPException(404, str(exc)) from exc
        return self._json_response(payload.to_dict())


def create_session_router(manager: SessionManager) -> APIRouter:
    controller = _SessionController(manager)
    router = APIRouter(prefix="/api/v1", tags=["session"])

    @router.get("/sequences")
    async def list_sequences() -> JSONResponse:
        return await controller.sequences()

    @router.post("/sequences/validate")
    async def validate_payload(payload: dict[str, Any]) -> JSONResponse:
        return await controller.validate(payload)

    @router.post("/session")
    async def create_session(body: CreateSessionRequest) -> JSONResponse:
        return await controller.create(body)

    @router.get("/session/{sid}/step")
    async def get_step(sid: str) -> JSONResponse:
        return await controller.step(sid)

    @router.post("/session/{sid}/spin")
    async def post_spin(sid: str) -> JSONResponse:
        return await controller.spin(sid)

    @router.post("/session/{sid}/outcome")
    async def post_outcome(sid: str, body: OutcomeRequest) -> JSONResponse:
        return await controller.outcome(sid, body)

    @router.post("/session/{sid}/reset")
    async def post_reset(sid: str) -> JSONResponse:
        return await controller.reset(sid)

    @router.get("/session/{sid}/history")
    async def get_history(sid: str) -> JSONResponse:
        return await controller.history(sid)

    return router
