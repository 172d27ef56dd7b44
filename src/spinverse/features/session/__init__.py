"""Session feature: service layer, schemas, and API router."""

from .router import create_session_router
from .schemas import (
    HistoryPayload,
    ResultPayload,
    SpinPayload,
    SpinResponse,
    StepPayload,
    StepResponse,
    ValidationPayload,
)
from .service import SessionConfig, SessionManager

__all__ = [
    "HistoryPayload",
    "ResultPayload",
    "SessionConfig",
    "SessionManager",
    "SpinPayload",
    "SpinResponse",
    "StepPayload",
    "StepResponse",
    "ValidationPayload",
    "create_session_router",
]
