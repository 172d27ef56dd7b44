from __future__ import annotations

import os
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from ..core import feature_flags
from ..features.session import SessionManager, create_session_router
from ..features.session.concurrency import shutdown_executor


@asynccontextmanager
async def _lifespan(_app: FastAPI) -> AsyncIterator[None]:
    yield
    shutdown_executor()


def create_app(manager: SessionManager | None = None) -> FastAPI:
    app = FastAPI(title="SpinVerse", lifespan=_lifespan)
    app.state.manager = manager or SessionManager()
    app.include_router(create_session_router(app.state.manager))

    @app.get("/healthz")
    def healthz() -> dict[str, object]:
        return {"status": "ok", "features": feature_flags.active_flags()}

    return app


app = create_app()


def main() -> None:  # pragma: no cover - runner
    import uvicorn

    host = os.environ.get("BIND", "0.0.0.0")
    port = int(os.environ.get("PORT", "8000"))
    uvicorn.run(app, host=host, port=port, factory=False)


if __name__ == "__main__":  # pragma: no cover
    main()
