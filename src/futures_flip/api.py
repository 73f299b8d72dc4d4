from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Any, Optional, Protocol

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from futures_flip.engine.orchestrator import SignalValidationError
from futures_flip.runtime import build_executor
from futures_flip.settings import Settings

logger = logging.getLogger("futures_flip.api")


class SignalHandler(Protocol):
    async def handle(self, payload: Any) -> dict[str, Any]: ...

    async def aclose(self) -> None: ...


def create_app(
    settings: Optional[Settings] = None,
    *,
    executor: Optional[SignalHandler] = None,
) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        handler = executor if executor is not None else build_executor(settings or Settings())
        app.state.executor = handler
        logger.info("executor_started")
        try:
            yield
        finally:
            await handler.aclose()
            logger.info("executor_stopped")

    app = FastAPI(lifespan=lifespan)

    @app.get("/healthz")
    async def healthz() -> dict[str, bool]:
        return {"ok": True}

    @app.post("/api/webhook")
    async def webhook(request: Request) -> JSONResponse:
        try:
            payload = await request.json()
        except ValueError:
            payload = None
        try:
            order = await request.app.state.executor.handle(payload)
        except SignalValidationError as e:
            return JSONResponse(status_code=400, content={"ok": False, "error": str(e)})
        except Exception as e:
            return JSONResponse(status_code=500, content={"ok": False, "error": str(e)})
        return JSONResponse(content={"ok": True, "order": order})

    return app
