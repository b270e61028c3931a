"""Registration HTTP API (subscribe / unsubscribe)."""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from starlette.concurrency import run_in_threadpool

from .config import AppConfig
from .errors import StoreUnavailable, ValidationError
from .registration import register, unregister
from .store.subscribers import SubscriberStore

logger = logging.getLogger("hn_watcher.api")


class SubscribeResponse(BaseModel):
    success: bool
    id: str


class UnsubscribeResponse(BaseModel):
    success: bool


class HealthResponse(BaseModel):
    status: str
    subscribers: int


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


async def _read_json(request: Request):
    try:
        return await request.json()
    except ValueError:
        return None


def create_app(cfg: AppConfig, store: SubscriberStore | None = None) -> FastAPI:
    """Build the API application.

    Args:
        cfg: Application configuration (VAPID keys, CORS origins, store path)
        store: Subscriber store; opened from ``cfg.store.path`` when omitted
    """
    if store is None:
        store = SubscriberStore(cfg.store.path)

    app = FastAPI(
        title="HN Watcher",
        description="Registration endpoints for Hacker News push notifications",
        version="0.1.0",
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=cfg.api.allow_origins,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["*"],
    )

    @app.post("/subscribe", response_model=SubscribeResponse)
    async def subscribe(request: Request):
        """Store a push subscription keyed by the hash of its endpoint."""
        if not cfg.vapid.is_valid():
            return _error(500, "Server not configured for push notifications. VAPID keys missing.")
        payload = await _read_json(request)
        try:
            key = await run_in_threadpool(register, store, payload)
        except ValidationError as exc:
            return _error(400, str(exc))
        except StoreUnavailable:
            logger.exception("Subscribe error")
            return _error(500, "Failed to store subscription")
        return SubscribeResponse(success=True, id=key)

    @app.post("/unsubscribe", response_model=UnsubscribeResponse)
    async def unsubscribe(request: Request):
        """Remove a push subscription. Unknown subscriptions are not an error."""
        payload = await _read_json(request)
        try:
            await run_in_threadpool(unregister, store, payload)
        except ValidationError as exc:
            return _error(400, str(exc))
        except StoreUnavailable:
            logger.exception("Unsubscribe error")
            return _error(500, "Failed to remove subscription")
        return UnsubscribeResponse(success=True)

    @app.get("/health", response_model=HealthResponse)
    async def health():
        count = await run_in_threadpool(store.count)
        return HealthResponse(status="ok", subscribers=count)

    return app
