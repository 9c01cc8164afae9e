"""Application factory and top-level wiring for the lab device inventory.

This module brings together configuration, the key-value store, the device
repository, session handling, error envelopes and the API routers. Nothing
runs at import time: ``create_app`` builds a fresh application so tests can
hand it their own settings and an in-memory store.
"""

from __future__ import annotations

from typing import Optional

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.sessions import SessionMiddleware

from .core.config import AppSettings, get_settings
from .core.errors import (
    AuthorizationRequired,
    authorization_required_handler,
    http_exception_handler,
    validation_exception_handler,
)
from .crud.devices import DeviceRepository
from .db.store import KeyValueStore, build_store
from .middlewares import RequestContextMiddleware
from .routers import api_auth, api_certificates, api_devices, api_preferences
from .services.certificates import CertificateWorkbench


def create_app(settings: Optional[AppSettings] = None, store: Optional[KeyValueStore] = None) -> FastAPI:
    settings = settings or get_settings()
    store = store if store is not None else build_store(settings)

    app = FastAPI(title=settings.APP_NAME)
    app.state.settings = settings
    app.state.store = store
    # Devices, notes and change logs are read once; every mutation writes back.
    app.state.repository = DeviceRepository(store).load()
    app.state.workbench = CertificateWorkbench()

    # ---------- Middleware ----------
    # Added first so it runs inside SessionMiddleware and can see the session.
    app.add_middleware(RequestContextMiddleware)
    app.add_middleware(
        SessionMiddleware,
        secret_key=settings.APP_SECRET,
        session_cookie=settings.SESSION_COOKIE_NAME,
        max_age=settings.SESSION_MAX_AGE,
        same_site="lax",
        https_only=False,
    )
    if settings.ALLOWED_ORIGINS:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=settings.ALLOWED_ORIGINS,
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    # ---------- Exception handling ----------
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(AuthorizationRequired, authorization_required_handler)

    # ---------- Routers ----------
    app.include_router(api_devices.router)
    app.include_router(api_auth.router)
    app.include_router(api_preferences.router)
    app.include_router(api_certificates.router)

    @app.on_event("shutdown")
    async def _flush_inventory() -> None:
        app.state.repository.flush()

    return app


__all__ = ["create_app"]
