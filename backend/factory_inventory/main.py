from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from factory_inventory.api.routers import auth, batches, material_logs, materials, reports, usage_logs
from factory_inventory.api.routers import settings as settings_router
from factory_inventory.core.auth import PinGate
from factory_inventory.core.config import settings
from factory_inventory.core.logs import configure_logging
from factory_inventory.schemas.common import Health

logger = logging.getLogger("app")


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging()
    gate = PinGate(pin=settings.access_pin, secret_key=settings.app_secret_key, ttl_sec=settings.session_ttl_sec)
    app.state.pin_gate = gate
    logger.info("inventory api starting env=%s", settings.app_env)
    try:
        yield
    finally:
        gate.close()
        app.state.pin_gate = None


app = FastAPI(title="Factory Inventory API", version="0.1.0", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(IntegrityError)
async def integrity_error_handler(request: Request, exc: IntegrityError) -> JSONResponse:
    logger.warning("integrity conflict %s %s: %s", request.method, request.url.path, exc.orig)
    return JSONResponse(status_code=409, content={"detail": "conflicting or dangling reference"})


@app.exception_handler(SQLAlchemyError)
async def store_error_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    logger.exception("store error %s %s", request.method, request.url.path)
    return JSONResponse(status_code=503, content={"detail": "database unavailable", "retry": True})


app.include_router(auth.router)
app.include_router(materials.router)
app.include_router(usage_logs.router)
app.include_router(batches.router)
app.include_router(material_logs.router)
app.include_router(settings_router.router)
app.include_router(reports.router)


@app.get("/health", response_model=Health)
async def health() -> Health:
    return Health(status="ok", time=datetime.now(timezone.utc))
