from __future__ import annotations

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.api.routes import router as api_router
from app.core.config import get_settings
from app.core.logging import setup_logging
from app.services.container import ServiceContainer
from app.services.db import SessionLocal, init_db
from app.services.sweeper import start_sweeper

settings = get_settings()
setup_logging(settings.logging.level)

app = FastAPI(title="Slot Reservation Service", version="0.1.0")

app.include_router(api_router)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.on_event("startup")
async def on_startup() -> None:
    init_db()
    if settings.hold_sweep_interval_sec > 0:
        services = ServiceContainer(SessionLocal, settings=settings)
        app.state.scheduler = start_sweeper(services.sweeper, settings.hold_sweep_interval_sec)


@app.on_event("shutdown")
async def on_shutdown() -> None:
    scheduler = getattr(app.state, "scheduler", None)
    if scheduler is not None:
        scheduler.shutdown(wait=False)
