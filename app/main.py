# app/main.py
import logging
import time
from contextlib import asynccontextmanager
from typing import Optional

import structlog
import uvicorn
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from app.config import Settings, get_settings
from app.core.logging import setup_logging
from app.database import Database
from app.exceptions import register_exception_handlers
from app.initial_data import create_initial_data, create_or_update_admin
from app.routers import (
    appointments, attorneys, auth, case_managers, cases, doctors, events, exams,
    facilities, health, patients, payers, physicians, procedures, statuses, tasks, users,
)

logger = logging.getLogger(__name__)

API_PREFIX = "/api"

ROUTERS = (
    health, auth, users, attorneys, case_managers, patients, procedures, appointments,
    cases, payers, statuses, doctors, physicians, facilities, exams, tasks, events,
)


def create_app(settings: Optional[Settings] = None, database: Optional[Database] = None) -> FastAPI:
    """Build the API around one Database; tests pass their own."""
    settings = settings or get_settings()
    setup_logging(settings.log_level, settings.log_json)
    database = database or Database.from_settings(settings)
    request_logger = structlog.get_logger("app.requests")

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        database.create_tables()
        create_initial_data(database)
        create_or_update_admin(database, settings)
        logger.info(f"{settings.app_name} started ({settings.environment})")
        yield
        database.dispose()

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        debug=settings.debug,
        lifespan=lifespan,
    )
    app.state.database = database
    app.state.settings = settings

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS", "HEAD"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        start = time.perf_counter()
        response = await call_next(request)
        request_logger.info(
            "request_completed",
            method=request.method,
            path=request.url.path,
            status=response.status_code,
            duration_ms=round((time.perf_counter() - start) * 1000, 2),
        )
        return response

    register_exception_handlers(app)

    for module in ROUTERS:
        app.include_router(module.router, prefix=API_PREFIX)

    return app


app = create_app()


if __name__ == "__main__":
    uvicorn.run("app.main:app", host="0.0.0.0", port=8000, reload=get_settings().debug)
