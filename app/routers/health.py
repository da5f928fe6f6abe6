# app/routers/health.py
import logging

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from .. import schemas
from ..config import get_settings

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/health",
    tags=["Health Checks"],
)


@router.get("", response_model=schemas.HealthResponse)
def health_check(request: Request):
    """
    Liveness plus a database round trip. No credentials required.
    """
    version = get_settings().app_version
    try:
        request.app.state.database.ping()
    except SQLAlchemyError as e:
        logger.error(f"Health check database ping failed: {e}")
        body = schemas.HealthResponse(status="degraded", database="unavailable", version=version)
        return JSONResponse(status_code=503, content=body.model_dump(by_alias=True))
    return schemas.HealthResponse(status="ok", database="ok", version=version)
