"""Health check endpoints."""

import logging

from fastapi import APIRouter
from fastapi.responses import JSONResponse
from sqlalchemy import text

from authcore.api.deps import SettingsDep
from authcore.database import get_session_context

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("")
async def health_check():
    """Basic health check - just confirms the service is running."""
    return {"status": "ok"}


@router.get("/db")
async def health_check_db(settings: SettingsDep):
    """Health check with database connectivity."""
    if settings.datastore_backend == "memory":
        return {"status": "ok", "database": "memory"}

    try:
        async with get_session_context() as session:
            await session.execute(text("SELECT 1"))
        return {"status": "ok", "database": "connected"}
    except Exception as e:
        logger.error(f"Database health check failed: {e!r}")
        return JSONResponse(
            status_code=503,
            content={"status": "error", "database": "disconnected"},
        )
