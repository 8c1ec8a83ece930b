"""Health check endpoints."""

from fastapi import APIRouter
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from sqlalchemy.exc import SQLAlchemyError

from core.cache import redis_cache
from database.engine import check_db

router = APIRouter()


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    version: str


@router.get("/health", response_model=HealthResponse)
async def health_check():
    """Health check endpoint."""
    return HealthResponse(status="healthy", version="0.1.0")


@router.get("/ready")
async def readiness_check():
    """Readiness check for load balancers: the database must answer, the cache is optional."""
    try:
        database = await check_db()
    except (SQLAlchemyError, OSError):
        database = False
    cache = await redis_cache.ping()

    body = {
        "status": "ready" if database else "unavailable",
        "database": database,
        "cache": cache,
    }
    return JSONResponse(status_code=200 if database else 503, content=body)
