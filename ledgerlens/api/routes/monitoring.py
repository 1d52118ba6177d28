"""
Monitoring endpoints.

Provides health checks and readiness probes.
"""
from datetime import datetime, timezone

from fastapi import APIRouter
from pydantic import BaseModel

from ledgerlens import __version__
from ledgerlens.config import get_settings
from ledgerlens.exceptions import KeywordTableError
from ledgerlens.ledger_engine.keywords import load_keyword_tables

router = APIRouter()


class HealthResponse(BaseModel):
    """Health check response."""
    status: str
    timestamp: str
    version: str = __version__


class ReadinessResponse(BaseModel):
    """Readiness check response with component status."""
    status: str
    keyword_tables: str
    timestamp: str


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


@router.get("/health", response_model=HealthResponse, tags=["Monitoring"])
async def health_check() -> HealthResponse:
    """
    Basic health check endpoint.

    Returns 200 if the server is running.
    """
    return HealthResponse(status="healthy", timestamp=_now())


@router.get("/ready", response_model=ReadinessResponse, tags=["Monitoring"])
async def readiness_check() -> ReadinessResponse:
    """
    Readiness check for container orchestration.

    The engine cannot classify anything without its keyword tables.
    """
    tables_status = "healthy"
    try:
        load_keyword_tables(get_settings().keywords_path)
    except KeywordTableError:
        tables_status = "unhealthy"

    return ReadinessResponse(
        status="healthy" if tables_status == "healthy" else "degraded",
        keyword_tables=tables_status,
        timestamp=_now(),
    )
