"""Health check endpoints."""

from fastapi import APIRouter, Request
from pydantic import BaseModel

from chatledger.config import get_settings

router = APIRouter(tags=["Health"])


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    version: str
    storage: str


@router.get("/health", response_model=HealthResponse)
async def health_check(request: Request) -> HealthResponse:
    """Basic health check - always returns OK if service is running."""
    from chatledger import __version__

    engine = getattr(request.app.state, "engine", None)
    return HealthResponse(
        status="healthy",
        version=__version__,
        storage=get_settings().storage_backend if engine is not None else "not_initialized",
    )
