"""GET /health - Check health of all services."""

from datetime import UTC, datetime

from fastapi import Depends
from pydantic import BaseModel, Field

from config import get_settings
from db import BaseDocumentStore
from dependencies import get_document_store, get_session_registry
from services import SessionRegistry

# --- Response Schemas ---


class ServiceStatus(BaseModel):
    """Status of an individual service."""

    name: str
    status: str = Field(..., description="healthy, degraded, or unhealthy")
    latency_ms: float | None = Field(None, description="Response time in ms")
    error: str | None = Field(None, description="Error message if unhealthy")


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = Field(..., description="Overall status: healthy, degraded, unhealthy")
    version: str = Field(..., description="Application version")
    environment: str = Field(..., description="Environment name")
    store_backend: str = Field(..., description="firestore or memory")
    active_sessions: int = Field(..., description="Open chat sessions")
    services: list[ServiceStatus] = Field(
        ..., description="Individual service statuses"
    )
    timestamp: datetime


# --- Handler ---


async def check_health(
    store: BaseDocumentStore = Depends(get_document_store),
    registry: SessionRegistry = Depends(get_session_registry),
) -> HealthResponse:
    """Check health of all services."""
    settings = get_settings()

    store_health = await store.health_check()

    services = [
        ServiceStatus(
            name="document_store",
            status=store_health["status"],
            latency_ms=store_health.get("latency_ms"),
            error=store_health.get("error"),
        ),
    ]

    statuses = [s.status for s in services]
    if all(s == "healthy" for s in statuses):
        overall = "healthy"
    elif any(s == "unhealthy" for s in statuses):
        overall = "unhealthy"
    else:
        overall = "degraded"

    return HealthResponse(
        status=overall,
        version="0.1.0",
        environment=settings.environment,
        store_backend=settings.store_backend,
        active_sessions=len(registry),
        services=services,
        timestamp=datetime.now(UTC),
    )
