# /guided_flows/routes/public.py

from datetime import datetime, timezone
from fastapi import APIRouter, Request
from fastapi.responses import PlainTextResponse
from prometheus_client import generate_latest

from guided_flows.config.settings import settings

# Unauthenticated endpoints: service info, health probes and Prometheus metrics.

router = APIRouter()


@router.get("/")
async def root():
    """Root endpoint."""
    return {
        "service": "Guided Flow Engine",
        "version": "1.0.0",
        "status": "operational",
        "environment": settings.environment
    }


@router.get("/health", summary="Basic Health Check")
async def health_check(request: Request):
    """Basic health check for load balancers."""
    return {
        "status": "healthy",
        "timestamp": datetime.now(timezone.utc),
        "active_sessions": request.app.state.sessions.active_count(),
    }


@router.get("/metrics", tags=["Monitoring"])
async def metrics():
    """Prometheus metrics endpoint."""
    return PlainTextResponse(generate_latest(), media_type="text/plain")
