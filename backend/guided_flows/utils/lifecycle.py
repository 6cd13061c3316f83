# /guided_flows/utils/lifecycle.py

import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI

from guided_flows.config.settings import settings
from guided_flows.services.cache_service import FlowStateStore
from guided_flows.services.executors import default_executors
from guided_flows.services.flow_service import FlowService
from guided_flows.services.session_service import SessionManager
from guided_flows.utils.logging import setup_logging
from guided_flows.workflows.definitions import build_default_registry

# Builds the flow registry once at startup and wires the session manager,
# the state store and the flow service onto app.state.

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager for startup and shutdown events."""
    setup_logging()

    logger.info("Application starting up...")

    registry = build_default_registry()
    sessions = SessionManager(registry)
    store = FlowStateStore(settings.redis_url, ttl=settings.session_ttl_seconds) if settings.persistence_enabled else None

    app.state.registry = registry
    app.state.sessions = sessions
    app.state.flow_service = FlowService(registry, sessions, executors=default_executors(), store=store)

    logger.info(f"Registered flows: {', '.join(registry.flow_ids())}")
    logger.info("Application startup complete. Ready to accept requests.")

    yield

    logger.info("Application shutting down...")
    if store is not None:
        await store.close()
