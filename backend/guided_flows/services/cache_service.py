# /guided_flows/services/cache_service.py

import logging
from typing import Optional
import redis.asyncio as redis
from pydantic import ValidationError

from guided_flows.models.flow import FlowState
from guided_flows.utils.metrics import state_store_operations

# Persists FlowState as JSON in Redis so a session survives between chat
# turns and process restarts. Storage failures are logged and reported as
# misses; they never break a running flow.

logger = logging.getLogger(__name__)

KEY_PREFIX = "flow_session:"


class FlowStateStore:
    def __init__(self, redis_url: str, ttl: int = 86400, client=None):
        self.ttl = ttl
        if client is not None:
            self.redis = client
            return
        try:
            self.redis_pool = redis.ConnectionPool.from_url(redis_url, max_connections=20)
            self.redis = redis.Redis(connection_pool=self.redis_pool)
        except Exception as e:
            logger.critical(f"Failed to connect to Redis at {redis_url}: {e}")
            self.redis = None

    @staticmethod
    def key(session_id: str) -> str:
        return f"{KEY_PREFIX}{session_id}"

    async def save(self, state: FlowState) -> None:
        if not self.redis: return
        try:
            await self.redis.setex(self.key(state.session_id), self.ttl, state.model_dump_json())
            state_store_operations.labels(operation="save", status="success").inc()
        except Exception as e:
            state_store_operations.labels(operation="save", status="error").inc()
            logger.warning(f"Flow state save failed for session {state.session_id}: {e}")

    async def load(self, session_id: str) -> Optional[FlowState]:
        if not self.redis: return None
        try:
            raw = await self.redis.get(self.key(session_id))
        except Exception as e:
            state_store_operations.labels(operation="load", status="error").inc()
            logger.warning(f"Flow state load failed for session {session_id}: {e}")
            return None

        state_store_operations.labels(operation="load", status="hit" if raw else "miss").inc()
        if not raw:
            return None
        try:
            return FlowState.model_validate_json(raw)
        except ValidationError as e:
            logger.warning(f"Discarding unreadable flow state for session {session_id}: {e}")
            return None

    async def delete(self, session_id: str) -> None:
        if not self.redis: return
        try:
            await self.redis.delete(self.key(session_id))
            state_store_operations.labels(operation="delete", status="success").inc()
        except Exception as e:
            state_store_operations.labels(operation="delete", status="error").inc()
            logger.warning(f"Flow state delete failed for session {session_id}: {e}")

    async def close(self) -> None:
        if self.redis:
            await self.redis.aclose()
