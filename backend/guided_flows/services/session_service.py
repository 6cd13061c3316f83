# /guided_flows/services/session_service.py

import logging
import threading
from datetime import datetime, timezone
from typing import Dict, Optional

from guided_flows.models.flow import FlowState
from guided_flows.utils.metrics import active_sessions_gauge, flow_sessions_counter
from guided_flows.workflows.engine import start_state
from guided_flows.workflows.registry import FlowRegistry

# Tracks which flow sessions are alive. Sessions never share mutable state;
# the only thing shared here is the map of active sessions, which is guarded
# by a lock so the manager can be used from several threads.

logger = logging.getLogger(__name__)


class SessionManager:
    def __init__(self, registry: FlowRegistry):
        self.registry = registry
        self._active: Dict[str, FlowState] = {}
        self._lock = threading.Lock()

    def start_flow(self, flow_id: str) -> FlowState:
        """Create a fresh session at the flow's initial step. Raises FlowNotFound."""
        flow = self.registry.get(flow_id)
        state = start_state(flow)
        with self._lock:
            self._active[state.session_id] = state
            active_sessions_gauge.set(len(self._active))
        flow_sessions_counter.labels(flow_id=flow_id, event="started").inc()
        logger.info(f"Flow started: {flow.name} (session={state.session_id})")
        return state

    def get(self, session_id: str) -> Optional[FlowState]:
        with self._lock:
            return self._active.get(session_id)

    def is_active(self, session_id: str) -> bool:
        with self._lock:
            return session_id in self._active

    def active_count(self) -> int:
        with self._lock:
            return len(self._active)

    def update(self, state: FlowState) -> bool:
        """Record the latest state of an active session. Retired sessions are ignored."""
        with self._lock:
            if state.session_id not in self._active:
                return False
            self._active[state.session_id] = state
            return True

    def resume(self, state: FlowState) -> FlowState:
        """Re-register a session loaded from persistence."""
        self.registry.get(state.flow_id)
        with self._lock:
            self._active[state.session_id] = state
            active_sessions_gauge.set(len(self._active))
        flow_sessions_counter.labels(flow_id=state.flow_id, event="resumed").inc()
        logger.info(f"Flow resumed: {state.flow_id} (session={state.session_id}, step={state.current_step})")
        return state

    def _retire(self, state: FlowState, event: str) -> bool:
        with self._lock:
            removed = self._active.pop(state.session_id, None)
            active_sessions_gauge.set(len(self._active))
        if removed is None:
            return False
        flow_sessions_counter.labels(flow_id=state.flow_id, event=event).inc()
        return True

    def complete_flow(self, state: FlowState) -> None:
        if self._retire(state, "completed"):
            duration = (datetime.now(timezone.utc) - state.started_at).total_seconds()
            logger.info(
                f"Flow completed: {state.flow_id} (session={state.session_id}, "
                f"steps={len(state.history)}, duration={duration:.1f}s)"
            )

    def cancel_flow(self, state: FlowState) -> None:
        if self._retire(state, "cancelled"):
            logger.info(f"Flow cancelled: {state.flow_id} (session={state.session_id})")
