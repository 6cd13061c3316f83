# /guided_flows/services/flow_service.py

import asyncio
import json
import logging
import time
from contextlib import asynccontextmanager
from typing import Dict, Optional

from guided_flows.config.settings import settings
from guided_flows.models.flow import CannotGoBack, FlowDefinition, FlowState, FlowTurn
from guided_flows.services.cache_service import FlowStateStore
from guided_flows.services.executors import ActionExecutor
from guided_flows.services.session_service import SessionManager
from guided_flows.utils.metrics import (
    action_duration_histogram,
    action_executions_counter,
    flow_transitions_counter,
)
from guided_flows.workflows import engine
from guided_flows.workflows.constants import CONTINUE_TOKEN
from guided_flows.workflows.errors import ExecutorNotFound
from guided_flows.workflows.registry import FlowRegistry
from guided_flows.workflows.resolver import get_step, resolve

# The orchestration layer around the pure engine. It owns everything the
# engine refuses to do: one in-flight call per session, running action
# executors at execution steps, retiring finished sessions and persisting
# state between turns.

logger = logging.getLogger(__name__)


class SessionNotFound(LookupError):
    def __init__(self, session_id: str):
        self.session_id = session_id
        super().__init__(f"Flow session '{session_id}' not found")


class FlowService:
    def __init__(
        self,
        registry: FlowRegistry,
        sessions: SessionManager,
        executors: Optional[Dict[str, ActionExecutor]] = None,
        store: Optional[FlowStateStore] = None,
        action_timeout: float = settings.action_timeout_seconds,
        max_chained_executions: int = settings.max_chained_executions,
    ):
        self.registry = registry
        self.sessions = sessions
        self.executors = dict(executors or {})
        self.store = store
        self.action_timeout = action_timeout
        self.max_chained_executions = max_chained_executions
        self._locks: Dict[str, asyncio.Lock] = {}
        self._lock_users: Dict[str, int] = {}

    @asynccontextmanager
    async def _session_lock(self, session_id: str):
        """
        Serialize calls on one session. A lock only lives while some call holds
        or waits on it, so ids that never resolve to a session leave nothing behind.
        """
        lock = self._locks.setdefault(session_id, asyncio.Lock())
        self._lock_users[session_id] = self._lock_users.get(session_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._lock_users[session_id] -= 1
            if not self._lock_users[session_id]:
                del self._lock_users[session_id]
                del self._locks[session_id]

    def _turn(self, flow: FlowDefinition, state: FlowState, **kwargs) -> FlowTurn:
        return FlowTurn(
            session_id=state.session_id,
            flow_id=flow.id,
            state=state,
            step=resolve(flow, state),
            **kwargs,
        )

    async def _load(self, session_id: str) -> FlowState:
        state = self.sessions.get(session_id)
        if state is None and self.store is not None:
            state = await self.store.load(session_id)
            if state is not None:
                self.sessions.resume(state)
        if state is None:
            raise SessionNotFound(session_id)
        return state

    async def _persist(self, state: FlowState) -> None:
        if self.store is not None:
            await self.store.save(state)

    async def _forget(self, session_id: str) -> None:
        if self.store is not None:
            await self.store.delete(session_id)

    async def _commit(self, flow: FlowDefinition, state: FlowState) -> FlowTurn:
        if engine.is_completed(flow, state):
            if flow.cancelled_step is not None and state.history[-1:] == [flow.cancelled_step]:
                self.sessions.cancel_flow(state)
            else:
                self.sessions.complete_flow(state)
            await self._forget(state.session_id)
            return self._turn(flow, state, completed=True)
        self.sessions.update(state)
        await self._persist(state)
        return self._turn(flow, state)

    # --- Consumer API ---

    async def start(self, flow_id: str) -> FlowTurn:
        state = self.sessions.start_flow(flow_id)
        flow = self.registry.get(flow_id)
        await self._persist(state)
        return self._turn(flow, state)

    async def current(self, session_id: str) -> FlowTurn:
        async with self._session_lock(session_id):
            state = await self._load(session_id)
            return self._turn(self.registry.get(state.flow_id), state)

    async def submit(self, session_id: str, user_input: Optional[str]) -> FlowTurn:
        async with self._session_lock(session_id):
            state = await self._load(session_id)
            flow = self.registry.get(state.flow_id)

            if engine.requires_execution(flow, state):
                # Parked at an execution step: the pending action runs and the input is ignored
                logger.info(f"Session {session_id}: resuming pending execution at {state.current_step}")
                state = await self._run_executions(flow, state)
                return await self._commit(flow, state)

            result = engine.advance(flow, state, user_input)
            if result["validation_error"] is not None:
                flow_transitions_counter.labels(flow_id=flow.id, outcome="validation_failed").inc()
                return self._turn(flow, state, validation_error=result["validation_error"])

            outcome = "skipped" if result["skipped"] else "advanced"
            flow_transitions_counter.labels(flow_id=flow.id, outcome=outcome).inc()
            logger.debug(f"Session {session_id}: {state.current_step} -> {result['state'].current_step}")

            state = await self._run_executions(flow, result["state"])
            return await self._commit(flow, state)

    async def back(self, session_id: str) -> FlowTurn:
        async with self._session_lock(session_id):
            state = await self._load(session_id)
            flow = self.registry.get(state.flow_id)

            if not get_step(flow, state.current_step).can_go_back:
                result = CannotGoBack(reason="not_allowed")
            else:
                result = engine.go_back(flow, state)

            if isinstance(result, CannotGoBack):
                flow_transitions_counter.labels(flow_id=flow.id, outcome="cannot_go_back").inc()
                return self._turn(flow, state, back_unavailable=result.reason)

            flow_transitions_counter.labels(flow_id=flow.id, outcome="back").inc()
            return await self._commit(flow, result)

    async def cancel(self, session_id: str) -> None:
        """Retire a session. Cancelling an unknown or retired session is a no-op."""
        async with self._session_lock(session_id):
            state = self.sessions.get(session_id)
            if state is None and self.store is not None:
                state = await self.store.load(session_id)
            if state is not None:
                self.sessions.cancel_flow(state)
            await self._forget(session_id)

    # --- Execution steps ---

    async def _run_executions(self, flow: FlowDefinition, state: FlowState) -> FlowState:
        chained = 0
        while engine.requires_execution(flow, state):
            if chained >= self.max_chained_executions:
                logger.error(
                    f"Flow {flow.id} (session={state.session_id}) exceeded "
                    f"{self.max_chained_executions} chained executions at step {state.current_step}"
                )
                break
            chained += 1

            state = await self._execute(flow, state)
            result = engine.advance(flow, state, CONTINUE_TOKEN)
            if result["validation_error"] is not None:
                logger.error(
                    f"Execution step {state.current_step} of flow {flow.id} rejected the continuation token: "
                    f"{result['validation_error']}"
                )
                break
            state = result["state"]
        return state

    async def _execute(self, flow: FlowDefinition, state: FlowState) -> FlowState:
        executor = self.executors.get(flow.id)
        if executor is None:
            raise ExecutorNotFound(flow.id)

        started = time.perf_counter()
        try:
            result = await asyncio.wait_for(executor.execute(state), timeout=self.action_timeout)
            # Only plain data may enter accumulated_data
            payload = json.loads(json.dumps(result, default=str))
        except Exception as e:
            action_executions_counter.labels(flow_id=flow.id, status="error").inc()
            logger.error(
                f"Action executor failed for flow {flow.id} (session={state.session_id}): {e!r}",
                exc_info=True,
            )
            message = str(e) or ("Action timed out" if isinstance(e, asyncio.TimeoutError) else type(e).__name__)
            return engine.merge_execution_error(state, {"type": type(e).__name__, "message": message})
        finally:
            action_duration_histogram.labels(flow_id=flow.id).observe(time.perf_counter() - started)

        action_executions_counter.labels(flow_id=flow.id, status="success").inc()
        return engine.merge_execution_result(state, payload)
