# backend/tests/unit/test_cache_service.py

import pytest
from unittest.mock import AsyncMock

from guided_flows.models.flow import FlowState
from guided_flows.services.cache_service import FlowStateStore


@pytest.fixture
def redis_client():
    return AsyncMock()


@pytest.fixture
def store(redis_client):
    return FlowStateStore("redis://unused", ttl=120, client=redis_client)


@pytest.fixture
def state():
    return FlowState(
        flow_id="abc",
        current_step="B",
        history=["A"],
        accumulated_data={"A": "42", "_executionResult": {"rows": [1, 2]}},
    )


@pytest.mark.asyncio
async def test_save_writes_json_with_ttl(store, redis_client, state):
    await store.save(state)
    redis_client.setex.assert_awaited_once()
    key, ttl, value = redis_client.setex.await_args.args
    assert key == f"flow_session:{state.session_id}"
    assert ttl == 120
    assert FlowState.model_validate_json(value) == state


@pytest.mark.asyncio
async def test_load_round_trip(store, redis_client, state):
    redis_client.get.return_value = state.model_dump_json().encode("utf-8")
    loaded = await store.load(state.session_id)
    assert loaded == state
    redis_client.get.assert_awaited_once_with(f"flow_session:{state.session_id}")


@pytest.mark.asyncio
async def test_load_miss_returns_none(store, redis_client):
    redis_client.get.return_value = None
    assert await store.load("missing") is None


@pytest.mark.asyncio
async def test_load_discards_unreadable_payload(store, redis_client):
    redis_client.get.return_value = b'{"flow_id": "abc"}'
    assert await store.load("broken") is None


@pytest.mark.asyncio
async def test_redis_errors_are_logged_not_raised(store, redis_client, state, caplog):
    redis_client.setex.side_effect = ConnectionError("redis down")
    redis_client.get.side_effect = ConnectionError("redis down")
    redis_client.delete.side_effect = ConnectionError("redis down")

    await store.save(state)
    assert await store.load(state.session_id) is None
    await store.delete(state.session_id)

    assert caplog.text.count("redis down") == 3


@pytest.mark.asyncio
async def test_delete(store, redis_client):
    await store.delete("abc123")
    redis_client.delete.assert_awaited_once_with("flow_session:abc123")
