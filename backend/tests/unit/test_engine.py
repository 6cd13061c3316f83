# backend/tests/unit/test_engine.py

import json
import pytest

from guided_flows.models.flow import (
    CannotGoBack,
    Dynamic,
    FlowDefinition,
    FlowState,
    QuickReply,
    Required,
    Static,
    StepDefinition,
    StepType,
)
from guided_flows.workflows import engine
from guided_flows.workflows.constants import (
    CANCEL_TOKEN,
    CONTINUE_TOKEN,
    EXECUTION_ERROR_KEY,
    EXECUTION_RESULT_KEY,
    SKIP_TOKEN,
)
from guided_flows.workflows.errors import StepNotFound
from guided_flows.workflows.resolver import resolve


@pytest.fixture
def state(abc_flow):
    return engine.start_state(abc_flow)


def _branching_flow(next_step):
    return FlowDefinition(
        id="branching",
        initial_step="hub",
        completed_step="done",
        steps=[
            StepDefinition(
                id="hub",
                type=StepType.HUB,
                message="Pick one",
                next_step=next_step,
                can_skip=True,
                skip_to_step="done",
                validation_rules=[Required("pick something")],
            ),
            StepDefinition(id="detail", type=StepType.INPUT, message="Details?", next_step="hub"),
            StepDefinition(id="done", type=StepType.RESULT, message="Done", next_step="done"),
        ],
    )


class TestResolve:

    def test_start_then_resolve_returns_initial_step(self, abc_flow, state):
        step = resolve(abc_flow, state)
        assert state.current_step == "A"
        assert state.history == []
        assert state.accumulated_data == {}
        assert step.id == "A"
        assert step.type == StepType.INPUT
        assert step.message == "Enter a number"
        assert step.quick_replies == []
        assert step.can_go_back is False

    def test_dynamic_content_sees_accumulated_data(self, abc_flow):
        state = FlowState(flow_id="abc", current_step="B", accumulated_data={"A": "42"})
        step = resolve(abc_flow, state)
        assert step.message == "You entered 42"
        assert [reply.value for reply in step.quick_replies] == ["opt1", "opt2"]

    def test_dynamic_quick_replies(self):
        flow = FlowDefinition(
            id="dyn",
            initial_step="pick",
            completed_step="pick",
            steps=[
                StepDefinition(
                    id="pick",
                    type=StepType.SELECT,
                    message=Static("Pick a period"),
                    quick_replies=Dynamic(lambda data: [
                        {"label": p, "value": p} for p in data.get("periods", [])
                    ]),
                    next_step="pick",
                ),
            ],
        )
        state = FlowState(flow_id="dyn", current_step="pick", accumulated_data={"periods": ["2024-01", "2024-02"]})
        step = resolve(flow, state)
        assert step.quick_replies == [
            QuickReply(label="2024-01", value="2024-01"),
            QuickReply(label="2024-02", value="2024-02"),
        ]

    def test_resolve_is_pure(self, abc_flow, state):
        result = engine.advance(abc_flow, state, "42")
        first = resolve(abc_flow, result["state"])
        second = resolve(abc_flow, result["state"])
        assert first.model_dump_json() == second.model_dump_json()

    def test_unknown_current_step_raises(self, abc_flow):
        with pytest.raises(StepNotFound):
            resolve(abc_flow, FlowState(flow_id="abc", current_step="Z"))


class TestAdvance:

    def test_required_failure_returns_same_state(self, abc_flow, state):
        result = engine.advance(abc_flow, state, "")
        assert result["validation_error"] == "required"
        assert result["state"] is state
        assert state.history == []
        assert state.accumulated_data == {}
        assert result["step"].id == "A"

    def test_scenario_a_b_c_and_back(self, abc_flow, state):
        result = engine.advance(abc_flow, state, "")
        assert result["validation_error"] == "required"
        assert result["state"].current_step == "A"
        assert result["state"].history == []

        result = engine.advance(abc_flow, result["state"], "42")
        s = result["state"]
        assert result["validation_error"] is None
        assert s.accumulated_data == {"A": "42"}
        assert s.history == ["A"]
        assert s.current_step == "B"

        result = engine.advance(abc_flow, s, "opt1")
        s = result["state"]
        assert s.accumulated_data == {"A": "42", "B": "opt1"}
        assert s.history == ["A", "B"]
        assert s.current_step == "C"
        assert result["step"].type == StepType.RESULT

        back = engine.go_back(abc_flow, s)
        assert back.current_step == "B"
        assert back.history == ["A"]
        assert back.accumulated_data == {"A": "42", "B": "opt1"}

    def test_caller_state_is_not_mutated(self, abc_flow, state):
        before = state.model_dump()
        result = engine.advance(abc_flow, state, "42")
        assert result["state"] is not state
        assert state.model_dump() == before

    def test_advance_updates_timestamp(self, abc_flow, state):
        result = engine.advance(abc_flow, state, "42")
        assert result["state"].last_updated_at >= state.last_updated_at
        assert result["state"].started_at == state.started_at

    def test_greeting_input_is_not_stored(self):
        flow = FlowDefinition(
            id="greet",
            initial_step="hello",
            completed_step="end",
            steps=[
                StepDefinition(id="hello", type=StepType.GREETING, message="Hi", next_step="end"),
                StepDefinition(id="end", type=StepType.RESULT, message="Bye", next_step="end"),
            ],
        )
        result = engine.advance(flow, engine.start_state(flow), "start")
        assert result["state"].accumulated_data == {}
        assert result["state"].history == ["hello"]

    def test_cancel_token_bypasses_validation_and_is_not_stored(self):
        flow = _branching_flow(lambda data, user_input: "done" if user_input == CANCEL_TOKEN else "detail")
        result = engine.advance(flow, engine.start_state(flow), CANCEL_TOKEN)
        assert result["validation_error"] is None
        assert result["state"].current_step == "done"
        assert result["state"].accumulated_data == {}

    def test_data_key_overrides_storage_key(self):
        flow = FlowDefinition(
            id="keyed",
            initial_step="ask",
            completed_step="end",
            steps=[
                StepDefinition(id="ask", type=StepType.INPUT, message="Name?", next_step="end", data_key="name"),
                StepDefinition(id="end", type=StepType.RESULT, message="Bye", next_step="end"),
            ],
        )
        result = engine.advance(flow, engine.start_state(flow), "Ana")
        assert result["state"].accumulated_data == {"name": "Ana"}

    def test_later_input_overwrites_earlier_value(self):
        flow = _branching_flow(lambda data, user_input: "detail")
        s = engine.advance(flow, engine.start_state(flow), "first")["state"]
        s = engine.advance(flow, s, "details")["state"]
        s = engine.advance(flow, s, "second")["state"]
        assert s.accumulated_data["hub"] == "second"
        assert s.history == ["hub", "detail", "hub"]

    def test_dynamic_next_step_receives_data_and_input(self):
        seen = []

        def route(data, user_input):
            seen.append((dict(data), user_input))
            return "detail"

        flow = _branching_flow(route)
        engine.advance(flow, engine.start_state(flow), "add_bonus")
        assert seen == [({"hub": "add_bonus"}, "add_bonus")]

    def test_loops_are_allowed(self):
        flow = _branching_flow(lambda data, user_input: "hub")
        s = engine.start_state(flow)
        for _ in range(3):
            s = engine.advance(flow, s, "again")["state"]
        assert s.current_step == "hub"
        assert s.history == ["hub", "hub", "hub"]

    def test_skip_overrides_next_step(self):
        flow = _branching_flow(lambda data, user_input: "detail")
        result = engine.advance(flow, engine.start_state(flow), SKIP_TOKEN)
        assert result["skipped"] is True
        assert result["validation_error"] is None
        assert result["state"].current_step == "done"
        assert result["state"].history == ["hub"]
        assert result["state"].accumulated_data == {}

    def test_skip_token_on_non_skippable_step_is_plain_input(self, abc_flow, state):
        result = engine.advance(abc_flow, state, SKIP_TOKEN)
        assert result["skipped"] is False
        assert result["state"].current_step == "B"
        assert result["state"].accumulated_data == {"A": SKIP_TOKEN}

    def test_unknown_next_step_raises_and_leaves_state_alone(self):
        flow = _branching_flow(lambda data, user_input: "ghost")
        s = engine.start_state(flow)
        with pytest.raises(StepNotFound, match="ghost"):
            engine.advance(flow, s, "go")
        assert s.current_step == "hub"
        assert s.history == []
        assert s.accumulated_data == {}


class TestGoBack:

    def test_empty_history_returns_cannot_go_back(self, abc_flow, state):
        result = engine.go_back(abc_flow, state)
        assert isinstance(result, CannotGoBack)
        assert result.reason == "empty_history"

    def test_advance_then_back_restores_step_but_keeps_data(self, abc_flow, state):
        advanced = engine.advance(abc_flow, state, "42")["state"]
        back = engine.go_back(abc_flow, advanced)
        assert back.current_step == state.current_step
        assert len(back.history) == len(advanced.history) - 1
        assert back.accumulated_data == {"A": "42"}

    def test_back_pops_exactly_one_entry(self, abc_flow, state):
        s = engine.advance(abc_flow, state, "42")["state"]
        s = engine.advance(abc_flow, s, "opt2")["state"]
        s = engine.go_back(abc_flow, s)
        assert s.current_step == "B"
        s = engine.go_back(abc_flow, s)
        assert s.current_step == "A"
        assert isinstance(engine.go_back(abc_flow, s), CannotGoBack)


class TestExecutionHelpers:

    @pytest.fixture
    def exec_flow(self):
        return FlowDefinition(
            id="exec",
            initial_step="run",
            completed_step="done",
            steps=[
                StepDefinition(
                    id="run",
                    type=StepType.EXECUTION,
                    message="Working...",
                    next_step=lambda data, user_input: "failed" if data.get(EXECUTION_ERROR_KEY) else "done",
                    can_go_back=False,
                ),
                StepDefinition(id="failed", type=StepType.SELECT, message="Failed", next_step="run"),
                StepDefinition(id="done", type=StepType.RESULT, message="Done", next_step="done"),
            ],
        )

    def test_requires_execution(self, exec_flow):
        s = engine.start_state(exec_flow)
        assert engine.requires_execution(exec_flow, s)
        assert not engine.is_completed(exec_flow, s)

    def test_result_merge_then_continue(self, exec_flow):
        s = engine.merge_execution_result(engine.start_state(exec_flow), {"id": 7})
        assert s.accumulated_data[EXECUTION_RESULT_KEY] == {"id": 7}
        s = engine.advance(exec_flow, s, CONTINUE_TOKEN)["state"]
        assert s.current_step == "done"
        assert engine.is_completed(exec_flow, s)

    def test_error_merge_routes_to_failure_step(self, exec_flow):
        s = engine.merge_execution_error(engine.start_state(exec_flow), {"type": "RuntimeError", "message": "boom"})
        s = engine.advance(exec_flow, s, CONTINUE_TOKEN)["state"]
        assert s.current_step == "failed"

    def test_successful_retry_clears_previous_error(self, exec_flow):
        s = engine.merge_execution_error(engine.start_state(exec_flow), {"type": "RuntimeError", "message": "boom"})
        s = engine.merge_execution_result(s, {"ok": True})
        assert s.accumulated_data[EXECUTION_ERROR_KEY] is None
        assert engine.advance(exec_flow, s, CONTINUE_TOKEN)["state"].current_step == "done"


def test_state_round_trips_through_json(abc_flow, state):
    s = engine.advance(abc_flow, state, "42")["state"]
    raw = s.model_dump_json()
    assert json.loads(raw)["history"] == ["A"]
    restored = FlowState.model_validate_json(raw)
    assert restored == s
    assert resolve(abc_flow, restored) == resolve(abc_flow, s)
