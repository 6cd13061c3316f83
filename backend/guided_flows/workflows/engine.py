# /guided_flows/workflows/engine.py

"""
Pure transition engine for guided flows.

This module advances and reverts FlowState:
- Validates input against the current step's rules
- Writes input into accumulated_data (overwrite, never delete)
- Pushes visited steps onto history and pops them on go_back
- Computes the next step from a static id or a branching function
- Routes skippable steps straight to their skip target

All functions are:
- Pure (the caller's FlowState is never mutated; a new one is returned)
- Synchronous (execution steps are run by the caller, never awaited here)
- No I/O
- No logging

Expected conditions (invalid input, empty history) come back as values.
Only defects in the flow graph raise, see errors.py.
"""

from datetime import datetime, timezone
from typing import Any, Dict, Optional, TypedDict, Union

from guided_flows.models.flow import (
    CannotGoBack,
    FlowDefinition,
    FlowState,
    ResolvedStep,
    StepDefinition,
    StepType,
    evaluate,
)
from guided_flows.workflows.constants import (
    CANCEL_TOKEN,
    EXECUTION_ERROR_KEY,
    EXECUTION_RESULT_KEY,
    SKIP_TOKEN,
)
from guided_flows.workflows.resolver import get_step, resolve
from guided_flows.workflows.validator import validate


class AdvanceResult(TypedDict):
    """Result of a forward transition."""
    state: FlowState
    step: ResolvedStep
    validation_error: Optional[str]
    skipped: bool


def start_state(flow: FlowDefinition, **overrides: Any) -> FlowState:
    """Fresh state positioned at the flow's initial step."""
    get_step(flow, flow.initial_step)
    return FlowState(flow_id=flow.id, current_step=flow.initial_step, **overrides)


def _touch(state: FlowState) -> None:
    state.last_updated_at = datetime.now(timezone.utc)


def _move(flow: FlowDefinition, state: FlowState, step: StepDefinition, target: str) -> FlowState:
    get_step(flow, target)
    state.history.append(step.id)
    state.current_step = target
    _touch(state)
    return state


def advance(flow: FlowDefinition, state: FlowState, user_input: Optional[str]) -> AdvanceResult:
    """
    Advance a flow by one step.

    Args:
        flow: The flow definition owning `state`
        state: Current state (left untouched)
        user_input: Raw input, a quick reply value, or one of the reserved tokens

    Returns:
        AdvanceResult. On validation failure `state` is the very object passed
        in and `validation_error` carries the rule message.

    Raises:
        StepNotFound: if the current or the computed next step does not exist
    """
    step = get_step(flow, state.current_step)

    # Skip overrides whatever next_step would have computed
    if user_input == SKIP_TOKEN and step.can_skip and step.skip_to_step:
        new_state = _move(flow, state.model_copy(deep=True), step, step.skip_to_step)
        return {
            "state": new_state,
            "step": resolve(flow, new_state),
            "validation_error": None,
            "skipped": True,
        }

    if user_input != CANCEL_TOKEN and step.validation_rules:
        error = validate(user_input, step.validation_rules)
        if error is not None:
            return {
                "state": state,
                "step": resolve(flow, state),
                "validation_error": error,
                "skipped": False,
            }

    new_state = state.model_copy(deep=True)
    if user_input and user_input != CANCEL_TOKEN and step.type != StepType.GREETING:
        new_state.accumulated_data[step.storage_key] = user_input

    next_step_id = evaluate(step.next_step, new_state.accumulated_data, user_input)
    new_state = _move(flow, new_state, step, next_step_id)

    return {
        "state": new_state,
        "step": resolve(flow, new_state),
        "validation_error": None,
        "skipped": False,
    }


def go_back(flow: FlowDefinition, state: FlowState) -> Union[FlowState, CannotGoBack]:
    """
    Return to the previously visited step.

    accumulated_data is left as it is: data written by the undone step
    stays in place.

    Returns:
        A new FlowState, or CannotGoBack when history is empty
    """
    if not state.history:
        return CannotGoBack(reason="empty_history")

    new_state = state.model_copy(deep=True)
    previous_step = new_state.history.pop()
    get_step(flow, previous_step)
    new_state.current_step = previous_step
    _touch(new_state)
    return new_state


def merge_execution_result(state: FlowState, result: Dict[str, Any]) -> FlowState:
    """Record an action executor's result (and clear any earlier failure)."""
    new_state = state.model_copy(deep=True)
    new_state.accumulated_data[EXECUTION_RESULT_KEY] = result
    new_state.accumulated_data[EXECUTION_ERROR_KEY] = None
    _touch(new_state)
    return new_state


def merge_execution_error(state: FlowState, error: Dict[str, Any]) -> FlowState:
    """Record an action executor failure so the step's branching can route on it."""
    new_state = state.model_copy(deep=True)
    new_state.accumulated_data[EXECUTION_ERROR_KEY] = error
    _touch(new_state)
    return new_state


def requires_execution(flow: FlowDefinition, state: FlowState) -> bool:
    return get_step(flow, state.current_step).type == StepType.EXECUTION


def is_completed(flow: FlowDefinition, state: FlowState) -> bool:
    return state.current_step == flow.completed_step
