# /guided_flows/workflows/resolver.py

"""
Step resolution: turns a step definition into displayable content.

`resolve` is a pure function of (flow, state). Calling it twice without an
intervening transition yields identical output.
"""

from guided_flows.models.flow import FlowDefinition, FlowState, ResolvedStep, StepDefinition, evaluate
from guided_flows.workflows.errors import StepNotFound


def get_step(flow: FlowDefinition, step_id: str) -> StepDefinition:
    try:
        return flow.steps[step_id]
    except KeyError:
        raise StepNotFound(flow.id, step_id) from None


def resolve(flow: FlowDefinition, state: FlowState) -> ResolvedStep:
    """
    Evaluate the current step's message and quick replies against the
    accumulated data.

    Raises:
        StepNotFound: if `state.current_step` is not part of `flow`
    """
    step = get_step(flow, state.current_step)
    data = state.accumulated_data

    return ResolvedStep(
        id=step.id,
        type=step.type,
        message=evaluate(step.message, data),
        quick_replies=list(evaluate(step.quick_replies, data) or []),
        can_go_back=step.can_go_back,
        can_skip=step.can_skip,
        skip_to_step=step.skip_to_step,
        input_placeholder=step.input_placeholder,
        input_type=step.input_type,
    )
