# /guided_flows/routes/flows.py

import logging
from fastapi import APIRouter, Depends, HTTPException

from guided_flows.config.settings import settings
from guided_flows.models.api import APIResponse, FlowInputRequest
from guided_flows.models.flow import FlowTurn
from guided_flows.services.flow_service import FlowService, SessionNotFound
from guided_flows.utils.dependencies import get_flow_service, get_registry
from guided_flows.workflows.errors import FlowNotFound
from guided_flows.workflows.registry import FlowRegistry

# HTTP surface of the flow engine: one conversation session per flow run.
# Rendering the returned step (bubbles, quick-reply buttons) is the client's job.

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/flows", tags=["Flows"])


def _turn_response(turn: FlowTurn, message: str) -> APIResponse:
    return APIResponse(
        success=turn.validation_error is None,
        message=turn.validation_error or message,
        data={"turn": turn.model_dump(mode="json")},
        version=settings.api_version,
    )


@router.get("/", response_model=APIResponse)
async def list_flows(registry: FlowRegistry = Depends(get_registry)):
    """List the flows that can be started."""
    return APIResponse(
        success=True,
        message="Flows retrieved",
        data={"flows": [summary.model_dump() for summary in registry.summaries()]},
        version=settings.api_version,
    )


@router.post("/{flow_id}/sessions", response_model=APIResponse, status_code=201)
async def start_flow(flow_id: str, service: FlowService = Depends(get_flow_service)):
    """Start a new session of `flow_id` positioned at its initial step."""
    try:
        turn = await service.start(flow_id)
    except FlowNotFound as e:
        logger.warning(f"Rejected start of unknown flow '{flow_id}'")
        raise HTTPException(status_code=404, detail=str(e))
    return _turn_response(turn, "Flow started")


@router.get("/sessions/{session_id}", response_model=APIResponse)
async def get_session(session_id: str, service: FlowService = Depends(get_flow_service)):
    """Current step of a session."""
    try:
        turn = await service.current(session_id)
    except SessionNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))
    return _turn_response(turn, "Session retrieved")


@router.post("/sessions/{session_id}/input", response_model=APIResponse)
async def submit_input(
    session_id: str,
    request: FlowInputRequest,
    service: FlowService = Depends(get_flow_service),
):
    """Submit user input (or a quick reply value) for the current step."""
    try:
        turn = await service.submit(session_id, request.input)
    except SessionNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))
    return _turn_response(turn, "Flow completed" if turn.completed else "Flow advanced")


@router.post("/sessions/{session_id}/back", response_model=APIResponse)
async def go_back(session_id: str, service: FlowService = Depends(get_flow_service)):
    """Return to the previous step. Data already collected is kept."""
    try:
        turn = await service.back(session_id)
    except SessionNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))
    if turn.back_unavailable:
        return APIResponse(
            success=False,
            message="Cannot go back",
            data={"turn": turn.model_dump(mode="json"), "reason": turn.back_unavailable},
            version=settings.api_version,
        )
    return _turn_response(turn, "Went back")


@router.delete("/sessions/{session_id}", response_model=APIResponse)
async def cancel_flow(session_id: str, service: FlowService = Depends(get_flow_service)):
    """Cancel a session. Cancelling twice is not an error."""
    await service.cancel(session_id)
    return APIResponse(success=True, message="Flow cancelled", data={"session_id": session_id}, version=settings.api_version)
