# /guided_flows/utils/dependencies.py

from fastapi import Request

from guided_flows.services.flow_service import FlowService
from guided_flows.workflows.registry import FlowRegistry

# Request-scoped accessors for the objects built in the application lifespan.


def get_flow_service(request: Request) -> FlowService:
    return request.app.state.flow_service


def get_registry(request: Request) -> FlowRegistry:
    return request.app.state.registry
