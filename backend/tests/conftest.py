
import os
import pytest
from fastapi.testclient import TestClient
from dotenv import load_dotenv

# Load the test environment FIRST, before any guided_flows imports, so the
# settings object is built with persistence disabled.
load_dotenv(dotenv_path=os.path.join(os.path.dirname(__file__), "..", ".env.test"), override=True)

from guided_flows.models.flow import (  # noqa: E402
    FlowDefinition,
    QuickReply,
    Required,
    StepDefinition,
    StepType,
)
from guided_flows.services.session_service import SessionManager  # noqa: E402
from guided_flows.workflows.registry import FlowRegistry  # noqa: E402


def build_abc_flow() -> FlowDefinition:
    """A (Input, Required) -> B (Select) -> C (Result)."""
    return FlowDefinition(
        id="abc",
        initial_step="A",
        completed_step="C",
        steps=[
            StepDefinition(
                id="A",
                type=StepType.INPUT,
                message="Enter a number",
                validation_rules=[Required("required")],
                next_step="B",
                can_go_back=False,
            ),
            StepDefinition(
                id="B",
                type=StepType.SELECT,
                message=lambda data: f"You entered {data.get('A')}",
                quick_replies=[QuickReply(label="Option 1", value="opt1"), QuickReply(label="Option 2", value="opt2")],
                next_step="C",
            ),
            StepDefinition(
                id="C",
                type=StepType.RESULT,
                message="Done",
                next_step="C",
                can_go_back=False,
            ),
        ],
    )


@pytest.fixture
def abc_flow():
    return build_abc_flow()


@pytest.fixture
def registry(abc_flow):
    return FlowRegistry([abc_flow]).seal()


@pytest.fixture
def sessions(registry):
    return SessionManager(registry)


@pytest.fixture(scope="function")
def test_client():
    """
    Provides a TestClient for API integration tests. The app's lifespan
    (registry, session manager, flow service) runs inside the context.
    """
    from guided_flows.main import app

    with TestClient(app) as client:
        yield client
