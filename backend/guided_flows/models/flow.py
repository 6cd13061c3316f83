# /guided_flows/models/flow.py

"""
Data model for guided flows.

Flow and step definitions are static configuration: frozen dataclasses that
may carry callables (dynamic messages, branching functions, custom
validators) and are never serialized.

FlowState and everything returned to consumers are pydantic models made of
plain data only, so a session can be dumped to JSON between chat turns and
reloaded in another process.
"""

import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from types import MappingProxyType
from typing import Any, Callable, Dict, Generic, List, Mapping, Optional, Tuple, TypeVar, Union

from pydantic import BaseModel, ConfigDict, Field

T = TypeVar("T")


class StepType(str, Enum):
    GREETING = "greeting"
    INPUT = "input"
    SELECT = "select"
    HUB = "hub"
    PREVIEW = "preview"
    EXECUTION = "execution"
    RESULT = "result"


class QuickReply(BaseModel):
    """A predefined label/value pair offered instead of free text."""
    label: str
    value: str
    icon: Optional[str] = None

    model_config = ConfigDict(frozen=True)


# --- Static / Dynamic content ---

@dataclass(frozen=True)
class Static(Generic[T]):
    value: T


@dataclass(frozen=True)
class Dynamic(Generic[T]):
    fn: Callable[..., T]


Content = Union[Static, Dynamic]


def as_content(value: Any) -> Content:
    """Wrap a plain value or a callable into the Static/Dynamic variant."""
    if isinstance(value, (Static, Dynamic)):
        return value
    if callable(value):
        return Dynamic(value)
    return Static(value)


def evaluate(content: Content, *args: Any) -> Any:
    """Single evaluator for Static/Dynamic content."""
    if isinstance(content, Dynamic):
        return content.fn(*args)
    return content.value


# --- Validation rules ---

@dataclass(frozen=True)
class Required:
    message: str


@dataclass(frozen=True)
class MinLength:
    value: int
    message: str


@dataclass(frozen=True)
class MaxLength:
    value: int
    message: str


@dataclass(frozen=True)
class Min:
    value: float
    message: str


@dataclass(frozen=True)
class Max:
    value: float
    message: str


@dataclass(frozen=True)
class Pattern:
    pattern: str
    message: str


@dataclass(frozen=True)
class Email:
    message: str


@dataclass(frozen=True)
class Custom:
    predicate: Callable[[str], bool]
    message: str


ValidationRule = Union[Required, MinLength, MaxLength, Min, Max, Pattern, Email, Custom]


# --- Definitions ---

@dataclass(frozen=True)
class StepDefinition:
    """
    One node of a flow graph.

    `message`, `quick_replies` and `next_step` accept either a plain value or
    a callable; both are normalized to Static/Dynamic. Dynamic messages and
    quick replies receive the accumulated data, dynamic `next_step` receives
    `(data, user_input)`.
    """
    id: str
    type: StepType
    message: Any
    next_step: Any
    quick_replies: Any = ()
    validation_rules: Tuple[ValidationRule, ...] = ()
    can_go_back: bool = True
    can_skip: bool = False
    skip_to_step: Optional[str] = None
    data_key: Optional[str] = None
    input_placeholder: Optional[str] = None
    input_type: Optional[str] = None

    def __post_init__(self):
        object.__setattr__(self, "type", StepType(self.type))
        object.__setattr__(self, "message", as_content(self.message))
        object.__setattr__(self, "quick_replies", as_content(self.quick_replies))
        object.__setattr__(self, "next_step", as_content(self.next_step))
        object.__setattr__(self, "validation_rules", tuple(self.validation_rules))

    @property
    def storage_key(self) -> str:
        return self.data_key or self.id


@dataclass(frozen=True)
class FlowDefinition:
    """
    A named graph of steps. Steps may be given as a mapping or a sequence.

    `cancelled_step`, when set, names the step an aborted run passes through
    on its way to `completed_step`.
    """
    id: str
    steps: Mapping[str, StepDefinition]
    initial_step: str
    completed_step: str
    cancelled_step: Optional[str] = None
    name: str = ""
    description: str = ""
    icon: Optional[str] = None

    def __post_init__(self):
        steps = self.steps
        if not isinstance(steps, Mapping):
            steps = {step.id: step for step in steps}
        object.__setattr__(self, "steps", MappingProxyType(dict(steps)))
        if not self.name:
            object.__setattr__(self, "name", self.id)


# --- Runtime state ---

def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _new_session_id() -> str:
    return uuid.uuid4().hex


class FlowState(BaseModel):
    """
    One in-progress instantiation of a flow.

    Plain data only. Mutated exclusively through the transition engine,
    which always hands back a new instance.
    """
    session_id: str = Field(default_factory=_new_session_id, description="External session identifier")
    flow_id: str = Field(..., description="Owning flow definition id")
    current_step: str = Field(..., description="Id of the step awaiting input")
    accumulated_data: Dict[str, Any] = Field(default_factory=dict, description="Data collected so far")
    history: List[str] = Field(default_factory=list, description="Previously visited step ids")
    started_at: datetime = Field(default_factory=_utcnow)
    last_updated_at: datetime = Field(default_factory=_utcnow)


class ResolvedStep(BaseModel):
    """Displayable view of a step, evaluated against the current data."""
    id: str
    type: StepType
    message: str
    quick_replies: List[QuickReply] = Field(default_factory=list)
    can_go_back: bool
    can_skip: bool = False
    skip_to_step: Optional[str] = None
    input_placeholder: Optional[str] = None
    input_type: Optional[str] = None


class CannotGoBack(BaseModel):
    """Returned (never raised) when back-navigation is unavailable."""
    reason: str = "empty_history"

    model_config = ConfigDict(frozen=True)


class FlowTurn(BaseModel):
    """What the flow service hands back to its consumers after each call."""
    session_id: str
    flow_id: str
    state: FlowState
    step: ResolvedStep
    validation_error: Optional[str] = None
    back_unavailable: Optional[str] = None
    completed: bool = False


class FlowSummary(BaseModel):
    id: str
    name: str
    description: str = ""
    icon: Optional[str] = None
