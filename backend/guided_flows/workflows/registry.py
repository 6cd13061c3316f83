# /guided_flows/workflows/registry.py

"""
Catalog of flow definitions.

Built once at startup and passed by reference to whoever handles sessions.
After `seal()` the catalog is read-only, which is what makes concurrent
lookups from any number of sessions safe without locking.
"""

from typing import Dict, Iterable, Iterator, List

from guided_flows.models.flow import FlowDefinition, FlowSummary, Static
from guided_flows.workflows.errors import (
    DuplicateFlowId,
    FlowNotFound,
    InvalidFlowDefinition,
    RegistrySealed,
    StepNotFound,
)


def check_flow_graph(flow: FlowDefinition) -> None:
    """
    Static checks on a flow graph. Only static references can be verified
    here; dynamic `next_step` targets are checked when they are taken.
    """
    for key, step in flow.steps.items():
        if key != step.id:
            raise InvalidFlowDefinition(flow.id, f"step key '{key}' does not match step id '{step.id}'")

    for step_id in (flow.initial_step, flow.completed_step, flow.cancelled_step):
        if step_id is not None and step_id not in flow.steps:
            raise StepNotFound(flow.id, step_id)

    for step in flow.steps.values():
        if isinstance(step.next_step, Static) and step.next_step.value not in flow.steps:
            raise StepNotFound(flow.id, step.next_step.value)
        if step.skip_to_step is not None and step.skip_to_step not in flow.steps:
            raise StepNotFound(flow.id, step.skip_to_step)
        if step.can_skip and step.skip_to_step is None:
            raise InvalidFlowDefinition(flow.id, f"step '{step.id}' can be skipped but has no skip_to_step")


class FlowRegistry:
    def __init__(self, flows: Iterable[FlowDefinition] = ()):
        self._flows: Dict[str, FlowDefinition] = {}
        self._sealed = False
        for flow in flows:
            self.register(flow)

    def register(self, flow: FlowDefinition) -> None:
        if self._sealed:
            raise RegistrySealed(flow.id)
        if flow.id in self._flows:
            raise DuplicateFlowId(flow.id)
        check_flow_graph(flow)
        self._flows[flow.id] = flow

    def seal(self) -> "FlowRegistry":
        self._sealed = True
        return self

    @property
    def sealed(self) -> bool:
        return self._sealed

    def get(self, flow_id: str) -> FlowDefinition:
        try:
            return self._flows[flow_id]
        except KeyError:
            raise FlowNotFound(flow_id) from None

    def flow_ids(self) -> List[str]:
        return list(self._flows)

    def summaries(self) -> List[FlowSummary]:
        return [
            FlowSummary(id=flow.id, name=flow.name, description=flow.description, icon=flow.icon)
            for flow in self._flows.values()
        ]

    def __contains__(self, flow_id: object) -> bool:
        return flow_id in self._flows

    def __iter__(self) -> Iterator[FlowDefinition]:
        return iter(self._flows.values())

    def __len__(self) -> int:
        return len(self._flows)
