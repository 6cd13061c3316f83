# /guided_flows/workflows/errors.py

# Structural errors: defects in flow configuration or wiring. These are
# raised, never returned. Expected user-triggered conditions (bad input,
# nothing to go back to) are values, see validator.py and engine.py.


class StructuralError(Exception):
    """Base class for flow graph and registry defects."""


class FlowNotFound(StructuralError, LookupError):
    def __init__(self, flow_id: str):
        self.flow_id = flow_id
        super().__init__(f"Flow '{flow_id}' not found")


class StepNotFound(StructuralError, LookupError):
    def __init__(self, flow_id: str, step_id: str):
        self.flow_id = flow_id
        self.step_id = step_id
        super().__init__(f"Step '{step_id}' not found in flow '{flow_id}'")


class DuplicateFlowId(StructuralError):
    def __init__(self, flow_id: str):
        self.flow_id = flow_id
        super().__init__(f"Flow '{flow_id}' is already registered")


class RegistrySealed(StructuralError):
    def __init__(self, flow_id: str):
        self.flow_id = flow_id
        super().__init__(f"Cannot register flow '{flow_id}': registry is sealed")


class ExecutorNotFound(StructuralError, LookupError):
    def __init__(self, flow_id: str):
        self.flow_id = flow_id
        super().__init__(f"No action executor configured for flow '{flow_id}'")


class InvalidFlowDefinition(StructuralError):
    def __init__(self, flow_id: str, reason: str):
        self.flow_id = flow_id
        self.reason = reason
        super().__init__(f"Invalid flow '{flow_id}': {reason}")
