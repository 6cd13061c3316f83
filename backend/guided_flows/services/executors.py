# /guided_flows/services/executors.py

from typing import Any, Awaitable, Callable, Dict, Optional, Protocol, runtime_checkable

from guided_flows.models.flow import FlowState
from guided_flows.workflows.constants import EXECUTION_ERROR_KEY, EXECUTION_RESULT_KEY

# Action executors perform the real side effect behind an execution step.
# The executors below only package what the sample flows collected; the
# actual employee creation and payroll math live in the payroll backend.


@runtime_checkable
class ActionExecutor(Protocol):
    async def execute(self, state: FlowState) -> Dict[str, Any]:
        ...


def _collected(state: FlowState) -> Dict[str, Any]:
    return {
        key: value
        for key, value in state.accumulated_data.items()
        if key not in (EXECUTION_RESULT_KEY, EXECUTION_ERROR_KEY)
    }


class EmployeeCreateExecutor:
    """Builds the employee record submitted by the employee_create flow."""

    async def execute(self, state: FlowState) -> Dict[str, Any]:
        data = _collected(state)
        name_parts = [data.get("first_name"), data.get("second_name"), data.get("last_name")]
        return {
            "success": True,
            "employee": {
                "document_type": data.get("document_type"),
                "document_number": data.get("document_number"),
                "full_name": " ".join(part for part in name_parts if part),
                "email": data.get("email"),
                "salary": float(data["salary"]) if data.get("salary") else None,
            },
        }


class PayrollCalculationExecutor:
    """
    Summarizes the calculation request assembled by the payroll_calculation flow.

    `count_employees` is the hook into the payroll backend; it receives the
    period and employee scope and returns how many employees were processed.
    """

    def __init__(self, count_employees: Optional[Callable[[str, str], Awaitable[int]]] = None):
        self.count_employees = count_employees

    async def execute(self, state: FlowState) -> Dict[str, Any]:
        data = _collected(state)
        period = data.get("period")
        scope = data.get("employee_scope")
        processed = await self.count_employees(period, scope) if self.count_employees else 0
        return {
            "success": True,
            "period": period,
            "employee_scope": scope,
            "novelties": [data["novelty_input"]] if data.get("novelty_input") else [],
            "employees_processed": processed,
        }


def default_executors() -> Dict[str, ActionExecutor]:
    return {
        "employee_create": EmployeeCreateExecutor(),
        "payroll_calculation": PayrollCalculationExecutor(),
    }
