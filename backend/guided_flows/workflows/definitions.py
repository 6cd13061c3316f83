# /guided_flows/workflows/definitions.py

"""
Sample flow definitions shipped with the service.

Flows are pure configuration: the engine knows nothing about employees or
payroll. Each flow follows the same conventions:
- a greeting step whose "cancel" reply routes to `cancelled`
- an `execution` step whose branching reads `_executionError` to pick
  between the result step and a retry/cancel step
- a `completed` step used as the flow's completed_step
"""

from typing import Any, Dict, List, Optional

from guided_flows.models.flow import (
    Custom,
    Email,
    FlowDefinition,
    MaxLength,
    Min,
    MinLength,
    Pattern,
    QuickReply,
    Required,
    StepDefinition,
    StepType,
)
from guided_flows.workflows.constants import CANCEL_TOKEN, EXECUTION_ERROR_KEY, EXECUTION_RESULT_KEY, SKIP_TOKEN
from guided_flows.workflows.registry import FlowRegistry

Data = Dict[str, Any]


def _letters_and_spaces(value: str) -> bool:
    return all(ch.isalpha() or ch.isspace() for ch in value)


def _after_execution(data: Data, _input: Optional[str]) -> str:
    return "execution_failed" if data.get(EXECUTION_ERROR_KEY) else "result"


def _retry_or_cancel(data: Data, user_input: Optional[str]) -> str:
    return "execution" if user_input == "retry" else "cancelled"


def _execution_failed_message(data: Data) -> str:
    error = data.get(EXECUTION_ERROR_KEY) or {}
    return f"Something went wrong: {error.get('message', 'unknown error')}.\n\nDo you want to try again?"


def _shared_tail(action_message: str) -> List[StepDefinition]:
    """Execution, failure, cancellation and completion steps common to every flow."""
    return [
        StepDefinition(
            id="execution",
            type=StepType.EXECUTION,
            message=action_message,
            next_step=_after_execution,
            can_go_back=False,
        ),
        StepDefinition(
            id="execution_failed",
            type=StepType.SELECT,
            message=_execution_failed_message,
            quick_replies=[
                QuickReply(label="Retry", value="retry", icon="🔁"),
                QuickReply(label="Cancel", value=CANCEL_TOKEN, icon="❌"),
            ],
            next_step=_retry_or_cancel,
            can_go_back=False,
        ),
        StepDefinition(
            id="cancelled",
            type=StepType.RESULT,
            message="Process cancelled. You can start again whenever you need.",
            next_step="completed",
            can_go_back=False,
        ),
        StepDefinition(
            id="completed",
            type=StepType.RESULT,
            message="Process completed.",
            next_step="completed",
            can_go_back=False,
        ),
    ]


# --- Employee creation ---

def _employee_preview(data: Data) -> str:
    lines = [
        "Please review the new employee:",
        f"• Document: {data.get('document_type', '-')} {data.get('document_number', '-')}",
        f"• Name: {' '.join(p for p in (data.get('first_name'), data.get('second_name'), data.get('last_name')) if p)}",
        f"• Base salary: {data.get('salary', '-')}",
        f"• Email: {data.get('email') or 'not provided'}",
    ]
    return "\n".join(lines)


def _employee_result(data: Data) -> str:
    employee = (data.get(EXECUTION_RESULT_KEY) or {}).get("employee") or {}
    return f"Employee {employee.get('full_name') or data.get('first_name', '')} was created successfully."


def _preview_choice(data: Data, user_input: Optional[str]) -> str:
    if user_input == "confirm":
        return "execution"
    if user_input == "edit":
        return "document_type"
    return "cancelled"


EMPLOYEE_CREATE_FLOW = FlowDefinition(
    id="employee_create",
    name="Create employee",
    description="Step-by-step assistant to register a new employee",
    icon="👥",
    initial_step="greeting",
    completed_step="completed",
    cancelled_step="cancelled",
    steps=[
        StepDefinition(
            id="greeting",
            type=StepType.GREETING,
            message="I'll help you create a new employee. I only need a few basic details.",
            quick_replies=[
                QuickReply(label="Start", value="start", icon="✨"),
                QuickReply(label="Cancel", value=CANCEL_TOKEN, icon="❌"),
            ],
            next_step=lambda data, user_input: "cancelled" if user_input == CANCEL_TOKEN else "document_type",
            can_go_back=False,
        ),
        StepDefinition(
            id="document_type",
            type=StepType.SELECT,
            message="Which identity document does the employee have?",
            quick_replies=[
                QuickReply(label="CC - Citizenship card", value="CC"),
                QuickReply(label="TI - Identity card", value="TI"),
                QuickReply(label="CE - Foreigner ID", value="CE"),
                QuickReply(label="PA - Passport", value="PA"),
                QuickReply(label="NIT", value="NIT"),
            ],
            next_step="document_number",
        ),
        StepDefinition(
            id="document_number",
            type=StepType.INPUT,
            message=lambda data: f"What is the {data.get('document_type') or 'document'} number?",
            input_placeholder="e.g. 1234567890",
            input_type="text",
            validation_rules=[
                Required("The document number is required"),
                MaxLength(20, "It cannot exceed 20 characters"),
                Pattern(r"^[0-9]+$", "Only digits are allowed"),
            ],
            next_step="first_name",
        ),
        StepDefinition(
            id="first_name",
            type=StepType.INPUT,
            message="What is the employee's first name?",
            input_placeholder="e.g. Juan",
            input_type="text",
            validation_rules=[
                Required("The first name is required"),
                MaxLength(30, "It cannot exceed 30 characters"),
                Custom(_letters_and_spaces, "Only letters and spaces are allowed"),
            ],
            next_step="last_name",
        ),
        StepDefinition(
            id="last_name",
            type=StepType.INPUT,
            message="And the last name?",
            input_placeholder="e.g. Pérez",
            input_type="text",
            validation_rules=[
                Required("The last name is required"),
                MaxLength(30, "It cannot exceed 30 characters"),
                Custom(_letters_and_spaces, "Only letters and spaces are allowed"),
            ],
            next_step="second_name_optional",
        ),
        StepDefinition(
            id="second_name_optional",
            type=StepType.SELECT,
            message="Does the employee have a middle name? (optional)",
            quick_replies=[
                QuickReply(label="Yes, add it", value="yes"),
                QuickReply(label="No, continue", value=SKIP_TOKEN),
            ],
            next_step=lambda data, user_input: "second_name_input" if user_input == "yes" else "salary",
            can_skip=True,
            skip_to_step="salary",
        ),
        StepDefinition(
            id="second_name_input",
            type=StepType.INPUT,
            message="What is the middle name?",
            input_type="text",
            data_key="second_name",
            validation_rules=[
                MaxLength(30, "It cannot exceed 30 characters"),
                Custom(_letters_and_spaces, "Only letters and spaces are allowed"),
            ],
            next_step="salary",
        ),
        StepDefinition(
            id="salary",
            type=StepType.INPUT,
            message=lambda data: f"What is {data.get('first_name', 'the employee')}'s base salary?",
            input_placeholder="e.g. 1423500",
            input_type="number",
            validation_rules=[
                Required("The salary is required"),
                Min(1, "The salary must be a positive number"),
                Pattern(r"^\d+(\.\d+)?$", "The salary must be a number"),
            ],
            next_step="email",
        ),
        StepDefinition(
            id="email",
            type=StepType.INPUT,
            message="What is the employee's email? You can skip this step.",
            quick_replies=[QuickReply(label="Skip", value=SKIP_TOKEN, icon="⏭️")],
            input_type="email",
            validation_rules=[
                Required("Enter an email or skip this step"),
                Email("That doesn't look like a valid email"),
            ],
            next_step="preview",
            can_skip=True,
            skip_to_step="preview",
        ),
        StepDefinition(
            id="preview",
            type=StepType.PREVIEW,
            message=_employee_preview,
            quick_replies=[
                QuickReply(label="Create employee", value="confirm", icon="✅"),
                QuickReply(label="Start over", value="edit", icon="✏️"),
                QuickReply(label="Cancel", value=CANCEL_TOKEN, icon="❌"),
            ],
            next_step=_preview_choice,
        ),
        StepDefinition(
            id="result",
            type=StepType.RESULT,
            message=_employee_result,
            quick_replies=[QuickReply(label="Done", value="done", icon="✅")],
            next_step="completed",
            can_go_back=False,
        ),
    ] + _shared_tail("Creating the employee, please wait..."),
)


# --- Payroll calculation ---

def _period_choice(data: Data, user_input: Optional[str]) -> str:
    if user_input and (user_input == "current_period" or user_input.startswith("period_")):
        return "employee_selection"
    return "period_selection"


def _novelties_message(data: Data) -> str:
    msg = "Step 3: period novelties\n\n"
    if data.get("novelty_input"):
        msg += f"Last novelty recorded: {data['novelty_input']}\n\n"
    else:
        msg += "No novelties recorded yet.\n\n"
    return msg + "Do you want to add novelties for this period?"


def _novelties_choice(data: Data, user_input: Optional[str]) -> str:
    if user_input == "skip_novelties":
        return "calculation_preview"
    if user_input and user_input.startswith("add_"):
        return "novelty_input"
    return "novelties_check"


def _calculation_preview(data: Data) -> str:
    return (
        "Calculation preview\n\n"
        f"Period: {data.get('period', '-')}\n"
        f"Employees: {data.get('employee_scope', '-')}\n\n"
        "Do you want to run the calculation?"
    )


def _calculation_choice(data: Data, user_input: Optional[str]) -> str:
    if user_input == "confirm":
        return "execution"
    if user_input == "back_to_novelties":
        return "novelties_check"
    return "cancelled"


def _payroll_result(data: Data) -> str:
    result = data.get(EXECUTION_RESULT_KEY) or {}
    return (
        "Payroll calculated successfully.\n\n"
        f"Period: {result.get('period') or data.get('period', '-')}\n"
        f"Employees processed: {result.get('employees_processed', 0)}"
    )


PAYROLL_CALCULATION_FLOW = FlowDefinition(
    id="payroll_calculation",
    name="Calculate payroll",
    description="Guided process to calculate the payroll of a period",
    icon="💰",
    initial_step="greeting",
    completed_step="completed",
    cancelled_step="cancelled",
    steps=[
        StepDefinition(
            id="greeting",
            type=StepType.GREETING,
            message="I'll help you calculate payroll step by step. Shall we start?",
            quick_replies=[
                QuickReply(label="Start", value="start", icon="▶️"),
                QuickReply(label="Cancel", value=CANCEL_TOKEN, icon="❌"),
            ],
            next_step=lambda data, user_input: "cancelled" if user_input == CANCEL_TOKEN else "period_selection",
            can_go_back=False,
        ),
        StepDefinition(
            id="period_selection",
            type=StepType.SELECT,
            message="Step 1: which payroll period do you want to calculate?",
            quick_replies=[
                QuickReply(label="Current period", value="current_period", icon="📊"),
                QuickReply(label="See all periods", value="list_periods", icon="📋"),
            ],
            data_key="period",
            next_step=_period_choice,
        ),
        StepDefinition(
            id="employee_selection",
            type=StepType.SELECT,
            message=lambda data: f"Step 2: which employees should be included in {data.get('period', 'the selected period')}?",
            quick_replies=[
                QuickReply(label="All active employees", value="all_active"),
                QuickReply(label="Specific employees", value="specific_employees"),
                QuickReply(label="New employees only", value="new_employees"),
            ],
            data_key="employee_scope",
            next_step="novelties_check",
        ),
        StepDefinition(
            id="novelties_check",
            type=StepType.HUB,
            message=_novelties_message,
            quick_replies=[
                QuickReply(label="Overtime", value="add_overtime", icon="⏱️"),
                QuickReply(label="Sick leave", value="add_disability", icon="🏥"),
                QuickReply(label="Bonuses", value="add_bonus", icon="🎁"),
                QuickReply(label="Absences", value="add_absence", icon="📉"),
                QuickReply(label="Continue without novelties", value="skip_novelties", icon="➡️"),
            ],
            data_key="last_novelty_action",
            next_step=_novelties_choice,
            can_skip=True,
            skip_to_step="calculation_preview",
        ),
        StepDefinition(
            id="novelty_input",
            type=StepType.INPUT,
            message=lambda data: (
                f"Enter the details of the {data.get('last_novelty_action', 'novelty').replace('add_', '')}:\n\n"
                'Example: "Juan Pérez, 10 overtime hours"'
            ),
            input_placeholder="Employee, amount/description",
            input_type="text",
            validation_rules=[
                Required("Enter the novelty details"),
                MinLength(5, "The description must have at least 5 characters"),
            ],
            next_step="novelties_check",
        ),
        StepDefinition(
            id="calculation_preview",
            type=StepType.PREVIEW,
            message=_calculation_preview,
            quick_replies=[
                QuickReply(label="Calculate payroll", value="confirm", icon="✅"),
                QuickReply(label="Add more novelties", value="back_to_novelties", icon="📝"),
                QuickReply(label="Cancel", value=CANCEL_TOKEN, icon="❌"),
            ],
            next_step=_calculation_choice,
        ),
        StepDefinition(
            id="result",
            type=StepType.RESULT,
            message=_payroll_result,
            quick_replies=[QuickReply(label="Done", value="done", icon="✅")],
            next_step="completed",
            can_go_back=False,
        ),
    ] + _shared_tail("Calculating payroll, this may take a moment..."),
)


DEFAULT_FLOWS = (EMPLOYEE_CREATE_FLOW, PAYROLL_CALCULATION_FLOW)


def build_default_registry() -> FlowRegistry:
    """Registry with every shipped flow, sealed for concurrent reads."""
    return FlowRegistry(DEFAULT_FLOWS).seal()
