# /guided_flows/workflows/validator.py

"""
Pure input validation for flow steps.

Rules are evaluated in declared order and the message of the first failing
rule is returned. Validation failures are expected, user-triggered
conditions, so they are returned as values and never raised.

All functions are:
- Pure (no side effects)
- Deterministic (same input = same output)
- No logging
"""

import re
from typing import Optional, Sequence

from guided_flows.models.flow import (
    Custom,
    Email,
    Max,
    MaxLength,
    Min,
    MinLength,
    Pattern,
    Required,
    ValidationRule,
)
from guided_flows.workflows.constants import CANCEL_TOKEN

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


def _as_number(value: str) -> float:
    """Blank input counts as 0; anything unparseable is NaN."""
    value = value.strip()
    if not value:
        return 0.0
    try:
        return float(value)
    except ValueError:
        return float("nan")


def check_rule(value: str, rule: ValidationRule) -> bool:
    """Return True if `value` satisfies `rule`."""
    if isinstance(rule, Required):
        return bool(value.strip())
    if isinstance(rule, MinLength):
        return len(value) >= rule.value
    if isinstance(rule, MaxLength):
        return len(value) <= rule.value
    # NaN never compares below or above a bound, so non-numbers pass Min/Max
    if isinstance(rule, Min):
        return not _as_number(value) < rule.value
    if isinstance(rule, Max):
        return not _as_number(value) > rule.value
    if isinstance(rule, Pattern):
        return re.search(rule.pattern, value) is not None
    if isinstance(rule, Email):
        return EMAIL_PATTERN.match(value) is not None
    if isinstance(rule, Custom):
        return bool(rule.predicate(value))
    raise TypeError(f"Unsupported validation rule: {rule!r}")


def validate(user_input: Optional[str], rules: Sequence[ValidationRule]) -> Optional[str]:
    """
    Validate raw user input against an ordered list of rules.

    Args:
        user_input: The raw input (None is treated as an empty string)
        rules: Validation rules in the order they were declared on the step

    Returns:
        The message of the first failing rule, or None if every rule passes,
        the rule list is empty, or the input is the cancel token
    """
    if user_input == CANCEL_TOKEN:
        return None

    value = user_input if user_input is not None else ""
    for rule in rules:
        if not check_rule(value, rule):
            return rule.message
    return None
