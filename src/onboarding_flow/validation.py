"""
Validation Engine.

Evaluates a step's declared required fields and field rules against the
submitted values. Screens call this instead of carrying their own checks.

Returns a per-field error map (empty on success). Errors are data, never
exceptions.
"""

import re
from typing import Any, Mapping

from .catalog import Rule, RuleKind, StepDescriptor

REQUIRED = "required"
INVALID = "invalid"
TOO_SHORT = "too_short"
MISMATCH = "mismatch"

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


def is_blank(value: Any) -> bool:
    """
    True when a value does not count as an answer.

    ``False`` is blank so that unchecked consent boxes and an unverified
    phone fail a required check.
    """
    if value is None or value is False:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, (list, tuple, set, frozenset, dict)):
        return len(value) == 0
    return False


def check_rule(rule: Rule, value: Any, data: Mapping[str, Any]) -> str | None:
    """Apply one rule to a present value. Returns an error code or None."""
    if rule.kind is RuleKind.EMAIL:
        if not isinstance(value, str) or not EMAIL_PATTERN.match(value.strip()):
            return INVALID
        return None

    if rule.kind is RuleKind.PASSWORD_MIN_LENGTH:
        if not isinstance(value, str):
            return INVALID
        return TOO_SHORT if len(value) < rule.min_length else None

    if rule.kind is RuleKind.MATCHES_FIELD:
        return MISMATCH if value != data.get(rule.other_field) else None

    if rule.kind is RuleKind.STRING_MIN_LENGTH:
        if not isinstance(value, str):
            return INVALID
        return TOO_SHORT if len(value.strip()) < rule.min_length else None

    if rule.kind is RuleKind.ARRAY_MIN_LENGTH:
        if not isinstance(value, (list, tuple, set, frozenset)):
            return INVALID
        return TOO_SHORT if len(value) < rule.min_length else None

    raise ValueError(f"Unknown rule kind: {rule.kind}")


def validate(descriptor: StepDescriptor, data: Mapping[str, Any]) -> dict[str, str]:
    """
    Validate submitted values for a step.

    Required-ness and shape are independent: a rule only runs when its field
    is present. When a field fails several checks the first one wins, with
    the required check ahead of every rule.
    """
    errors: dict[str, str] = {}

    for name in sorted(descriptor.required_fields):
        if is_blank(data.get(name)):
            errors[name] = REQUIRED

    for name, rule in descriptor.field_rules.items():
        if name in errors:
            continue
        value = data.get(name)
        if is_blank(value):
            continue
        error = check_rule(rule, value, data)
        if error:
            errors[name] = error

    return errors


def is_valid(descriptor: StepDescriptor, data: Mapping[str, Any]) -> bool:
    return not validate(descriptor, data)
