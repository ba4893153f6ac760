"""
Profile Builder.

Turns accumulated flow state into the profile payload handed to the
account creation port, and scores how complete a profile is.
"""

from typing import Any

from .catalog import Role, role_profile_block
from .state import FlowState
from .validation import is_blank

# Parsed from the experience screen's option values
EXPERIENCE_YEARS = {
    "no_experience": 0,
    "less_than_1": 0,
    "1_2_years": 1,
    "3_5_years": 3,
    "5_10_years": 5,
    "more_than_10": 10,
}


def experience_years(level: Any) -> int:
    """Years of experience for an experience option; unknown values count as 0."""
    if isinstance(level, int):
        return max(level, 0)
    return EXPERIENCE_YEARS.get(str(level or ""), 0)


def build_profile(state: FlowState) -> dict[str, Any]:
    """
    Profile fields sent along with account creation.

    Agencies are represented by their authorized person and first country
    of operation.
    """
    if state.role is None:
        raise ValueError("Cannot build a profile before a role is selected")

    form = state.form_data
    profile: dict[str, Any] = {
        "user_type": state.role.value,
        "phone": state.account.phone,
        "full_name": form.get("full_name", ""),
        "country": form.get("country", ""),
        "avatar": form.get("face_photo"),
    }

    if state.role is Role.AGENCY:
        countries = form.get("countries_of_operation") or []
        profile["full_name"] = form.get("authorized_person_name") or form.get("full_name", "")
        profile["country"] = countries[0] if countries else ""
        profile["agency_name"] = form.get("agency_name", "")

    if state.role is Role.CANDIDATE:
        profile["experience_years"] = experience_years(form.get("experience_level"))
        profile["skills"] = list(form.get("skills") or [])

    return profile


def profile_completion(state: FlowState) -> int:
    """Percent of the role's required profile fields that hold an answer."""
    if state.role is None:
        return 0

    fields: set[str] = set()
    for step in role_profile_block(state.role):
        fields |= step.required_fields

    if not fields:
        return 100

    view = state.view()
    filled = [name for name in fields if not is_blank(view.get(name))]
    return round(len(filled) / len(fields) * 100)
