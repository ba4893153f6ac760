"""
Tests for the account profile builder.
"""

import pytest

from conftest import step_data
from onboarding_flow.aggregator import partition
from onboarding_flow.catalog import Role, role_profile_block
from onboarding_flow.profile import build_profile, experience_years, profile_completion
from onboarding_flow.state import AccountData, FlowState, FlowStatus


def _filled_state(role: Role) -> FlowState:
    state = FlowState(role=role, status=FlowStatus.IN_PROGRESS, current_step_index=7)
    for step in role_profile_block(role):
        parts = partition(step_data(step.id))
        state.form_data.update(parts.form)
        state.consents.update(parts.consents)
    return state


class TestExperienceYears:
    def test_known_levels(self):
        assert experience_years("no_experience") == 0
        assert experience_years("3_5_years") == 3
        assert experience_years("more_than_10") == 10

    def test_unknown_and_numeric(self):
        assert experience_years("ancient") == 0
        assert experience_years(None) == 0
        assert experience_years(4) == 4


class TestBuildProfile:
    """Test role-specific profile payloads."""

    def test_candidate(self):
        state = _filled_state(Role.CANDIDATE)
        state.account = AccountData(phone="+971500000000", phone_verified=True)

        profile = build_profile(state)
        assert profile["user_type"] == "candidate"
        assert profile["full_name"] == "Maria Santos"
        assert profile["phone"] == "+971500000000"
        assert profile["experience_years"] == 1
        assert profile["skills"] == ["cooking", "cleaning"]
        assert profile["avatar"] == "face.jpg"

    def test_agency_uses_representative_and_first_country(self):
        profile = build_profile(_filled_state(Role.AGENCY))
        assert profile["full_name"] == "Omar Haddad"
        assert profile["country"] == "AE"
        assert "skills" not in profile

    def test_requires_role(self):
        with pytest.raises(ValueError):
            build_profile(FlowState())


class TestProfileCompletion:
    def test_empty(self):
        state = FlowState(role=Role.SPONSOR, status=FlowStatus.IN_PROGRESS)
        assert profile_completion(state) == 0

    def test_complete(self):
        for role in Role:
            assert profile_completion(_filled_state(role)) == 100

    def test_no_role(self):
        assert profile_completion(FlowState()) == 0
