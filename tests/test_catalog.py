"""
Tests for the step catalog.
"""

from dataclasses import FrozenInstanceError

import pytest

from onboarding_flow.catalog import (
    SHARED_PREFIX,
    Phase,
    Role,
    StepDescriptor,
    get_step,
    parse_role,
    profile_block_range,
    required_documents,
    role_profile_block,
    step_index,
    steps_for,
    total_steps,
)


class TestStepsFor:
    """Test catalog assembly per role."""

    def test_catalog_lengths(self):
        assert total_steps(Role.CANDIDATE) == 19
        assert total_steps(Role.SPONSOR) == 17
        assert total_steps(Role.AGENCY) == 17

    def test_profile_block_lengths(self):
        assert len(role_profile_block(Role.CANDIDATE)) == 10
        assert len(role_profile_block(Role.SPONSOR)) == 8
        assert len(role_profile_block(Role.AGENCY)) == 8

    def test_unset_role_returns_shared_prefix(self):
        assert steps_for(None) == SHARED_PREFIX
        assert [s.id for s in steps_for(None)] == ["welcome", "role_select"]

    def test_deterministic(self):
        for role in Role:
            assert steps_for(role) == steps_for(role)
            assert [s.id for s in steps_for(role)] == [s.id for s in steps_for(role)]

    def test_every_role_starts_with_shared_prefix(self):
        for role in Role:
            assert steps_for(role)[:len(SHARED_PREFIX)] == SHARED_PREFIX

    def test_block_order(self):
        ids = [s.id for s in steps_for(Role.SPONSOR)]
        assert ids[:7] == [
            "welcome", "role_select", "account", "phone_verify",
            "subscription", "congratulations", "social_proof",
        ]
        assert ids[-2:] == ["reviews", "notifications"]

    def test_step_ids_unique(self):
        for role in Role:
            ids = [s.id for s in steps_for(role)]
            assert len(ids) == len(set(ids))

    def test_profile_block_range(self):
        block = profile_block_range(Role.CANDIDATE)
        assert block == range(7, 17)
        steps = steps_for(Role.CANDIDATE)
        assert steps[block.start].id == "candidate_personal"
        assert steps[block.stop - 1].id == "candidate_consents"

    def test_consent_step_closes_each_profile_block(self):
        for role in Role:
            assert role_profile_block(role)[-1].phase is Phase.CONSENT


class TestLookups:
    """Test index and id lookups."""

    def test_get_step(self):
        assert get_step(Role.AGENCY, 7).id == "agency_basic"
        assert get_step(Role.AGENCY, 17) is None
        assert get_step(None, -1) is None

    def test_step_index(self):
        assert step_index(Role.CANDIDATE, "candidate_skills") == 11
        assert step_index(Role.SPONSOR, "candidate_skills") == -1

    def test_required_documents(self):
        assert required_documents(Role.AGENCY) == {"face_photo", "trade_license", "investor_id"}
        assert required_documents(Role.CANDIDATE) == {"face_photo", "id_document"}

    def test_parse_role(self):
        assert parse_role("  Agency ") is Role.AGENCY
        assert parse_role(Role.SPONSOR) is Role.SPONSOR
        assert parse_role(None) is None

    def test_parse_unknown_role(self):
        with pytest.raises(ValueError):
            parse_role("admin")


class TestStepDescriptor:
    """Test descriptor immutability."""

    def test_frozen(self):
        step = get_step(Role.CANDIDATE, 2)
        with pytest.raises(FrozenInstanceError):
            step.point_reward = 1000

    def test_rules_read_only(self):
        step = get_step(Role.CANDIDATE, 2)
        with pytest.raises(TypeError):
            step.field_rules["email"] = None

    def test_negative_reward_rejected(self):
        with pytest.raises(ValueError):
            StepDescriptor(id="bad", phase=Phase.PROFILE, point_reward=-5)

    def test_skippable_steps(self):
        skippable = {s.id for s in steps_for(Role.CANDIDATE) if s.skippable}
        assert skippable == {"subscription", "candidate_media", "notifications"}
