"""
Tests for the validation engine.
"""

from onboarding_flow.catalog import Role, get_step, step_index
from onboarding_flow.validation import is_blank, is_valid, validate


def _step(role, step_id):
    return get_step(role, step_index(role, step_id))


class TestValidate:
    """Test rule evaluation against step descriptors."""

    def test_account_step_shape_errors(self):
        account = _step(Role.CANDIDATE, "account")
        errors = validate(account, {"email": "bad", "password": "short", "confirm_password": "short"})
        assert errors == {"email": "invalid", "password": "too_short"}

    def test_valid_account(self):
        account = _step(Role.CANDIDATE, "account")
        data = {"email": "a@b.co", "password": "longenough", "confirm_password": "longenough"}
        assert validate(account, data) == {}
        assert is_valid(account, data)

    def test_missing_required(self):
        account = _step(Role.CANDIDATE, "account")
        errors = validate(account, {"email": "a@b.co"})
        assert errors == {"password": "required", "confirm_password": "required"}

    def test_required_wins_over_rule(self):
        account = _step(Role.CANDIDATE, "account")
        errors = validate(account, {"email": "   ", "password": "longenough", "confirm_password": "longenough"})
        assert errors == {"email": "required"}

    def test_password_mismatch(self):
        account = _step(Role.CANDIDATE, "account")
        errors = validate(account, {"email": "a@b.co", "password": "longenough", "confirm_password": "different1"})
        assert errors == {"confirm_password": "mismatch"}

    def test_unchecked_consent_is_required(self):
        consents = _step(Role.SPONSOR, "sponsor_consents")
        errors = validate(consents, {"terms_accepted": True, "privacy_accepted": False})
        assert errors == {"privacy_accepted": "required"}

    def test_string_min_length_ignores_padding(self):
        about = _step(Role.CANDIDATE, "candidate_about")
        assert validate(about, {"about_me": "short" + " " * 60}) == {"about_me": "too_short"}
        assert validate(about, {"about_me": "x" * 50}) == {}

    def test_array_rules(self):
        skills = _step(Role.CANDIDATE, "candidate_skills")
        assert validate(skills, {"skills": []}) == {"skills": "required"}
        assert validate(skills, {"skills": "cooking"}) == {"skills": "invalid"}
        assert validate(skills, {"skills": ["cooking"]}) == {}

    def test_rule_only_runs_on_present_field(self):
        contact = _step(Role.AGENCY, "agency_contact")
        errors = validate(contact, {"contact_phone": "+971"})
        assert errors == {"contact_email": "required"}

        errors = validate(contact, {"contact_phone": "+971", "contact_email": "office"})
        assert errors == {"contact_email": "invalid"}

    def test_step_without_requirements(self):
        assert validate(_step(Role.CANDIDATE, "welcome"), {}) == {}
        assert validate(_step(Role.CANDIDATE, "candidate_media"), {}) == {}

    def test_unverified_phone(self):
        phone = _step(Role.CANDIDATE, "phone_verify")
        errors = validate(phone, {"phone": "+971500000000", "phone_verified": False})
        assert errors == {"phone_verified": "required"}


class TestIsBlank:
    """Test what counts as an answer."""

    def test_blank_values(self):
        for value in (None, False, "", "   ", [], {}, set()):
            assert is_blank(value)

    def test_present_values(self):
        for value in (0, True, "x", ["a"], 12.5):
            assert not is_blank(value)
