"""
Pytest configuration and fixtures for onboarding flow tests.
"""

import os
from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock

import pytest

# Keep tests independent of any local .env
os.environ["ONBOARDING_ENV"] = "development"
os.environ.pop("SUPABASE_URL", None)
os.environ.pop("SUPABASE_SERVICE_ROLE_KEY", None)

from onboarding_flow.catalog import Role, steps_for
from onboarding_flow.controller import FlowController
from onboarding_flow.persistence import DraftPersistence
from onboarding_flow.ports import AccountCreator, AccountResult, Notifier
from onboarding_flow.stores import MemoryDraftStore


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, start: datetime | None = None):
        self.now = start or datetime(2024, 5, 1, 9, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


class FakeAccountCreator(AccountCreator):
    """Records calls; fails with ``error`` while it is set."""

    def __init__(self, error: str | None = None):
        self.error = error
        self.calls: list[tuple[str, str, dict]] = []

    def create_account(self, email, password, profile):
        self.calls.append((email, password, profile))
        if self.error:
            return AccountResult(success=False, error=self.error)
        return AccountResult(success=True)


class RecordingNotifier(Notifier):
    def __init__(self):
        self.events: list[tuple] = []

    def notify(self, kind, payload=None):
        self.events.append((kind, payload))

    def kinds(self):
        return [kind for kind, _ in self.events]


# Answers that pass validation for every step, keyed by step id
STEP_DATA: dict[str, dict] = {
    "account": {
        "email": "maria@example.com",
        "password": "secret123",
        "confirm_password": "secret123",
    },
    "phone_verify": {"phone": "+971500000000", "phone_verified": True},
    "candidate_personal": {
        "full_name": "Maria Santos",
        "date_of_birth": "1990-04-12",
        "nationality": "PH",
        "religion": "christian",
        "marital_status": "single",
    },
    "candidate_biometric_doc": {"face_photo": "face.jpg", "id_document": "passport.jpg"},
    "candidate_address": {"country": "AE", "city": "Dubai"},
    "candidate_profession": {"primary_profession": "housekeeper", "visa_status": "visit"},
    "candidate_skills": {"skills": ["cooking", "cleaning"]},
    "candidate_experience": {"experience_level": "1_2_years"},
    "candidate_preferences": {"expected_salary": 1800, "work_preferences": ["live_in"]},
    "candidate_about": {"about_me": "Hard working and patient, I love caring for children and cooking."},
    "candidate_consents": {
        "terms_accepted": True,
        "privacy_accepted": True,
        "profile_sharing_accepted": True,
    },
    "sponsor_personal": {"full_name": "Ahmed Ali"},
    "sponsor_biometric_doc": {"face_photo": "face.jpg", "id_document": "emirates_id.jpg"},
    "sponsor_location": {"country": "AE", "city": "Abu Dhabi"},
    "sponsor_family": {"family_size": 5},
    "sponsor_budget": {"salary_budget_min": 1500, "salary_budget_max": 2500},
    "sponsor_accommodation": {"accommodation_type": "private_room"},
    "sponsor_consents": {"terms_accepted": True, "privacy_accepted": True},
    "agency_basic": {"agency_name": "Gulf Helpers", "trade_license_number": "TL-4411"},
    "agency_biometric_doc": {
        "face_photo": "face.jpg",
        "trade_license": "license.pdf",
        "investor_id": "investor.pdf",
    },
    "agency_location": {"countries_of_operation": ["AE", "SA"]},
    "agency_contact": {"contact_phone": "+97142222222", "contact_email": "office@gulfhelpers.ae"},
    "agency_representative": {
        "authorized_person_name": "Omar Haddad",
        "authorized_person_title": "Director",
    },
    "agency_services": {"services_offered": ["placement"]},
    "agency_about": {"about_agency": "Licensed agency placing trained domestic workers with families across the UAE since 2012. " * 2},
    "agency_consents": {"terms_accepted": True, "privacy_accepted": True},
}


def step_data(step_id: str) -> dict:
    return dict(STEP_DATA.get(step_id, {}))


def walk_to(controller: FlowController, step_id: str) -> None:
    """Advance with valid answers until ``step_id`` is the current step."""
    while controller.current_step.id != step_id:
        result = controller.advance(step_data(controller.current_step.id))
        assert result.ok, result.errors


def walk_to_end(controller: FlowController):
    """Advance through every remaining step; returns the last result."""
    result = None
    while controller.status.value == "in_progress":
        result = controller.advance(step_data(controller.current_step.id))
        if not result.ok:
            return result
    return result


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def memory_store():
    return MemoryDraftStore()


@pytest.fixture
def persistence(memory_store, clock):
    return DraftPersistence(memory_store, "onboarding_draft:test-device", ttl=timedelta(days=7), clock=clock)


@pytest.fixture
def account_creator():
    return FakeAccountCreator()


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def controller(persistence, account_creator, notifier, clock):
    ctrl = FlowController(
        persistence=persistence,
        account_creator=account_creator,
        notifier=notifier,
        clock=clock,
        role_selection_points=10,
        points_per_level=200,
    )
    yield ctrl
    ctrl.dispose()


@pytest.fixture
def candidate(controller):
    """Controller with the candidate role selected, on the welcome step."""
    controller.select_role(Role.CANDIDATE)
    return controller


@pytest.fixture
def mock_supabase():
    """Mock Supabase client for unit tests."""
    mock_client = MagicMock()

    mock_table = MagicMock()
    mock_table.select.return_value = mock_table
    mock_table.upsert.return_value = mock_table
    mock_table.delete.return_value = mock_table
    mock_table.eq.return_value = mock_table
    mock_table.execute.return_value = MagicMock(data=[])

    mock_client.table.return_value = mock_table

    return mock_client

