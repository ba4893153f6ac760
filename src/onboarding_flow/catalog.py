"""
Step Catalog.

Pure mapping from a participant role to the ordered list of wizard steps.
The catalog is assembled from fixed blocks:

    SHARED_PREFIX          welcome, role selection (before a role exists)
    SHARED_ACCOUNT_BLOCK   credentials, phone, subscription offer, celebration
    SOCIAL_PROOF_BLOCK     testimonials
    profile block          one per role, different lengths
    FINAL_BLOCK            reviews, notification preferences

No randomness and no I/O: the same role always yields the same tuple.
"""

from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Mapping


class Role(Enum):
    """Account type chosen during onboarding. An unset role is ``None``."""
    CANDIDATE = "candidate"    # Domestic worker looking for a placement
    SPONSOR = "sponsor"        # Family / employer
    AGENCY = "agency"          # Recruitment agency


class Phase(Enum):
    """Categorical grouping of steps, used by screens and trigger rules."""
    WELCOME = "welcome"
    INTRO = "intro"
    ACCOUNT = "account"
    CELEBRATION = "celebration"
    OVERVIEW = "overview"
    PROFILE = "profile"
    CONSENT = "consent"
    FINISH = "finish"


class RuleKind(Enum):
    EMAIL = "email"
    PASSWORD_MIN_LENGTH = "password_min_length"
    MATCHES_FIELD = "matches_field"
    STRING_MIN_LENGTH = "string_min_length"
    ARRAY_MIN_LENGTH = "array_min_length"


@dataclass(frozen=True)
class Rule:
    """A shape check applied to one field once it is present."""
    kind: RuleKind
    min_length: int | None = None
    other_field: str | None = None


def email() -> Rule:
    return Rule(RuleKind.EMAIL)


def password_min_length(n: int) -> Rule:
    return Rule(RuleKind.PASSWORD_MIN_LENGTH, min_length=n)


def matches_field(other: str) -> Rule:
    return Rule(RuleKind.MATCHES_FIELD, other_field=other)


def string_min_length(n: int) -> Rule:
    return Rule(RuleKind.STRING_MIN_LENGTH, min_length=n)


def array_min_length(n: int) -> Rule:
    return Rule(RuleKind.ARRAY_MIN_LENGTH, min_length=n)


@dataclass(frozen=True)
class StepDescriptor:
    """Immutable metadata for one wizard screen."""
    id: str
    phase: Phase
    title: str = ""
    subtitle: str = ""
    skippable: bool = False
    point_reward: int = 0
    required_fields: frozenset[str] = frozenset()
    field_rules: Mapping[str, Rule] = field(default_factory=dict)

    def __post_init__(self):
        if self.point_reward < 0:
            raise ValueError(f"Step {self.id} has negative point reward")
        # Freeze the inputs so shared descriptors cannot be edited in place
        object.__setattr__(self, "required_fields", frozenset(self.required_fields))
        object.__setattr__(self, "field_rules", MappingProxyType(dict(self.field_rules)))

    def __hash__(self) -> int:
        return hash(self.id)


def _step(
    id: str,
    phase: Phase,
    title: str,
    subtitle: str,
    *,
    skippable: bool = False,
    points: int = 0,
    required: tuple[str, ...] = (),
    rules: dict[str, Rule] | None = None,
) -> StepDescriptor:
    return StepDescriptor(
        id=id,
        phase=phase,
        title=title,
        subtitle=subtitle,
        skippable=skippable,
        point_reward=points,
        required_fields=frozenset(required),
        field_rules=rules or {},
    )


# =============================================================================
# Shared Blocks
# =============================================================================

SHARED_PREFIX: tuple[StepDescriptor, ...] = (
    _step("welcome", Phase.WELCOME, "Welcome", "Platform Introduction"),
    _step(
        "role_select", Phase.INTRO, "Account Type", "Choose Your Role",
        required=("role",),
    ),
)

SHARED_ACCOUNT_BLOCK: tuple[StepDescriptor, ...] = (
    _step(
        "account", Phase.ACCOUNT, "Create Account", "Email & Password",
        required=("email", "password", "confirm_password"),
        rules={
            "email": email(),
            "password": password_min_length(8),
            "confirm_password": matches_field("password"),
        },
    ),
    _step(
        "phone_verify", Phase.ACCOUNT, "Verify Phone", "OTP Verification",
        required=("phone", "phone_verified"),
    ),
    _step(
        "subscription", Phase.ACCOUNT, "Choose Plan", "Subscription Options",
        skippable=True,
    ),
    _step(
        "congratulations", Phase.CELEBRATION, "Welcome!", "Account Created",
        points=50,
    ),
)

SOCIAL_PROOF_BLOCK: tuple[StepDescriptor, ...] = (
    _step("social_proof", Phase.OVERVIEW, "Success Stories", "Testimonials"),
)

FINAL_BLOCK: tuple[StepDescriptor, ...] = (
    _step("reviews", Phase.FINISH, "Reviews", "User Ratings"),
    _step(
        "notifications", Phase.FINISH, "Notifications", "Stay Updated",
        skippable=True,
    ),
)


# =============================================================================
# Role Profile Blocks
# =============================================================================

CANDIDATE_PROFILE_BLOCK: tuple[StepDescriptor, ...] = (
    _step(
        "candidate_personal", Phase.PROFILE, "Personal Info", "Basic Details",
        points=30,
        required=("full_name", "date_of_birth", "nationality", "religion", "marital_status"),
    ),
    _step(
        "candidate_biometric_doc", Phase.PROFILE, "Identity Verification", "Photo & Documents",
        points=100,
        required=("face_photo", "id_document"),
    ),
    _step(
        "candidate_address", Phase.PROFILE, "Current Location", "Address Details",
        points=20,
        required=("country", "city"),
    ),
    _step(
        "candidate_profession", Phase.PROFILE, "Profession", "Work Details",
        points=25,
        required=("primary_profession", "visa_status"),
    ),
    _step(
        "candidate_skills", Phase.PROFILE, "Skills", "Your Expertise",
        points=20,
        required=("skills",),
        rules={"skills": array_min_length(1)},
    ),
    _step(
        "candidate_experience", Phase.PROFILE, "Experience", "Work History",
        points=35,
        required=("experience_level",),
    ),
    _step(
        "candidate_preferences", Phase.PROFILE, "Preferences", "Work Terms",
        points=25,
        required=("expected_salary", "work_preferences"),
    ),
    _step(
        "candidate_about", Phase.PROFILE, "About Me", "Your Story",
        points=25,
        required=("about_me",),
        rules={"about_me": string_min_length(50)},
    ),
    _step(
        "candidate_media", Phase.PROFILE, "Media Gallery", "Photos & Video",
        skippable=True,
        points=75,
    ),
    _step(
        "candidate_consents", Phase.CONSENT, "Terms & Conditions", "Agreements",
        points=10,
        required=("terms_accepted", "privacy_accepted", "profile_sharing_accepted"),
    ),
)

SPONSOR_PROFILE_BLOCK: tuple[StepDescriptor, ...] = (
    _step(
        "sponsor_personal", Phase.PROFILE, "Personal Info", "Basic Details",
        points=30,
        required=("full_name",),
    ),
    _step(
        "sponsor_biometric_doc", Phase.PROFILE, "Identity Verification", "Photo & Documents",
        points=100,
        required=("face_photo", "id_document"),
    ),
    _step(
        "sponsor_location", Phase.PROFILE, "Location", "Where You Live",
        points=25,
        required=("country", "city"),
    ),
    _step(
        "sponsor_family", Phase.PROFILE, "Family Details", "Household Info",
        points=30,
        required=("family_size",),
    ),
    _step(
        "sponsor_preferences", Phase.PROFILE, "Preferences", "Maid Requirements",
        points=25,
    ),
    _step(
        "sponsor_budget", Phase.PROFILE, "Budget", "Salary Range",
        points=20,
        required=("salary_budget_min", "salary_budget_max"),
    ),
    _step(
        "sponsor_accommodation", Phase.PROFILE, "Accommodation", "Living Arrangement",
        points=20,
        required=("accommodation_type",),
    ),
    _step(
        "sponsor_consents", Phase.CONSENT, "Terms & Conditions", "Agreements",
        points=10,
        required=("terms_accepted", "privacy_accepted"),
    ),
)

AGENCY_PROFILE_BLOCK: tuple[StepDescriptor, ...] = (
    _step(
        "agency_basic", Phase.PROFILE, "Agency Info", "Basic Details",
        points=30,
        required=("agency_name", "trade_license_number"),
    ),
    _step(
        "agency_biometric_doc", Phase.PROFILE, "Verification", "Documents & Photo",
        points=100,
        required=("face_photo", "trade_license", "investor_id"),
    ),
    _step(
        "agency_location", Phase.PROFILE, "Coverage", "Operating Areas",
        points=25,
        required=("countries_of_operation",),
        rules={"countries_of_operation": array_min_length(1)},
    ),
    _step(
        "agency_contact", Phase.PROFILE, "Contact", "Communication",
        points=20,
        required=("contact_phone", "contact_email"),
        rules={"contact_email": email()},
    ),
    _step(
        "agency_representative", Phase.PROFILE, "Representative", "Authorized Person",
        points=25,
        required=("authorized_person_name", "authorized_person_title"),
    ),
    _step(
        "agency_services", Phase.PROFILE, "Services", "What You Offer",
        points=20,
        required=("services_offered",),
        rules={"services_offered": array_min_length(1)},
    ),
    _step(
        "agency_about", Phase.PROFILE, "About Agency", "Description",
        points=25,
        required=("about_agency",),
        rules={"about_agency": string_min_length(100)},
    ),
    _step(
        "agency_consents", Phase.CONSENT, "Terms & Conditions", "Agreements",
        points=10,
        required=("terms_accepted", "privacy_accepted"),
    ),
)

_PROFILE_BLOCKS: dict[Role, tuple[StepDescriptor, ...]] = {
    Role.CANDIDATE: CANDIDATE_PROFILE_BLOCK,
    Role.SPONSOR: SPONSOR_PROFILE_BLOCK,
    Role.AGENCY: AGENCY_PROFILE_BLOCK,
}

# Uploads that count toward the "all documents uploaded" achievement
_REQUIRED_DOCUMENTS: dict[Role, frozenset[str]] = {
    Role.CANDIDATE: frozenset({"face_photo", "id_document"}),
    Role.SPONSOR: frozenset({"face_photo", "id_document"}),
    Role.AGENCY: frozenset({"face_photo", "trade_license", "investor_id"}),
}

DOCUMENT_FIELDS: frozenset[str] = frozenset().union(*_REQUIRED_DOCUMENTS.values())


# =============================================================================
# Lookups
# =============================================================================

def role_profile_block(role: Role) -> tuple[StepDescriptor, ...]:
    """Profile steps specific to one role."""
    return _PROFILE_BLOCKS[role]


def steps_for(role: Role | None) -> tuple[StepDescriptor, ...]:
    """
    Ordered steps for a role.

    Before a role is chosen only the shared prefix is known.
    """
    if role is None:
        return SHARED_PREFIX
    return (
        SHARED_PREFIX
        + SHARED_ACCOUNT_BLOCK
        + SOCIAL_PROOF_BLOCK
        + role_profile_block(role)
        + FINAL_BLOCK
    )


def total_steps(role: Role | None) -> int:
    return len(steps_for(role))


def get_step(role: Role | None, index: int) -> StepDescriptor | None:
    """Step at an index, or None when out of range."""
    steps = steps_for(role)
    if 0 <= index < len(steps):
        return steps[index]
    return None


def step_index(role: Role | None, step_id: str) -> int:
    """Index of a step id within a role's catalog, -1 when absent."""
    for i, step in enumerate(steps_for(role)):
        if step.id == step_id:
            return i
    return -1


def profile_block_range(role: Role) -> range:
    """Indices covered by the role's profile block."""
    start = len(SHARED_PREFIX) + len(SHARED_ACCOUNT_BLOCK) + len(SOCIAL_PROOF_BLOCK)
    return range(start, start + len(role_profile_block(role)))


def required_documents(role: Role) -> frozenset[str]:
    return _REQUIRED_DOCUMENTS[role]


def parse_role(value: str | Role | None) -> Role | None:
    """Coerce user input to a Role. Raises ValueError for unknown names."""
    if value is None or isinstance(value, Role):
        return value
    return Role(value.strip().lower())
