"""
Gamification Engine.

Points ledger, level derivation and an idempotent achievement ledger.

Achievements are catalog data. Awarding one is session state, recorded on
GamificationState. Every function here is pure: it takes a state and
returns a new one.

Points policy: a step's own point reward and any achievement the same
action unlocks are independent grants and add up.
"""

import logging
from dataclasses import dataclass, replace
from datetime import datetime
from enum import Enum

from .catalog import Role, required_documents
from .state import AwardedAchievement, GamificationState, utc_now

logger = logging.getLogger(__name__)

POINTS_PER_LEVEL = 200

LEVEL_TITLES = (
    "Newcomer",
    "Explorer",
    "Achiever",
    "Rising Star",
    "Champion",
)


class TriggerKind(Enum):
    """What kind of event can unlock an achievement."""
    COMPLETE_STEP = "complete_step"
    PHONE_VERIFIED = "phone_verified"
    START_PROFILE = "start_profile"
    BIOMETRIC_COMPLETE = "biometric_complete"
    SKILLS_COUNT = "skills_count"                  # value >= threshold
    BIO_LENGTH = "bio_length"                      # value >= threshold
    EXPERIENCE_LEVEL = "experience_level"          # years >= threshold
    ALL_DOCUMENTS_UPLOADED = "all_documents_uploaded"
    VIDEO_UPLOADED = "video_uploaded"
    FAST_COMPLETION = "fast_completion"            # minutes <= threshold
    PROGRESS_REACHED = "progress_reached"          # percent >= threshold
    FULL_COMPLETION = "full_completion"


# Kinds whose threshold is a floor; FAST_COMPLETION is the only ceiling
_AT_LEAST = {
    TriggerKind.SKILLS_COUNT,
    TriggerKind.BIO_LENGTH,
    TriggerKind.EXPERIENCE_LEVEL,
    TriggerKind.PROGRESS_REACHED,
}


@dataclass(frozen=True)
class Achievement:
    """Catalog entry for a one-time bonus."""
    id: str
    name: str
    description: str
    point_reward: int
    trigger: TriggerKind
    threshold: int | None = None
    step_id: str | None = None
    role_scope: frozenset[Role] | None = None

    def applies_to(self, role: Role | None) -> bool:
        return self.role_scope is None or role in self.role_scope


@dataclass(frozen=True)
class TriggerEvent:
    """Something that happened in the flow that may unlock achievements."""
    kind: TriggerKind
    step_id: str | None = None
    value: int | None = None
    documents: frozenset[str] = frozenset()


# =============================================================================
# Event Constructors
# =============================================================================

def complete_step(step_id: str) -> TriggerEvent:
    return TriggerEvent(TriggerKind.COMPLETE_STEP, step_id=step_id)


def phone_verified() -> TriggerEvent:
    return TriggerEvent(TriggerKind.PHONE_VERIFIED)


def start_profile() -> TriggerEvent:
    return TriggerEvent(TriggerKind.START_PROFILE)


def biometric_complete() -> TriggerEvent:
    return TriggerEvent(TriggerKind.BIOMETRIC_COMPLETE)


def skills_selected(count: int) -> TriggerEvent:
    return TriggerEvent(TriggerKind.SKILLS_COUNT, value=count)


def bio_length(n: int) -> TriggerEvent:
    return TriggerEvent(TriggerKind.BIO_LENGTH, value=n)


def experience_level(years: int) -> TriggerEvent:
    return TriggerEvent(TriggerKind.EXPERIENCE_LEVEL, value=years)


def documents_uploaded(documents: set[str] | frozenset[str]) -> TriggerEvent:
    return TriggerEvent(TriggerKind.ALL_DOCUMENTS_UPLOADED, documents=frozenset(documents))


def video_uploaded() -> TriggerEvent:
    return TriggerEvent(TriggerKind.VIDEO_UPLOADED)


def progress(percent: int) -> TriggerEvent:
    return TriggerEvent(TriggerKind.PROGRESS_REACHED, value=percent)


def elapsed_minutes(n: int) -> TriggerEvent:
    return TriggerEvent(TriggerKind.FAST_COMPLETION, value=n)


def full_completion() -> TriggerEvent:
    return TriggerEvent(TriggerKind.FULL_COMPLETION)


# =============================================================================
# Achievement Catalog
# =============================================================================

_CANDIDATE_ONLY = frozenset({Role.CANDIDATE})

ACHIEVEMENTS: tuple[Achievement, ...] = (
    Achievement(
        "first_step", "First Step", "Started your journey", 10,
        TriggerKind.COMPLETE_STEP, step_id="welcome",
    ),
    Achievement(
        "verified_member", "Verified Member", "Phone number verified", 50,
        TriggerKind.PHONE_VERIFIED,
    ),
    Achievement(
        "profile_starter", "Profile Starter", "Started building your profile", 25,
        TriggerKind.START_PROFILE,
    ),
    Achievement(
        "identity_verified", "Identity Verified", "Completed biometric verification", 100,
        TriggerKind.BIOMETRIC_COMPLETE,
    ),
    Achievement(
        "skill_master", "Skill Master", "Added 5+ skills", 50,
        TriggerKind.SKILLS_COUNT, threshold=5, role_scope=_CANDIDATE_ONLY,
    ),
    Achievement(
        "storyteller", "Great Storyteller", "Wrote a detailed bio (200+ characters)", 25,
        TriggerKind.BIO_LENGTH, threshold=200, role_scope=_CANDIDATE_ONLY,
    ),
    Achievement(
        "professional_agency", "Professional Agency", "Created a comprehensive agency profile", 40,
        TriggerKind.BIO_LENGTH, threshold=300, role_scope=frozenset({Role.AGENCY}),
    ),
    Achievement(
        "experienced_worker", "Experienced Professional", "3+ years of work experience", 40,
        TriggerKind.EXPERIENCE_LEVEL, threshold=3, role_scope=_CANDIDATE_ONLY,
    ),
    Achievement(
        "document_pro", "Document Pro", "Uploaded all required documents", 75,
        TriggerKind.ALL_DOCUMENTS_UPLOADED,
    ),
    Achievement(
        "video_star", "Video Star", "Created a video CV", 75,
        TriggerKind.VIDEO_UPLOADED, role_scope=_CANDIDATE_ONLY,
    ),
    Achievement(
        "speedrunner", "Speedrunner", "Completed registration in under 10 minutes", 200,
        TriggerKind.FAST_COMPLETION, threshold=10,
    ),
    Achievement(
        "halfway_there", "Halfway There", "Reached 50% completion", 100,
        TriggerKind.PROGRESS_REACHED, threshold=50,
    ),
    Achievement(
        "fully_complete", "Fully Complete", "100% profile completion", 300,
        TriggerKind.FULL_COMPLETION,
    ),
)

_BY_ID: dict[str, Achievement] = {a.id: a for a in ACHIEVEMENTS}


def get_achievement(achievement_id: str) -> Achievement:
    """Look up a catalog entry. Raises KeyError for unknown ids."""
    return _BY_ID[achievement_id]


def achievements_for(role: Role | None) -> list[Achievement]:
    """Catalog entries that can ever fire for a role."""
    return [a for a in ACHIEVEMENTS if a.applies_to(role)]


# =============================================================================
# Levels
# =============================================================================

def level_of(points: int, points_per_level: int = POINTS_PER_LEVEL) -> int:
    """Level 1 at 0 points, one more level per ``points_per_level``."""
    return max(points, 0) // points_per_level + 1


def points_to_next_level(points: int, points_per_level: int = POINTS_PER_LEVEL) -> int:
    return points_per_level - (max(points, 0) % points_per_level)


def level_title(level: int) -> str:
    """Display title for a level; the last title covers every higher level."""
    if level < 1:
        raise ValueError(f"Levels start at 1, got {level}")
    return LEVEL_TITLES[min(level, len(LEVEL_TITLES)) - 1]


# =============================================================================
# Ledger Operations
# =============================================================================

def award(state: GamificationState, points: int) -> GamificationState:
    """Add points. Points never go down."""
    if points < 0:
        raise ValueError(f"Cannot award negative points: {points}")
    if points == 0:
        return state
    return state.with_points(state.points + points)


def try_award_achievement(
    state: GamificationState,
    achievement_id: str,
    now: datetime | None = None,
) -> tuple[GamificationState, bool]:
    """
    Award an achievement once.

    Returns (new_state, True) the first time, (state, False) afterwards.
    """
    if state.has(achievement_id):
        return state, False

    achievement = get_achievement(achievement_id)
    unlocked_at = (now or utc_now()).isoformat()
    new_state = replace(
        state,
        points=state.points + achievement.point_reward,
        achievements=state.achievements + (AwardedAchievement(achievement_id, unlocked_at),),
    )
    logger.info(f"Achievement unlocked: {achievement_id} (+{achievement.point_reward})")
    return new_state, True


def _matches(achievement: Achievement, event: TriggerEvent, role: Role | None) -> bool:
    if achievement.trigger is not event.kind:
        return False

    if event.kind is TriggerKind.COMPLETE_STEP:
        return achievement.step_id is None or achievement.step_id == event.step_id

    if event.kind in _AT_LEAST:
        return event.value is not None and event.value >= (achievement.threshold or 0)

    if event.kind is TriggerKind.FAST_COMPLETION:
        return event.value is not None and event.value <= (achievement.threshold or 0)

    if event.kind is TriggerKind.ALL_DOCUMENTS_UPLOADED:
        return role is not None and required_documents(role) <= event.documents

    return True


def evaluate_triggers(
    state: GamificationState,
    event: TriggerEvent,
    role: Role | None,
) -> list[Achievement]:
    """
    Achievements this event unlocks for the role.

    Already-awarded ids and entries scoped to other roles are excluded.
    """
    return [
        a for a in ACHIEVEMENTS
        if not state.has(a.id) and a.applies_to(role) and _matches(a, event, role)
    ]
