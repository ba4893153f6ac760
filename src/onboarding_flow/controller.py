"""
Flow Controller.

Owns the FlowState for one onboarding session and drives it through

    UNSTARTED --select_role--> IN_PROGRESS --advance on final step--> COMPLETED

Each transition is computed on a copy of the state and committed in one
assignment, so points, achievements and the step pointer always move
together. The draft is written after the commit; a failed write is logged
and retried on the next transition.

Validation failures come back as data on TransitionResult. Calling a
transition from the wrong state raises IllegalTransitionError: that is a
bug in the caller, not bad user input.
"""

import logging
import math
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Any, Callable, Mapping

from . import gamification as gm
from .aggregator import PartitionedInput, as_consent, merge, partition
from .catalog import (
    DOCUMENT_FIELDS,
    SHARED_PREFIX,
    Phase,
    Role,
    StepDescriptor,
    parse_role,
    profile_block_range,
    steps_for,
)
from .config import settings
from .persistence import DraftPersistence, DraftRecord
from .ports import AcceptingAccountCreator, AccountCreator, NotificationKind, Notifier, NullNotifier
from .profile import build_profile, experience_years
from .state import FlowState, FlowStatus, GamificationState, utc_now
from .validation import is_blank, validate

logger = logging.getLogger(__name__)


class OnboardingError(Exception):
    """Base class for onboarding engine errors."""


class IllegalTransitionError(OnboardingError):
    """A transition was requested from a state that does not allow it."""


@dataclass
class TransitionResult:
    """Outcome of select_role / advance / retreat / skip / go_to_step."""
    ok: bool
    errors: dict[str, str] = field(default_factory=dict)
    account_error: str | None = None
    points_gained: int = 0
    achievements: list[gm.Achievement] = field(default_factory=list)
    leveled_up: bool = False
    completed: bool = False
    persisted: bool = True


# =============================================================================
# Step Events
# =============================================================================
# Events raised when a specific step is completed, computed from the staged
# answers after the step's input was merged.

def _skills_event(view: Mapping[str, Any]) -> list[gm.TriggerEvent]:
    skills = view.get("skills") or []
    return [gm.skills_selected(len(set(skills)))]


def _text_length_event(field_name: str) -> Callable[[Mapping[str, Any]], list[gm.TriggerEvent]]:
    def build(view: Mapping[str, Any]) -> list[gm.TriggerEvent]:
        text = view.get(field_name) or ""
        return [gm.bio_length(len(str(text).strip()))]
    return build


def _experience_event(view: Mapping[str, Any]) -> list[gm.TriggerEvent]:
    return [gm.experience_level(experience_years(view.get("experience_level")))]


def _video_event(view: Mapping[str, Any]) -> list[gm.TriggerEvent]:
    if is_blank(view.get("video_cv")):
        return []
    return [gm.video_uploaded()]


def _phone_event(view: Mapping[str, Any]) -> list[gm.TriggerEvent]:
    return [gm.phone_verified()] if view.get("phone_verified") else []


STEP_EVENTS: dict[str, Callable[[Mapping[str, Any]], list[gm.TriggerEvent]]] = {
    "phone_verify": _phone_event,
    "candidate_skills": _skills_event,
    "candidate_experience": _experience_event,
    "candidate_about": _text_length_event("about_me"),
    "candidate_media": _video_event,
    "agency_about": _text_length_event("about_agency"),
}


def _uploaded_documents(view: Mapping[str, Any]) -> set[str]:
    return {name for name in DOCUMENT_FIELDS if not is_blank(view.get(name))}


# =============================================================================
# Controller
# =============================================================================

class FlowController:
    """
    One onboarding session.

    Construct one per session (app root scope) and call ``dispose()`` when
    the session ends. Transitions must be serialized by the caller.
    """

    def __init__(
        self,
        persistence: DraftPersistence | None = None,
        account_creator: AccountCreator | None = None,
        notifier: Notifier | None = None,
        clock: Callable[[], datetime] = utc_now,
        role_selection_points: int | None = None,
        points_per_level: int | None = None,
    ):
        self.persistence = persistence
        self.account_creator = account_creator or AcceptingAccountCreator()
        self.notifier = notifier or NullNotifier()
        self.clock = clock
        self.role_selection_points = (
            settings.role_selection_points if role_selection_points is None else role_selection_points
        )
        self.points_per_level = (
            settings.points_per_level if points_per_level is None else points_per_level
        )
        self._state = FlowState()
        self._disposed = False

    # -------------------------------------------------------------------------
    # Read access
    # -------------------------------------------------------------------------

    def snapshot(self) -> FlowState:
        """Independent copy of the current state."""
        return self._state.copy()

    @property
    def role(self) -> Role | None:
        return self._state.role

    @property
    def status(self) -> FlowStatus:
        return self._state.status

    @property
    def current_step_index(self) -> int:
        return self._state.current_step_index

    @property
    def steps(self) -> tuple[StepDescriptor, ...]:
        return steps_for(self._state.role)

    @property
    def current_step(self) -> StepDescriptor:
        return self.steps[self._state.current_step_index]

    @property
    def form_data(self) -> dict[str, Any]:
        return dict(self._state.form_data)

    @property
    def gamification(self) -> GamificationState:
        return self._state.gamification

    @property
    def points(self) -> int:
        return self._state.gamification.points

    @property
    def level(self) -> int:
        return gm.level_of(self.points, self.points_per_level)

    def progress(self) -> int:
        """
        Whole-number percent through the catalog.

        ``floor(index / len(steps) * 100)``: 0 on the first step, below 100
        on the last one, and exactly 100 once the flow is completed.
        """
        if self._state.status is FlowStatus.COMPLETED:
            return 100
        if self._state.status is FlowStatus.UNSTARTED:
            return 0
        return self._progress_of(self._state)

    @staticmethod
    def _progress_of(state: FlowState) -> int:
        total = len(steps_for(state.role))
        return math.floor(state.current_step_index * 100 / total)

    def can_change_role(self) -> bool:
        if self._state.status is FlowStatus.UNSTARTED:
            return True
        return (
            self._state.status is FlowStatus.IN_PROGRESS
            and self._state.current_step_index < len(SHARED_PREFIX)
        )

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def hydrate(self, source: DraftRecord | FlowState) -> None:
        """
        Adopt a saved snapshot wholesale.

        Raises ValueError if the snapshot breaks a state invariant; the
        current state is left untouched in that case.
        """
        self._ensure_alive()
        state = source.state if isinstance(source, DraftRecord) else source
        self._check_invariants(state)
        self._state = state.copy()
        logger.info(
            f"Hydrated session: role={state.role.value if state.role else None} "
            f"step={state.current_step_index}"
        )

    def resume(self, now: datetime | None = None) -> bool:
        """
        Resume the stored draft if one is valid, else start clean.

        Returns True when a draft was adopted.
        """
        self._ensure_alive()
        if self.persistence is None:
            self.reset()
            return False

        record = self.persistence.resume(now=now)
        if record is not None:
            try:
                self.hydrate(record)
                return True
            except ValueError as e:
                logger.warning(f"Discarding draft that cannot be resumed: {e}")
                self.persistence.discard()

        self.reset()
        return False

    def reset(self) -> None:
        """Back to UNSTARTED. Does not touch the stored draft."""
        self._ensure_alive()
        self._state = FlowState()

    def start_fresh(self) -> None:
        """Reset and delete the stored draft."""
        self.reset()
        if self.persistence is not None:
            self.persistence.discard()

    def dispose(self) -> None:
        """End the session. Any later call raises IllegalTransitionError."""
        self._disposed = True

    # -------------------------------------------------------------------------
    # Staging without moving
    # -------------------------------------------------------------------------

    def update_form(self, data: Mapping[str, Any]) -> None:
        """Stage answers for the current step without validating or moving."""
        self._require_in_progress("update_form")
        new = self._staged(self._state, partition(data))
        self._commit(new)
        self._persist()

    def update_account(self, **fields: Any) -> None:
        self.update_form(fields)

    def update_consent(self, consent_id: str, value: bool) -> None:
        self._require_in_progress("update_consent")
        if consent_id not in self._state.consents:
            raise KeyError(f"Unknown consent: {consent_id}")
        new = self._state.copy()
        new.consents[consent_id] = as_consent(value)
        self._commit(new)
        self._persist()

    # -------------------------------------------------------------------------
    # Transitions
    # -------------------------------------------------------------------------

    def select_role(self, role: Role | str) -> TransitionResult:
        """
        Choose the account type.

        Allowed before the flow starts and while the user is still inside
        the shared prefix. The first selection awards the role-selection
        points and starts the completion clock.
        """
        self._ensure_alive()
        role = parse_role(role)
        if role is None:
            raise IllegalTransitionError("select_role requires a role")
        if not self.can_change_role():
            raise IllegalTransitionError(
                f"Role cannot change in state {self._state.status.value} "
                f"at step {self._state.current_step_index}"
            )

        new = self._state.copy()
        first_selection = new.role is None
        new.role = role
        new.status = FlowStatus.IN_PROGRESS

        gained = 0
        if first_selection:
            new.started_at = self.clock()
            new.gamification = gm.award(new.gamification, self.role_selection_points)
            gained = self.role_selection_points

        result = self._finish_transition(new, gained, [])
        logger.info(f"Role selected: {role.value} (first={first_selection})")
        return result

    def advance(self, pending: Mapping[str, Any] | None = None) -> TransitionResult:
        """
        Validate the current step and move forward.

        Validation sees everything already staged overlaid with ``pending``.
        Transient fields such as ``confirm_password`` are checked here and
        then dropped, so they never reach the draft.
        On failure nothing changes. Advancing the final step creates the
        remote account and completes the flow.
        """
        self._require_in_progress("advance")
        step = self.current_step

        parts = partition(pending)
        staged = self._staged(self._state, parts)
        errors = validate(step, {**staged.view(), **parts.transient})
        if errors:
            logger.info(f"Validation failed on {step.id}: {sorted(errors)}")
            return TransitionResult(ok=False, errors=errors)

        return self._move_forward(staged, step, reward_step=True)

    def skip(self) -> TransitionResult:
        """
        Move past a skippable step without validating or merging.

        Skipping earns no step points but still counts toward progress.
        """
        self._require_in_progress("skip")
        step = self.current_step
        if not step.skippable:
            raise IllegalTransitionError(f"Step {step.id} cannot be skipped")

        return self._move_forward(self._state.copy(), step, reward_step=False)

    def retreat(self, pending: Mapping[str, Any] | None = None) -> TransitionResult:
        """Keep whatever was entered and go back one step (never below 0)."""
        self._require_in_progress("retreat")
        new = self._staged(self._state, partition(pending))
        new.current_step_index = max(0, new.current_step_index - 1)
        logger.info(f"Retreated to step {new.current_step_index}")
        return self._finish_transition(new, 0, [])

    def go_to_step(self, index: int) -> TransitionResult:
        """Jump back to an earlier step, or forward up to the furthest one reached."""
        self._require_in_progress("go_to_step")
        if not 0 <= index < len(self.steps):
            raise IllegalTransitionError(f"Step index {index} outside the catalog")
        furthest = max(self._state.completed_steps, default=-1) + 1
        if index > max(self._state.current_step_index, furthest):
            raise IllegalTransitionError(f"Step {index} has not been reached yet")

        new = self._state.copy()
        new.current_step_index = index
        return self._finish_transition(new, 0, [])

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    def _move_forward(self, new: FlowState, step: StepDescriptor, reward_step: bool) -> TransitionResult:
        index = new.current_step_index
        is_final = index == len(steps_for(new.role)) - 1

        if is_final:
            outcome = self.account_creator.create_account(
                new.account.email, new.account.password, build_profile(new)
            )
            if not outcome.success:
                # Keep the merged answers so the user can retry as-is
                logger.warning(f"Account creation failed: {outcome.error}")
                self._commit(new)
                persisted = self._persist()
                return TransitionResult(
                    ok=False, account_error=outcome.error or "Account creation failed",
                    persisted=persisted,
                )

        # Step points are paid once per step, not on every revisit
        first_visit = index not in new.completed_steps
        gained = 0
        if reward_step and first_visit and step.point_reward:
            new.gamification = gm.award(new.gamification, step.point_reward)
            gained += step.point_reward

        events: list[gm.TriggerEvent] = []
        if reward_step:
            events.extend(self._step_events(new, step))

        if first_visit:
            new.completed_steps.append(index)

        if is_final:
            now = self.clock()
            new.status = FlowStatus.COMPLETED
            new.completed_at = now
            events.append(gm.progress(100))
            events.append(gm.full_completion())
            if new.started_at is not None:
                minutes = int((now - new.started_at).total_seconds() // 60)
                events.append(gm.elapsed_minutes(minutes))
        else:
            new.current_step_index = index + 1
            events.append(gm.progress(self._progress_of(new)))

        logger.info(
            f"{'Completed' if reward_step else 'Skipped'} step {step.id} "
            f"-> {'done' if is_final else new.current_step_index}"
        )
        result = self._finish_transition(new, gained, events)
        if reward_step:
            self._notify(NotificationKind.STEP_COMPLETED, {"step_id": step.id})
        return result

    def _step_events(self, state: FlowState, step: StepDescriptor) -> list[gm.TriggerEvent]:
        view = state.view()
        events = [gm.complete_step(step.id)]

        if step.phase is Phase.PROFILE:
            block = profile_block_range(state.role)
            if state.current_step_index == block.start:
                events.append(gm.start_profile())
            if step.id.endswith("_biometric_doc"):
                events.append(gm.biometric_complete())
            events.append(gm.documents_uploaded(_uploaded_documents(view)))

        builder = STEP_EVENTS.get(step.id)
        if builder is not None:
            events.extend(builder(view))
        return events

    def _finish_transition(
        self,
        new: FlowState,
        gained: int,
        events: list[gm.TriggerEvent],
    ) -> TransitionResult:
        """Apply achievements, commit, then persist and notify."""
        old_level = self.level
        unlocked: list[gm.Achievement] = []
        now = self.clock()

        for event in events:
            for achievement in gm.evaluate_triggers(new.gamification, event, new.role):
                new.gamification, awarded = gm.try_award_achievement(
                    new.gamification, achievement.id, now
                )
                if awarded:
                    unlocked.append(achievement)
                    gained += achievement.point_reward

        self._commit(new)

        if new.status is FlowStatus.COMPLETED:
            persisted = True
            if self.persistence is not None:
                self.persistence.discard()
        else:
            persisted = self._persist()

        leveled_up = self.level > old_level
        self._notify_awards(gained, unlocked, leveled_up)
        if new.status is FlowStatus.COMPLETED:
            self._notify(NotificationKind.FLOW_COMPLETED, {"points": new.gamification.points})

        return TransitionResult(
            ok=True,
            points_gained=gained,
            achievements=unlocked,
            leveled_up=leveled_up,
            completed=new.status is FlowStatus.COMPLETED,
            persisted=persisted,
        )

    @staticmethod
    def _staged(state: FlowState, parts: PartitionedInput) -> FlowState:
        """Copy of state with partitioned input routed into its areas."""
        new = state.copy()
        new.form_data = merge(new.form_data, parts.form)
        new.consents = merge(new.consents, parts.consents)
        if parts.account:
            new.account = replace(new.account, **parts.account)
        return new

    def _commit(self, new: FlowState) -> None:
        self._check_invariants(new)
        self._state = new

    def _persist(self) -> bool:
        if self.persistence is None:
            return True
        return self.persistence.save(self._state)

    def _notify_awards(self, gained: int, unlocked: list[gm.Achievement], leveled_up: bool) -> None:
        if gained:
            self._notify(NotificationKind.POINTS_AWARDED, {"points": gained})
        for achievement in unlocked:
            self._notify(NotificationKind.ACHIEVEMENT_UNLOCKED, {
                "id": achievement.id,
                "name": achievement.name,
                "points": achievement.point_reward,
            })
        if leveled_up:
            self._notify(NotificationKind.LEVEL_UP, {"level": self.level})

    def _notify(self, kind: NotificationKind, payload: dict[str, Any]) -> None:
        try:
            self.notifier.notify(kind, payload)
        except Exception as e:
            # Cosmetic only; never let a sound or animation break the flow
            logger.warning(f"Notifier failed for {kind.value}: {e}")

    def _ensure_alive(self) -> None:
        if self._disposed:
            raise IllegalTransitionError("FlowController has been disposed")

    def _require_in_progress(self, operation: str) -> None:
        self._ensure_alive()
        if self._state.status is not FlowStatus.IN_PROGRESS:
            raise IllegalTransitionError(
                f"{operation} is not allowed in state {self._state.status.value}"
            )

    @staticmethod
    def _check_invariants(state: FlowState) -> None:
        total = len(steps_for(state.role))
        if state.role is None:
            if state.current_step_index != 0 or state.status is not FlowStatus.UNSTARTED:
                raise ValueError("A session without a role must be unstarted at step 0")
        elif not 0 <= state.current_step_index < total:
            raise ValueError(
                f"Step index {state.current_step_index} outside {state.role.value} catalog"
            )
        elif state.status is FlowStatus.UNSTARTED:
            raise ValueError("A session with a role cannot be unstarted")
