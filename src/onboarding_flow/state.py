"""
Onboarding Flow State.

The mutable root owned by a FlowController for one session, plus the
immutable gamification snapshot it carries. Everything here serializes to
plain JSON-compatible dicts so drafts can be stored anywhere.
"""

import copy
import json
from dataclasses import dataclass, field, asdict, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from .aggregator import CONSENT_FIELDS
from .catalog import Role, total_steps


class FlowStatus(Enum):
    """Lifecycle of a session."""
    UNSTARTED = "unstarted"      # No role yet, pointer pinned at 0
    IN_PROGRESS = "in_progress"  # Role chosen, walking the catalog
    COMPLETED = "completed"      # Final step passed and account created


def utc_now() -> datetime:
    """Get current UTC time."""
    return datetime.now(timezone.utc)


def _parse_iso(iso_str: str | None) -> datetime | None:
    """Parse ISO format string to an aware datetime."""
    if not iso_str:
        return None
    if iso_str.endswith("Z"):
        iso_str = iso_str[:-1] + "+00:00"
    parsed = datetime.fromisoformat(iso_str)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _format_iso(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


@dataclass
class AccountData:
    """Credentials staged until the remote account is created."""
    email: str = ""
    password: str = ""
    phone: str = ""
    phone_verified: bool = False


@dataclass(frozen=True)
class AwardedAchievement:
    id: str
    unlocked_at: str


@dataclass(frozen=True)
class GamificationState:
    """
    Points and awarded achievements.

    Immutable: every change goes through the gamification engine, which
    returns a new instance. The level is derived from points by
    ``gamification.level_of`` with the configured points per level.
    """
    points: int = 0
    achievements: tuple[AwardedAchievement, ...] = ()

    @property
    def achievement_ids(self) -> frozenset[str]:
        return frozenset(a.id for a in self.achievements)

    def has(self, achievement_id: str) -> bool:
        return any(a.id == achievement_id for a in self.achievements)

    def with_points(self, points: int) -> "GamificationState":
        return replace(self, points=points)

    def to_dict(self) -> dict:
        return {
            "points": self.points,
            "achievements": [asdict(a) for a in self.achievements],
        }

    @classmethod
    def from_dict(cls, data: dict) -> "GamificationState":
        points = int(data.get("points", 0))
        if points < 0:
            raise ValueError("Gamification points cannot be negative")
        return cls(
            points=points,
            achievements=tuple(
                AwardedAchievement(**a) for a in data.get("achievements", [])
            ),
        )


def _default_consents() -> dict[str, bool]:
    return {name: False for name in sorted(CONSENT_FIELDS)}


@dataclass
class FlowState:
    """
    Main onboarding session state.

    Invariant: ``current_step_index`` stays inside the role's catalog, and
    is 0 while no role is selected.
    """
    role: Role | None = None
    status: FlowStatus = FlowStatus.UNSTARTED
    current_step_index: int = 0

    form_data: dict[str, Any] = field(default_factory=dict)
    consents: dict[str, bool] = field(default_factory=_default_consents)
    account: AccountData = field(default_factory=AccountData)
    gamification: GamificationState = field(default_factory=GamificationState)

    # Indices the user has advanced past (allows jumping back to them)
    completed_steps: list[int] = field(default_factory=list)

    started_at: datetime | None = None
    completed_at: datetime | None = None

    def copy(self) -> "FlowState":
        return copy.deepcopy(self)

    def view(self) -> dict[str, Any]:
        """Flat view of every staged answer, as validation sees it."""
        data: dict[str, Any] = dict(self.form_data)
        data.update(self.consents)
        data.update(asdict(self.account))
        if self.role is not None:
            data["role"] = self.role.value
        return data

    def to_dict(self) -> dict:
        """Serialize state to dict for JSON storage."""
        return {
            "role": self.role.value if self.role else None,
            "status": self.status.value,
            "current_step_index": self.current_step_index,
            "form_data": copy.deepcopy(self.form_data),
            "consents": dict(self.consents),
            "account": asdict(self.account),
            "gamification": self.gamification.to_dict(),
            "completed_steps": list(self.completed_steps),
            "started_at": _format_iso(self.started_at),
            "completed_at": _format_iso(self.completed_at),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "FlowState":
        """Deserialize state from dict. Raises on malformed input."""
        role = Role(data["role"]) if data.get("role") else None
        index = int(data.get("current_step_index", 0))
        if index < 0 or index >= max(total_steps(role), 1):
            raise ValueError(f"Step index {index} outside the catalog for {role}")
        if role is None and index != 0:
            raise ValueError("Step index must be 0 before a role is selected")
        return cls(
            role=role,
            status=FlowStatus(data.get("status", FlowStatus.UNSTARTED.value)),
            current_step_index=index,
            form_data=dict(data.get("form_data", {})),
            consents={**_default_consents(), **data.get("consents", {})},
            account=AccountData(**data.get("account", {})),
            gamification=GamificationState.from_dict(data.get("gamification", {})),
            completed_steps=[int(i) for i in data.get("completed_steps", [])],
            started_at=_parse_iso(data.get("started_at")),
            completed_at=_parse_iso(data.get("completed_at")),
        )

    def to_json(self) -> str:
        """Serialize state to JSON string."""
        return json.dumps(self.to_dict())

    @classmethod
    def from_json(cls, json_str: str) -> "FlowState":
        """Deserialize state from JSON string."""
        return cls.from_dict(json.loads(json_str))
