"""
Draft Persistence.

Saves a serialized copy of FlowState (never a live reference) with the time
it was written, and offers resume-or-discard on the next launch.

Stored format is a versioned JSON envelope:

    {"version": 1, "saved_at": "<iso8601>", "state": {...FlowState.to_dict()...}}

A record that fails to parse, carries an unknown version, or describes an
impossible state is treated exactly like no record at all.
"""

import json
import logging
import math
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Callable

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .catalog import Role
from .config import settings
from .state import FlowState, FlowStatus, utc_now
from .stores import DraftStore

logger = logging.getLogger(__name__)

DRAFT_VERSION = 1


class _DraftModel(BaseModel):
    model_config = ConfigDict(strict=True)


class DraftAccount(_DraftModel):
    email: str = ""
    password: str = ""
    phone: str = ""
    phone_verified: bool = False


class DraftAchievement(_DraftModel):
    id: str
    unlocked_at: str


class DraftGamification(_DraftModel):
    points: int = Field(default=0, ge=0)
    achievements: list[DraftAchievement] = Field(default_factory=list)


class DraftState(_DraftModel):
    """
    Shape of a stored FlowState.

    Checked before any field is read so a hand-edited or truncated draft
    fails here instead of deep inside FlowState.from_dict.
    """
    role: str | None = None
    status: str = FlowStatus.UNSTARTED.value
    current_step_index: int = 0
    form_data: dict[str, Any] = Field(default_factory=dict)
    consents: dict[str, bool] = Field(default_factory=dict)
    account: DraftAccount = Field(default_factory=DraftAccount)
    gamification: DraftGamification = Field(default_factory=DraftGamification)
    completed_steps: list[int] = Field(default_factory=list)
    started_at: datetime | None = None
    completed_at: datetime | None = None


class DraftEnvelope(BaseModel):
    """On-disk wrapper around a serialized FlowState."""
    version: int
    saved_at: datetime
    state: DraftState


@dataclass
class DraftRecord:
    state: FlowState
    saved_at: datetime


@dataclass
class DraftInfo:
    """Summary shown on the "resume where you left off?" prompt."""
    exists: bool
    role: Role | None = None
    saved_at: datetime | None = None
    days_remaining: int | None = None


def draft_key(device_id: str, prefix: str | None = None) -> str:
    """Storage key for one device or account."""
    return f"{prefix or settings.draft_key_prefix}:{device_id}"


def is_valid(record: DraftRecord, ttl: timedelta, now: datetime) -> bool:
    """A draft is resumable while ``now - saved_at <= ttl``."""
    return now - record.saved_at <= ttl


def encode_record(state: FlowState, saved_at: datetime) -> bytes:
    envelope = {
        "version": DRAFT_VERSION,
        "saved_at": saved_at.isoformat(),
        "state": state.to_dict(),
    }
    return json.dumps(envelope).encode("utf-8")


def decode_record(raw: bytes) -> DraftRecord:
    """Parse stored bytes. Raises ValueError on anything unusable."""
    try:
        envelope = DraftEnvelope.model_validate_json(raw)
    except ValidationError as e:
        raise ValueError(f"Malformed draft envelope: {e.error_count()} errors") from e

    if envelope.version != DRAFT_VERSION:
        raise ValueError(f"Unsupported draft version: {envelope.version}")

    saved_at = envelope.saved_at
    if saved_at.tzinfo is None:
        raise ValueError("Draft timestamp has no timezone")

    try:
        state = FlowState.from_dict(envelope.state.model_dump(mode="json"))
    except (AttributeError, KeyError, TypeError, ValueError) as e:
        raise ValueError(f"Malformed draft state: {e}") from e

    return DraftRecord(state=state, saved_at=saved_at)


class DraftPersistence:
    """
    Draft storage for one device/account key.

    Write failures are logged and swallowed: the flow keeps running in
    memory and the next transition tries again.
    """

    def __init__(
        self,
        store: DraftStore,
        key: str,
        ttl: timedelta | None = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.store = store
        self.key = key
        self.ttl = ttl if ttl is not None else settings.draft_ttl
        self.clock = clock

    def save(self, state: FlowState) -> bool:
        """Write ``{state, saved_at: now}``. Returns False if the write failed."""
        try:
            self.store.set(self.key, encode_record(state, self.clock()))
        except Exception as e:
            logger.warning(f"Failed to save onboarding draft {self.key}: {e}")
            return False
        logger.debug(f"Draft saved: {self.key} (step {state.current_step_index})")
        return True

    def load(self) -> DraftRecord | None:
        """Read the stored draft. Missing or corrupt drafts come back as None."""
        try:
            raw = self.store.get(self.key)
        except Exception as e:
            logger.warning(f"Failed to read onboarding draft {self.key}: {e}")
            return None

        if raw is None:
            return None

        try:
            return decode_record(raw)
        except ValueError as e:
            logger.warning(f"Ignoring unreadable draft {self.key}: {e}")
            return None

    def is_valid(
        self,
        record: DraftRecord,
        ttl: timedelta | None = None,
        now: datetime | None = None,
    ) -> bool:
        return is_valid(record, ttl if ttl is not None else self.ttl, now or self.clock())

    def discard(self) -> None:
        try:
            self.store.delete(self.key)
        except Exception as e:
            logger.warning(f"Failed to delete onboarding draft {self.key}: {e}")
            return
        logger.info(f"Draft discarded: {self.key}")

    def resume(self, now: datetime | None = None) -> DraftRecord | None:
        """
        The draft to resume, if any.

        Expired drafts are deleted so the prompt does not come back.
        """
        record = self.load()
        if record is None:
            return None
        if not self.is_valid(record, now=now):
            logger.info(f"Draft expired: {self.key} (saved {record.saved_at.isoformat()})")
            self.discard()
            return None
        return record

    def draft_info(self, now: datetime | None = None) -> DraftInfo:
        now = now or self.clock()
        record = self.resume(now=now)
        if record is None:
            return DraftInfo(exists=False)

        expires_at = record.saved_at + self.ttl
        days_remaining = math.ceil((expires_at - now) / timedelta(days=1))
        return DraftInfo(
            exists=True,
            role=record.state.role,
            saved_at=record.saved_at,
            days_remaining=days_remaining,
        )
