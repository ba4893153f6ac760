"""
External Ports.

Narrow interfaces to the collaborators the engine does not own:

- AccountCreator: remote account creation, called once at the final step
- Notifier: fire-and-forget cosmetic events (sounds, confetti, toasts)

Implementations live with the host application. The defaults here are
for tests and headless use.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Any

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AccountResult:
    """Outcome of a remote account creation call."""
    success: bool
    error: str | None = None


class AccountCreator(ABC):
    """Creates the remote account once the wizard is finished."""

    @abstractmethod
    def create_account(self, email: str, password: str, profile: dict[str, Any]) -> AccountResult:
        """
        Create the account.

        Must not raise for expected failures (taken email, weak password);
        return ``AccountResult(success=False, error=...)`` instead.
        """


class AcceptingAccountCreator(AccountCreator):
    """Accepts every request. Used when account creation happens elsewhere."""

    def create_account(self, email: str, password: str, profile: dict[str, Any]) -> AccountResult:
        logger.debug(f"Account creation accepted for {email or '<no email>'}")
        return AccountResult(success=True)


class NotificationKind(Enum):
    POINTS_AWARDED = "points_awarded"
    ACHIEVEMENT_UNLOCKED = "achievement_unlocked"
    LEVEL_UP = "level_up"
    STEP_COMPLETED = "step_completed"
    FLOW_COMPLETED = "flow_completed"


class Notifier(ABC):
    """Receives cosmetic events. Failures here never affect the flow."""

    @abstractmethod
    def notify(self, kind: NotificationKind, payload: dict[str, Any] | None = None) -> None:
        ...


class NullNotifier(Notifier):
    def notify(self, kind: NotificationKind, payload: dict[str, Any] | None = None) -> None:
        return None
