"""
Onboarding Flow - gamified registration wizard engine.

Roles:
- Candidate: job seekers building a work profile
- Sponsor: households hiring directly
- Agency: recruitment agencies

The engine walks a user through a role-specific step catalog, validates
each step, awards points and achievements, and keeps a resumable draft.
"""

__version__ = "1.0.0"

__all__ = [
    "FlowController",
    "IllegalTransitionError",
    "OnboardingError",
    "Role",
    "TransitionResult",
    "__version__",
]

from .catalog import Role
from .controller import FlowController, IllegalTransitionError, OnboardingError, TransitionResult
