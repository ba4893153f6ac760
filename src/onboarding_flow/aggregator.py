"""
Form Data Aggregator.

Accumulates answers across steps. Merging is shallow and never drops a key:
going back a step keeps everything the user already typed.

Values are normalized to JSON shapes on the way in (sets and tuples become
lists) so staged answers always survive a draft save and load unchanged.
"""

from typing import Any, Mapping, NamedTuple

ACCOUNT_FIELDS = frozenset({"email", "password", "phone", "phone_verified"})

CONSENT_FIELDS = frozenset({
    "terms_accepted",
    "privacy_accepted",
    "background_check_consent",
    "communication_consent",
    "profile_sharing_accepted",
    "notifications_enabled",
})

# Checked against the submission that carries them, never stored
TRANSIENT_FIELDS = frozenset({"confirm_password"})

_TRUE_STRINGS = frozenset({"true", "1", "yes", "on"})


class PartitionedInput(NamedTuple):
    """Pending input split by the area of flow state it belongs to."""
    account: dict[str, Any]
    consents: dict[str, bool]
    form: dict[str, Any]
    transient: dict[str, Any]


def normalize(value: Any) -> Any:
    """JSON-compatible copy of a submitted value."""
    if isinstance(value, Mapping):
        return {str(k): normalize(v) for k, v in value.items()}
    if isinstance(value, (set, frozenset)):
        return sorted((normalize(v) for v in value), key=str)
    if isinstance(value, (list, tuple)):
        return [normalize(v) for v in value]
    return value


def as_consent(value: Any) -> bool:
    """
    Read a consent checkbox.

    Only an explicit yes counts: ``"false"``, ``"no"`` or anything
    unrecognized stays unaccepted.
    """
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.strip().lower() in _TRUE_STRINGS
    if isinstance(value, int):
        return value == 1
    return False


def merge(form_data: Mapping[str, Any], pending: Mapping[str, Any] | None) -> dict[str, Any]:
    """Return a new dict: ``form_data`` overlaid with ``pending``."""
    merged = dict(form_data)
    if pending:
        merged.update({key: normalize(value) for key, value in pending.items()})
    return merged


def partition(pending: Mapping[str, Any] | None) -> PartitionedInput:
    """Route each pending key to account staging, consents, form data or transient checks."""
    account: dict[str, Any] = {}
    consents: dict[str, bool] = {}
    form: dict[str, Any] = {}
    transient: dict[str, Any] = {}

    for key, value in (pending or {}).items():
        if key in ACCOUNT_FIELDS:
            account[key] = value
        elif key in CONSENT_FIELDS:
            consents[key] = as_consent(value)
        elif key in TRANSIENT_FIELDS:
            transient[key] = value
        else:
            form[key] = normalize(value)

    return PartitionedInput(account=account, consents=consents, form=form, transient=transient)
