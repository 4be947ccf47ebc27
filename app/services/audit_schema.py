"""Validation of candidate audit events before they reach the store.

Only ``action_type`` and ``status`` are checked against closed sets.
``user_role`` is accepted as given and defaulted to ``"unknown"``; the
``evidence_audit_logs`` CHECK constraint is the only place roles are
enforced, and a rejection there surfaces as an ordinary store failure.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional

from app.models.audit_log import ActionStatus, ActionType, UNKNOWN_ROLE

INVALID_ACTION_TYPE = "invalid action type"
MISSING_USER_ID = "missing user id"
INVALID_STATUS = "invalid status"


@dataclass(frozen=True)
class ValidatedEvent:
    """A candidate event that passed validation, with defaults applied."""

    action_type: ActionType
    user_id: str
    status: ActionStatus
    user_role: str = UNKNOWN_ROLE
    evidence_id: Optional[str] = None
    case_id: Optional[str] = None
    details: Dict[str, Any] = field(default_factory=dict)
    ip_address: Optional[str] = None


@dataclass(frozen=True)
class ValidationResult:
    """Accept/reject decision for a candidate event."""

    event: Optional[ValidatedEvent] = None
    reason: Optional[str] = None

    @property
    def accepted(self) -> bool:
        return self.event is not None


def _coerce_enum(enum_cls, value):
    if value is None or value == "":
        return None
    try:
        return enum_cls(value)
    except ValueError:
        return None


def _optional_str(value: Any) -> Optional[str]:
    if value is None or value == "":
        return None
    return str(value)


def normalize_details(details: Any) -> Dict[str, Any]:
    """Return ``details`` as a dict, wrapping scalar values as ``{"message": value}``."""
    if details is None:
        return {}
    if isinstance(details, Mapping):
        return dict(details)
    return {"message": details}


def validate_event(candidate: Mapping[str, Any]) -> ValidationResult:
    """Accept or reject a candidate audit event.

    Checks run in a fixed order (action type, user id, status) and the
    first failure is reported.
    A whitespace-only user id counts as missing.
    """
    action_type = _coerce_enum(ActionType, candidate.get("action_type"))
    if action_type is None:
        return ValidationResult(reason=INVALID_ACTION_TYPE)

    user_id = candidate.get("user_id")
    if user_id is None or not str(user_id).strip():
        return ValidationResult(reason=MISSING_USER_ID)

    status = _coerce_enum(ActionStatus, candidate.get("status"))
    if status is None:
        return ValidationResult(reason=INVALID_STATUS)

    return ValidationResult(
        event=ValidatedEvent(
            action_type=action_type,
            user_id=str(user_id),
            status=status,
            user_role=_optional_str(candidate.get("user_role")) or UNKNOWN_ROLE,
            evidence_id=_optional_str(candidate.get("evidence_id")),
            case_id=_optional_str(candidate.get("case_id")),
            details=normalize_details(candidate.get("details")),
            ip_address=_optional_str(candidate.get("ip_address")),
        )
    )
