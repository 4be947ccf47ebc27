"""Models module."""

from app.models.audit_log import (
    ActionStatus,
    ActionType,
    AuditEvent,
    UserRole,
)

__all__ = [
    "ActionStatus",
    "ActionType",
    "AuditEvent",
    "UserRole",
]
