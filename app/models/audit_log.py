"""Evidence audit log record (WORM - Write Once Read Many)."""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field

UNKNOWN_ROLE = "unknown"
UNKNOWN_IP = "unknown"


class ActionType(str, Enum):
    """Actions that can be recorded against an evidence item."""

    CREATE = "CREATE"
    VERIFY = "VERIFY"
    ACCESS = "ACCESS"
    DOWNLOAD = "DOWNLOAD"
    DELETE = "DELETE"
    MODIFY = "MODIFY"
    TRANSFER = "TRANSFER"
    CHAIN_OF_CUSTODY = "CHAIN_OF_CUSTODY"


class ActionStatus(str, Enum):
    """Outcome of a recorded action."""

    SUCCESS = "SUCCESS"
    FAILURE = "FAILURE"
    PENDING = "PENDING"


class UserRole(str, Enum):
    """Roles known to the evidence system.

    Audit writes do not check ``user_role`` against this set; see
    ``app.services.audit_schema``.
    """

    ADMIN = "admin"
    USER = "user"
    INVESTIGATOR = "investigator"
    FORENSIC_ANALYST = "forensic_analyst"
    LEGAL_PROFESSIONAL = "legal_professional"
    COURT_OFFICIAL = "court_official"
    EVIDENCE_MANAGER = "evidence_manager"
    AUDITOR = "auditor"
    PUBLIC_VIEWER = "public_viewer"


class AuditEvent(BaseModel):
    """Immutable audit trail entry as stored in ``evidence_audit_logs``.

    Append-only: the table denies UPDATE and DELETE through row level
    security, and no store adapter in this codebase exposes either.
    """

    model_config = ConfigDict(frozen=True, use_enum_values=True, extra="ignore")

    id: Optional[str] = None
    timestamp: datetime
    action_type: ActionType
    evidence_id: Optional[str] = None
    case_id: Optional[str] = None
    user_id: str = Field(min_length=1)
    user_role: str = UNKNOWN_ROLE
    status: ActionStatus
    details: Dict[str, Any] = Field(default_factory=dict)
    ip_address: Optional[str] = None
