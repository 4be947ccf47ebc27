"""Response schemas for the audit log reporting endpoints."""

from typing import Any, Dict, List

from pydantic import Field

from app.utils.responses import CamelModel

AuditLogRow = Dict[str, Any]


class Pagination(CamelModel):
    limit: int
    offset: int


class AuditLogListResponse(CamelModel):
    """Response schema for GET /v1/audit-logs."""

    success: bool = True
    logs: List[AuditLogRow] = Field(default_factory=list, description="Matching audit rows, newest first.")
    count: int = Field(..., ge=0, description="Total matching rows, ignoring pagination.")
    pagination: Pagination

    model_config = {
        "json_schema_extra": {
            "example": {
                "success": True,
                "logs": [
                    {
                        "id": "4f1c2a0e-8d7b-4b8e-9a51-0c2f5e1d7a33",
                        "timestamp": "2026-01-15T09:30:00+00:00",
                        "action_type": "VERIFY",
                        "evidence_id": "EVD-1042",
                        "case_id": "CASE-77",
                        "user_id": "0x9f2c41aa",
                        "user_role": "investigator",
                        "status": "SUCCESS",
                        "details": {"method": "POST", "statusCode": 200},
                        "ip_address": "203.0.113.7",
                    }
                ],
                "count": 1,
                "pagination": {"limit": 100, "offset": 0},
            }
        }
    }


class SummaryPayload(CamelModel):
    time_range: str
    total_actions: int
    by_action_type: Dict[str, int]
    by_status: Dict[str, int]


class AuditSummaryResponse(CamelModel):
    """Response schema for GET /v1/audit-logs/summary."""

    success: bool = True
    summary: SummaryPayload


class EvidenceTrailResponse(CamelModel):
    """Response schema for GET /v1/audit-logs/evidence/{evidenceId}."""

    success: bool = True
    evidence_id: str
    trail: List[AuditLogRow] = Field(default_factory=list)
    count: int


class UserActivityResponse(CamelModel):
    """Response schema for GET /v1/audit-logs/user/{userId}."""

    success: bool = True
    user_id: str
    activity: List[AuditLogRow] = Field(default_factory=list)
    count: int
