"""Audit log reporting endpoints (admin/auditor only)."""

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request

from app.config.logger import app_logger
from app.api.audit.schemas import (
    AuditLogListResponse,
    AuditSummaryResponse,
    EvidenceTrailResponse,
    Pagination,
    SummaryPayload,
    UserActivityResponse,
)
from app.models.audit_log import ActionStatus, ActionType
from app.services.audit_query import AuditLogFilters
from app.services.audit_summary import DEFAULT_WINDOW
from app.services.audit_views import DEFAULT_ACTIVITY_LIMIT, EVIDENCE_ID_REQUIRED, USER_ID_REQUIRED
from app.services.container import AuditServices
from app.utils.auth import RequireAuditReader
from app.utils.responses import ErrorResponse, error_response

router = APIRouter(
    prefix="/v1/audit-logs",
    tags=["audit-logs"],
    dependencies=[RequireAuditReader],
    responses={
        401: {"model": ErrorResponse, "description": "Unauthorized"},
        403: {"model": ErrorResponse, "description": "Forbidden - Admin/Auditor access required"},
        500: {"model": ErrorResponse, "description": "Server error"},
    },
)


def get_audit_services(request: Request) -> AuditServices:
    """Audit components built by the application lifespan."""
    return request.app.state.audit_services


@router.get(
    "",
    response_model=AuditLogListResponse,
    summary="Query audit logs with filters",
)
async def list_audit_logs(
    evidence_id: Optional[str] = Query(default=None, alias="evidenceId"),
    user_id: Optional[str] = Query(default=None, alias="userId"),
    action_type: Optional[ActionType] = Query(default=None, alias="actionType"),
    status: Optional[ActionStatus] = Query(default=None),
    case_id: Optional[str] = Query(default=None, alias="caseId"),
    start_date: Optional[datetime] = Query(default=None, alias="startDate"),
    end_date: Optional[datetime] = Query(default=None, alias="endDate"),
    limit: int = Query(default=100, ge=1, le=1000),
    offset: int = Query(default=0, ge=0),
    services: AuditServices = Depends(get_audit_services),
):
    """Return audit rows matching every supplied filter, newest first."""
    try:
        result = await services.engine.query(
            AuditLogFilters(
                evidence_id=evidence_id,
                user_id=user_id,
                action_type=action_type,
                status=status,
                case_id=case_id,
                start_date=start_date,
                end_date=end_date,
                limit=limit,
                offset=offset,
            )
        )

        if result.error:
            return error_response(result.error)

        return AuditLogListResponse(
            logs=result.events,
            count=result.total_count,
            pagination=Pagination(limit=limit, offset=offset),
        )
    except Exception as e:
        app_logger.error(f"Get audit logs error: {e}")
        return error_response("Failed to retrieve audit logs")


@router.get(
    "/summary",
    response_model=AuditSummaryResponse,
    summary="Get audit log summary statistics",
)
async def audit_summary(
    time_range: str = Query(default=DEFAULT_WINDOW, alias="timeRange", description="1h, 24h, 7d or 30d"),
    services: AuditServices = Depends(get_audit_services),
):
    """Counts by action type and status over a recent window."""
    try:
        result = await services.aggregator.summarize(time_range)

        if result.error:
            return error_response(result.error)

        return AuditSummaryResponse(summary=SummaryPayload(**result.summary.model_dump()))
    except Exception as e:
        app_logger.error(f"Get audit summary error: {e}")
        return error_response("Failed to retrieve audit summary")


@router.get(
    "/evidence/{evidence_id}",
    response_model=EvidenceTrailResponse,
    summary="Get complete audit trail for an evidence item",
    responses={400: {"model": ErrorResponse, "description": "Evidence ID required"}},
)
async def evidence_trail(
    evidence_id: str,
    services: AuditServices = Depends(get_audit_services),
):
    try:
        if not evidence_id.strip():
            return error_response(EVIDENCE_ID_REQUIRED, status_code=400)

        result = await services.views.evidence_trail(evidence_id)

        if result.error:
            return error_response(result.error)

        return EvidenceTrailResponse(
            evidence_id=evidence_id,
            trail=result.trail,
            count=len(result.trail),
        )
    except Exception as e:
        app_logger.error(f"Get evidence trail error: {e}")
        return error_response("Failed to retrieve evidence trail")


@router.get(
    "/user/{user_id}",
    response_model=UserActivityResponse,
    summary="Get activity log for a user",
    responses={400: {"model": ErrorResponse, "description": "User ID required"}},
)
async def user_activity(
    user_id: str,
    limit: int = Query(default=DEFAULT_ACTIVITY_LIMIT, ge=1, le=1000),
    services: AuditServices = Depends(get_audit_services),
):
    try:
        if not user_id.strip():
            return error_response(USER_ID_REQUIRED, status_code=400)

        result = await services.views.user_activity(user_id, limit)

        if result.error:
            return error_response(result.error)

        return UserActivityResponse(
            user_id=user_id,
            activity=result.activity,
            count=len(result.activity),
        )
    except Exception as e:
        app_logger.error(f"Get user activity error: {e}")
        return error_response("Failed to retrieve user activity")
