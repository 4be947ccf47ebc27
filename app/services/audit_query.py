"""Filtered, paginated reads over the audit trail."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from app.config.logger import app_logger
from app.db.store import AuditStore, StoreQuery
from app.models.audit_log import ActionStatus, ActionType
from app.utils.exceptions import StoreError

DEFAULT_QUERY_LIMIT = 100


class AuditLogFilters(BaseModel):
    """Optional filters, combined with AND. Date bounds are inclusive."""

    evidence_id: Optional[str] = None
    user_id: Optional[str] = None
    action_type: Optional[ActionType] = None
    status: Optional[ActionStatus] = None
    case_id: Optional[str] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    limit: int = Field(default=DEFAULT_QUERY_LIMIT, ge=1)
    offset: int = Field(default=0, ge=0)


@dataclass
class QueryResult:
    events: List[Dict[str, Any]] = field(default_factory=list)
    total_count: int = 0
    error: Optional[str] = None


def _iso(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat()


def compose_query(filters: AuditLogFilters) -> StoreQuery:
    """Compile filters into a single store query ordered newest first."""
    query = StoreQuery(
        columns="*",
        order_by="timestamp",
        descending=True,
        offset=filters.offset,
        limit=filters.limit,
        count=True,
    )

    if filters.evidence_id:
        query.equals["evidence_id"] = filters.evidence_id
    if filters.user_id:
        query.equals["user_id"] = filters.user_id
    if filters.action_type:
        query.equals["action_type"] = filters.action_type.value
    if filters.status:
        query.equals["status"] = filters.status.value
    if filters.case_id:
        query.equals["case_id"] = filters.case_id
    if filters.start_date:
        query.gte["timestamp"] = _iso(filters.start_date)
    if filters.end_date:
        query.lte["timestamp"] = _iso(filters.end_date)

    return query


class AuditQueryEngine:
    """Runs filtered queries against the audit table. Never raises."""

    def __init__(self, store: AuditStore, table: str = "evidence_audit_logs"):
        self.store = store
        self.table = table

    async def query(self, filters: Optional[AuditLogFilters] = None) -> QueryResult:
        """Return matching events (newest first) and the total match count.

        ``total_count`` ignores limit/offset so callers can paginate.
        """
        try:
            filters = filters or AuditLogFilters()
            result = await self.store.select(self.table, compose_query(filters))
            return QueryResult(
                events=result.rows,
                total_count=result.count or 0,
                error=None,
            )
        except StoreError as e:
            app_logger.error(f"[AuditLogger] Query error: {e}")
            return QueryResult(error=str(e))
        except Exception as e:
            app_logger.exception(f"[AuditLogger] Unexpected query error: {e}")
            return QueryResult(error=str(e))
