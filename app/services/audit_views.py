"""Per-evidence and per-user views over the audit query engine."""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from app.services.audit_query import AuditLogFilters, AuditQueryEngine

EVIDENCE_ID_REQUIRED = "Evidence ID is required"
USER_ID_REQUIRED = "User ID is required"

DEFAULT_TRAIL_LIMIT = 500
DEFAULT_ACTIVITY_LIMIT = 50


@dataclass
class EvidenceTrail:
    trail: List[Dict[str, Any]] = field(default_factory=list)
    error: Optional[str] = None


@dataclass
class UserActivity:
    activity: List[Dict[str, Any]] = field(default_factory=list)
    error: Optional[str] = None


def _blank(value: Optional[str]) -> bool:
    return value is None or not str(value).strip()


class AuditTrailViews:
    def __init__(self, engine: AuditQueryEngine, trail_limit: int = DEFAULT_TRAIL_LIMIT):
        self.engine = engine
        self.trail_limit = trail_limit

    async def evidence_trail(self, evidence_id: Optional[str] = None) -> EvidenceTrail:
        """Full history of one evidence item, newest first (up to ``trail_limit`` entries)."""
        if _blank(evidence_id):
            return EvidenceTrail(error=EVIDENCE_ID_REQUIRED)

        result = await self.engine.query(
            AuditLogFilters(evidence_id=evidence_id, limit=self.trail_limit)
        )
        return EvidenceTrail(trail=result.events, error=result.error)

    async def user_activity(
        self,
        user_id: Optional[str] = None,
        limit: int = DEFAULT_ACTIVITY_LIMIT,
    ) -> UserActivity:
        if _blank(user_id):
            return UserActivity(error=USER_ID_REQUIRED)

        try:
            filters = AuditLogFilters(user_id=user_id, limit=limit)
        except ValueError as e:
            return UserActivity(error=f"Invalid limit: {e}")

        result = await self.engine.query(filters)
        return UserActivity(activity=result.events, error=result.error)
