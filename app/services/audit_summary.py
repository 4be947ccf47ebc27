"""Time-windowed counts over the audit trail."""

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Dict, Optional

from pydantic import BaseModel

from app.config.logger import app_logger
from app.db.store import AuditStore, StoreQuery
from app.models.audit_log import ActionStatus, ActionType
from app.services.audit_logger import utc_now
from app.utils.exceptions import StoreError

DEFAULT_WINDOW = "24h"

WINDOWS: Dict[str, timedelta] = {
    "1h": timedelta(hours=1),
    "24h": timedelta(hours=24),
    "7d": timedelta(days=7),
    "30d": timedelta(days=30),
}

# PostgREST caps rows per response, so the window is read in pages.
PAGE_SIZE = 1000


def window_duration(window: str) -> timedelta:
    """Duration for a window token; unknown tokens use the 24h policy."""
    duration = WINDOWS.get(window)
    if duration is None:
        app_logger.warning(f"[AuditLogger] Unknown summary window {window!r}; using {DEFAULT_WINDOW}")
        return WINDOWS[DEFAULT_WINDOW]
    return duration


class AuditSummary(BaseModel):
    time_range: str
    total_actions: int = 0
    by_action_type: Dict[str, int]
    by_status: Dict[str, int]


@dataclass
class SummaryResult:
    summary: Optional[AuditSummary] = None
    error: Optional[str] = None


def empty_summary(window: str) -> AuditSummary:
    """A summary with every action type and status present at zero."""
    return AuditSummary(
        time_range=window,
        total_actions=0,
        by_action_type={t.value: 0 for t in ActionType},
        by_status={s.value: 0 for s in ActionStatus},
    )


class AuditAggregator:
    """Counts audit events by action type and status over a recent window."""

    def __init__(
        self,
        store: AuditStore,
        table: str = "evidence_audit_logs",
        clock: Callable[[], datetime] = utc_now,
        page_size: int = PAGE_SIZE,
    ):
        self.store = store
        self.table = table
        self.clock = clock
        self.page_size = page_size

    async def summarize(self, window: str = DEFAULT_WINDOW) -> SummaryResult:
        """Tally events with ``timestamp >= now - window``.

        The caller's token is echoed back as ``time_range`` even when it was
        not recognized.
        """
        try:
            now = self.clock()
            start = now - window_duration(window)
            summary = empty_summary(window)

            # The window is pinned to [start, now] for the whole scan so rows
            # written meanwhile cannot shift later pages.
            offset = 0
            while True:
                page = await self.store.select(
                    self.table,
                    StoreQuery(
                        columns="action_type,status",
                        gte={"timestamp": start.isoformat()},
                        lte={"timestamp": now.isoformat()},
                        order_by="timestamp",
                        tiebreaker="id",
                        descending=True,
                        offset=offset,
                        limit=self.page_size,
                    ),
                )
                for row in page.rows:
                    summary.total_actions += 1
                    action_type = row.get("action_type")
                    if action_type in summary.by_action_type:
                        summary.by_action_type[action_type] += 1
                    status = row.get("status")
                    if status in summary.by_status:
                        summary.by_status[status] += 1

                if len(page.rows) < self.page_size:
                    break
                offset += self.page_size

            return SummaryResult(summary=summary)

        except StoreError as e:
            app_logger.error(f"[AuditLogger] Summary error: {e}")
            return SummaryResult(error=str(e))
        except Exception as e:
            app_logger.exception(f"[AuditLogger] Unexpected summary error: {e}")
            return SummaryResult(error=str(e))
