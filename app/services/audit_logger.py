"""Centralized audit log writer.

Writes are best-effort: a logging problem must never block or fail the
operation being audited. ``write`` therefore never raises; rejected or
unpersistable entries are reported through loguru instead, and entries the
store refused are emitted in full on the ``AUDIT FALLBACK`` channel so they
can be replayed by hand.
"""

import asyncio
import json
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Mapping, Optional, Set

from app.config.logger import AUDIT_FALLBACK_MARKER, app_logger
from app.db.store import AuditStore
from app.models.audit_log import AuditEvent
from app.services.audit_schema import ValidatedEvent, validate_event
from app.utils.exceptions import StoreError


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def build_record(event: ValidatedEvent, timestamp: datetime) -> Dict[str, Any]:
    """Row to insert for a validated event, stamped with ``timestamp``."""
    return {
        "action_type": event.action_type.value,
        "evidence_id": event.evidence_id,
        "user_id": event.user_id,
        "user_role": event.user_role,
        "status": event.status.value,
        "details": event.details,
        "ip_address": event.ip_address,
        "case_id": event.case_id,
        "timestamp": timestamp.isoformat(),
    }


class AuditLogWriter:
    """Validates candidate events and appends them to the audit table."""

    def __init__(
        self,
        store: AuditStore,
        table: str = "evidence_audit_logs",
        retries: int = 0,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.store = store
        self.table = table
        self.retries = max(0, retries)
        self.clock = clock
        self._pending: Set[asyncio.Task] = set()

    async def write(self, candidate: Mapping[str, Any]) -> Optional[AuditEvent]:
        """Validate and persist one audit event.

        Args:
            candidate: Event fields (action_type, user_id, status, and optionally
                evidence_id, case_id, user_role, details, ip_address)

        Returns:
            The persisted AuditEvent, or None if the event was rejected or
            could not be stored
        """
        record: Optional[Dict[str, Any]] = None
        try:
            result = validate_event(candidate)
            if not result.accepted:
                app_logger.error(
                    f"[AuditLogger] Rejected audit event ({result.reason}): "
                    f"action_type={candidate.get('action_type')!r} status={candidate.get('status')!r}"
                )
                return None

            record = build_record(result.event, self.clock())
            stored = await self._insert(record)
            # Persisted; nothing past this point may trigger a fallback entry.
            record = None
            return AuditEvent.model_validate(stored)

        except StoreError as e:
            app_logger.error(f"[AuditLogger] Failed to create audit log: {e}")
            self._fallback(record)
            return None
        except Exception as e:
            app_logger.exception(f"[AuditLogger] Unexpected error: {e}")
            if record is not None:
                self._fallback(record)
            return None

    async def log_action(self, **fields: Any) -> Optional[AuditEvent]:
        """Keyword form of ``write``."""
        return await self.write(fields)

    async def _insert(self, record: Dict[str, Any]) -> Dict[str, Any]:
        attempt = 0
        while True:
            try:
                return await self.store.insert(self.table, record)
            except StoreError as e:
                if attempt >= self.retries:
                    raise
                attempt += 1
                app_logger.warning(
                    f"[AuditLogger] Insert failed ({e}); retry {attempt}/{self.retries}"
                )

    def _fallback(self, record: Optional[Dict[str, Any]]) -> None:
        if record is None:
            return
        app_logger.warning(
            "{marker}: {entry}",
            marker=AUDIT_FALLBACK_MARKER,
            entry=json.dumps(record, default=str, sort_keys=True),
        )

    # ============================================
    # Fire-and-forget dispatch
    # ============================================

    def dispatch(self, candidate: Mapping[str, Any]) -> asyncio.Task:
        """Schedule ``write`` without waiting for it.

        The returned task is held until it finishes; its result is only used
        for diagnostics. Must be called from within a running event loop.
        """
        task = asyncio.create_task(self.write(dict(candidate)))
        self._pending.add(task)
        task.add_done_callback(self._on_done)
        return task

    def _on_done(self, task: asyncio.Task) -> None:
        self._pending.discard(task)
        if task.cancelled():
            app_logger.warning("[AuditLogger] Audit write task was cancelled")
            return
        error = task.exception()
        if error is not None:
            app_logger.error(f"[AuditLogger] Audit write task failed: {error}")
        elif task.result() is None:
            app_logger.debug("[AuditLogger] Dispatched audit write was not persisted")

    @property
    def pending(self) -> int:
        """Number of dispatched writes still in flight."""
        return len(self._pending)

    async def drain(self, timeout: Optional[float] = None) -> bool:
        """Wait for in-flight writes to settle. Never cancels them.

        Returns:
            True if every pending write finished within ``timeout``
        """
        if not self._pending:
            return True
        _, not_done = await asyncio.wait(set(self._pending), timeout=timeout)
        if not_done:
            app_logger.warning(f"[AuditLogger] {len(not_done)} audit write(s) still pending after drain")
        return not not_done
