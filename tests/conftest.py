"""Shared fixtures for audit trail tests."""

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List

import pytest

from app.config.logger import app_logger
from app.db.memory_store import InMemoryAuditStore
from app.db.store import StoreQuery, StoreResult
from app.services.audit_logger import AuditLogWriter
from app.services.audit_query import AuditQueryEngine
from app.services.audit_summary import AuditAggregator
from app.services.audit_views import AuditTrailViews
from app.services.container import AuditServices
from app.utils.exceptions import StoreError

TABLE = "evidence_audit_logs"
NOW = datetime(2026, 3, 14, 12, 0, 0, tzinfo=timezone.utc)


class FailingStore:
    """Store whose every operation fails like an unreachable backend."""

    def __init__(self, message: str = "connection refused"):
        self.message = message
        self.insert_calls = 0

    async def insert(self, table: str, record: Dict[str, Any]) -> Dict[str, Any]:
        self.insert_calls += 1
        raise StoreError(self.message)

    async def select(self, table: str, query: StoreQuery) -> StoreResult:
        raise StoreError(self.message)

    async def ping(self, table: str):
        return False, self.message


def make_row(
    minutes_ago: float = 0,
    action_type: str = "ACCESS",
    status: str = "SUCCESS",
    user_id: str = "0xabc",
    evidence_id: str = None,
    case_id: str = None,
    now: datetime = NOW,
) -> Dict[str, Any]:
    return {
        "timestamp": (now - timedelta(minutes=minutes_ago)).isoformat(),
        "action_type": action_type,
        "evidence_id": evidence_id,
        "case_id": case_id,
        "user_id": user_id,
        "user_role": "investigator",
        "status": status,
        "details": {},
        "ip_address": "203.0.113.7",
    }


async def seed(store: InMemoryAuditStore, rows: List[Dict[str, Any]]) -> None:
    for row in rows:
        await store.insert(TABLE, row)


@pytest.fixture
def store() -> InMemoryAuditStore:
    return InMemoryAuditStore()


@pytest.fixture
def failing_store() -> FailingStore:
    return FailingStore()


@pytest.fixture
def writer(store) -> AuditLogWriter:
    return AuditLogWriter(store, table=TABLE, clock=lambda: NOW)


@pytest.fixture
def engine(store) -> AuditQueryEngine:
    return AuditQueryEngine(store, table=TABLE)


@pytest.fixture
def aggregator(store) -> AuditAggregator:
    return AuditAggregator(store, table=TABLE, clock=lambda: NOW)


@pytest.fixture
def views(engine) -> AuditTrailViews:
    return AuditTrailViews(engine)


@pytest.fixture
def services(store, writer, engine, aggregator, views) -> AuditServices:
    return AuditServices(store=store, writer=writer, engine=engine, aggregator=aggregator, views=views)


@pytest.fixture
def captured_logs():
    """Formatted loguru messages emitted during the test."""
    messages: List[str] = []
    handler_id = app_logger.add(lambda message: messages.append(str(message)), level="DEBUG", format="{level} {message}")
    yield messages
    app_logger.remove(handler_id)
