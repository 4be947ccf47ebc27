"""Tests for filter composition and the audit query engine."""

from datetime import datetime, timedelta

import pytest

from app.models.audit_log import ActionStatus, ActionType
from app.services.audit_query import AuditLogFilters, AuditQueryEngine, compose_query

from tests.conftest import NOW, TABLE, FailingStore, make_row, seed


class TestComposeQuery:
    def test_defaults(self):
        query = compose_query(AuditLogFilters())

        assert query.equals == {}
        assert query.gte == {}
        assert query.lte == {}
        assert query.limit == 100
        assert query.offset == 0
        assert query.order_by == "timestamp"
        assert query.descending is True
        assert query.count is True

    def test_all_filters(self):
        query = compose_query(AuditLogFilters(
            evidence_id="EVD-1",
            user_id="0xabc",
            action_type=ActionType.VERIFY,
            status=ActionStatus.FAILURE,
            case_id="CASE-7",
            start_date=NOW - timedelta(days=1),
            end_date=NOW,
            limit=10,
            offset=20,
        ))

        assert query.equals == {
            "evidence_id": "EVD-1",
            "user_id": "0xabc",
            "action_type": "VERIFY",
            "status": "FAILURE",
            "case_id": "CASE-7",
        }
        assert query.gte == {"timestamp": (NOW - timedelta(days=1)).isoformat()}
        assert query.lte == {"timestamp": NOW.isoformat()}
        assert (query.limit, query.offset) == (10, 20)

    def test_naive_dates_are_treated_as_utc(self):
        query = compose_query(AuditLogFilters(start_date=datetime(2026, 3, 14, 8, 0)))
        assert query.gte["timestamp"] == "2026-03-14T08:00:00+00:00"

    def test_string_enum_values_are_accepted(self):
        filters = AuditLogFilters(action_type="CREATE", status="SUCCESS")
        assert compose_query(filters).equals == {"action_type": "CREATE", "status": "SUCCESS"}


class TestAuditQueryEngine:
    @pytest.mark.asyncio
    async def test_empty_query_returns_list_and_count(self, engine):
        result = await engine.query()

        assert result.events == []
        assert result.total_count == 0
        assert result.error is None

    @pytest.mark.asyncio
    async def test_filters_by_action_type_with_limit(self, engine, store):
        await seed(store, [make_row(minutes_ago=i, action_type="CREATE") for i in range(15)])
        await seed(store, [make_row(minutes_ago=i, action_type="ACCESS") for i in range(5)])

        result = await engine.query(AuditLogFilters(action_type="CREATE", limit=10))

        assert len(result.events) == 10
        assert all(e["action_type"] == "CREATE" for e in result.events)
        assert result.total_count == 15

    @pytest.mark.asyncio
    async def test_orders_newest_first_and_paginates(self, engine, store):
        await seed(store, [make_row(minutes_ago=m, evidence_id=f"EVD-{m}") for m in (30, 10, 20, 0, 40)])

        first = await engine.query(AuditLogFilters(limit=2))
        second = await engine.query(AuditLogFilters(limit=2, offset=2))

        assert [e["evidence_id"] for e in first.events] == ["EVD-0", "EVD-10"]
        assert [e["evidence_id"] for e in second.events] == ["EVD-20", "EVD-30"]
        assert first.total_count == second.total_count == 5

    @pytest.mark.asyncio
    async def test_filters_combine_with_and(self, engine, store):
        await seed(store, [
            make_row(user_id="0xabc", status="SUCCESS", case_id="CASE-1"),
            make_row(user_id="0xabc", status="FAILURE", case_id="CASE-1"),
            make_row(user_id="0xdef", status="SUCCESS", case_id="CASE-1"),
            make_row(user_id="0xabc", status="SUCCESS", case_id="CASE-2"),
        ])

        result = await engine.query(AuditLogFilters(user_id="0xabc", status="SUCCESS", case_id="CASE-1"))

        assert result.total_count == 1
        assert result.events[0]["user_id"] == "0xabc"

    @pytest.mark.asyncio
    async def test_date_range_is_inclusive(self, engine, store):
        await seed(store, [make_row(minutes_ago=m, evidence_id=f"EVD-{m}") for m in (0, 60, 120, 180)])

        result = await engine.query(AuditLogFilters(
            start_date=NOW - timedelta(minutes=120),
            end_date=NOW - timedelta(minutes=60),
        ))

        assert sorted(e["evidence_id"] for e in result.events) == ["EVD-120", "EVD-60"]

    @pytest.mark.asyncio
    async def test_store_failure_returns_error_result(self):
        engine = AuditQueryEngine(FailingStore("backend down"), table=TABLE)

        result = await engine.query(AuditLogFilters(user_id="0xabc"))

        assert result.events == []
        assert result.total_count == 0
        assert result.error == "backend down"
