"""Tests for the evidence trail and user activity views."""

import pytest

from app.services.audit_query import AuditQueryEngine
from app.services.audit_views import AuditTrailViews

from tests.conftest import TABLE, FailingStore, make_row, seed


class TestEvidenceTrail:
    @pytest.mark.asyncio
    @pytest.mark.parametrize("evidence_id", [None, "", "  "])
    async def test_requires_evidence_id(self, views, evidence_id):
        result = await views.evidence_trail(evidence_id)
        assert result.trail == []
        assert result.error == "Evidence ID is required"

    @pytest.mark.asyncio
    async def test_unknown_evidence_has_empty_trail(self, views):
        result = await views.evidence_trail("EVD-404")
        assert result.trail == []
        assert result.error is None

    @pytest.mark.asyncio
    async def test_returns_history_newest_first(self, views, store):
        await seed(store, [
            make_row(minutes_ago=30, action_type="CREATE", evidence_id="EVD-1"),
            make_row(minutes_ago=10, action_type="VERIFY", evidence_id="EVD-1"),
            make_row(minutes_ago=20, action_type="ACCESS", evidence_id="EVD-2"),
        ])

        result = await views.evidence_trail("EVD-1")

        assert [e["action_type"] for e in result.trail] == ["VERIFY", "CREATE"]

    @pytest.mark.asyncio
    async def test_trail_uses_elevated_limit(self, views, store):
        await seed(store, [make_row(minutes_ago=i, evidence_id="EVD-1") for i in range(120)])

        result = await views.evidence_trail("EVD-1")

        assert len(result.trail) == 120

    @pytest.mark.asyncio
    async def test_store_failure_is_reported(self):
        views = AuditTrailViews(AuditQueryEngine(FailingStore("down"), table=TABLE))
        result = await views.evidence_trail("EVD-1")
        assert result.trail == []
        assert result.error == "down"


class TestUserActivity:
    @pytest.mark.asyncio
    async def test_requires_user_id(self, views):
        result = await views.user_activity()
        assert result.activity == []
        assert result.error == "User ID is required"

    @pytest.mark.asyncio
    async def test_default_limit_is_50(self, views, store):
        await seed(store, [make_row(minutes_ago=i, user_id="0xabc") for i in range(60)])

        result = await views.user_activity("0xabc")

        assert len(result.activity) == 50
        assert result.error is None

    @pytest.mark.asyncio
    async def test_custom_limit_and_user_filter(self, views, store):
        await seed(store, [make_row(minutes_ago=i, user_id="0xabc") for i in range(5)])
        await seed(store, [make_row(minutes_ago=i, user_id="0xdef") for i in range(5)])

        result = await views.user_activity("0xdef", limit=3)

        assert len(result.activity) == 3
        assert {e["user_id"] for e in result.activity} == {"0xdef"}

    @pytest.mark.asyncio
    async def test_invalid_limit_is_reported_not_raised(self, views):
        result = await views.user_activity("0xabc", limit=0)
        assert result.activity == []
        assert result.error.startswith("Invalid limit")
