"""Tests for the audit log reporting endpoints."""

import asyncio

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from app.api.audit.router import router
from app.services.audit_logger import AuditLogWriter
from app.services.audit_query import AuditQueryEngine
from app.services.audit_summary import AuditAggregator
from app.services.audit_views import AuditTrailViews
from app.services.container import AuditServices
from app.utils.local_tokens import create_local_token

from tests.conftest import NOW, TABLE, FailingStore, make_row, seed


def auth(role: str = "admin") -> dict:
    return {"Authorization": f"Bearer {create_local_token(f'{role}-1', role=role)}"}


def make_client(services: AuditServices) -> TestClient:
    app = FastAPI()
    app.include_router(router)
    app.state.audit_services = services
    return TestClient(app)


@pytest.fixture
def client(services) -> TestClient:
    return make_client(services)


@pytest.fixture
def seeded(store):
    asyncio.run(seed(store, [
        make_row(minutes_ago=5, action_type="CREATE", evidence_id="EVD-1", user_id="0xabc", case_id="CASE-1"),
        make_row(minutes_ago=15, action_type="VERIFY", status="FAILURE", evidence_id="EVD-1", user_id="0xdef"),
        make_row(minutes_ago=25, action_type="ACCESS", evidence_id="EVD-2", user_id="0xabc"),
    ]))
    return store


class TestAccessControl:
    def test_missing_token_is_401(self, client):
        response = client.get("/v1/audit-logs")
        assert response.status_code == 401

    def test_invalid_token_is_401(self, client):
        response = client.get("/v1/audit-logs", headers={"Authorization": "Bearer not-a-jwt"})
        assert response.status_code == 401

    @pytest.mark.parametrize("role", ["user", "investigator", "court", "legal_team"])
    def test_other_roles_are_403(self, client, role):
        response = client.get("/v1/audit-logs/summary", headers=auth(role))
        assert response.status_code == 403
        assert response.json()["detail"] == "Admin or auditor role required"

    @pytest.mark.parametrize("role", ["admin", "auditor"])
    def test_readers_are_allowed(self, client, role):
        assert client.get("/v1/audit-logs", headers=auth(role)).status_code == 200


class TestListAuditLogs:
    def test_empty(self, client):
        response = client.get("/v1/audit-logs", headers=auth())

        assert response.json() == {
            "success": True,
            "logs": [],
            "count": 0,
            "pagination": {"limit": 100, "offset": 0},
        }

    def test_filters_and_pagination(self, client, seeded):
        response = client.get(
            "/v1/audit-logs",
            params={"userId": "0xabc", "limit": 1, "offset": 1},
            headers=auth(),
        )

        data = response.json()
        assert response.status_code == 200
        assert data["count"] == 2
        assert data["pagination"] == {"limit": 1, "offset": 1}
        assert [row["action_type"] for row in data["logs"]] == ["ACCESS"]

    def test_enum_and_date_filters(self, client, seeded):
        response = client.get(
            "/v1/audit-logs",
            params={
                "actionType": "VERIFY",
                "status": "FAILURE",
                "startDate": "2026-03-14T11:30:00Z",
                "endDate": NOW.isoformat(),
            },
            headers=auth("auditor"),
        )

        logs = response.json()["logs"]
        assert len(logs) == 1
        assert logs[0]["user_id"] == "0xdef"

    def test_unknown_action_type_is_422(self, client):
        response = client.get("/v1/audit-logs", params={"actionType": "INVALID_TYPE"}, headers=auth())
        assert response.status_code == 422

    def test_store_failure_is_500(self):
        client = make_client(failing_services())

        response = client.get("/v1/audit-logs", headers=auth())

        assert response.status_code == 500
        body = response.json()
        assert body["success"] is False
        assert body["error"] == "connection refused"


class TestSummary:
    def test_camel_case_shape(self, store):
        services = services_with_clock(store)
        asyncio.run(seed(store, [make_row(minutes_ago=5, action_type="DOWNLOAD")]))

        response = make_client(services).get("/v1/audit-logs/summary", params={"timeRange": "1h"}, headers=auth())

        summary = response.json()["summary"]
        assert response.json()["success"] is True
        assert summary["timeRange"] == "1h"
        assert summary["totalActions"] == 1
        assert summary["byActionType"]["DOWNLOAD"] == 1
        assert summary["byStatus"] == {"SUCCESS": 1, "FAILURE": 0, "PENDING": 0}

    def test_default_window(self, client):
        assert client.get("/v1/audit-logs/summary", headers=auth()).json()["summary"]["timeRange"] == "24h"

    def test_store_failure_is_500(self):
        response = make_client(failing_services()).get("/v1/audit-logs/summary", headers=auth())
        assert response.status_code == 500


class TestEvidenceTrail:
    def test_trail(self, client, seeded):
        response = client.get("/v1/audit-logs/evidence/EVD-1", headers=auth())

        data = response.json()
        assert data["success"] is True
        assert data["evidenceId"] == "EVD-1"
        assert data["count"] == 2
        assert [row["action_type"] for row in data["trail"]] == ["CREATE", "VERIFY"]

    def test_unknown_evidence(self, client):
        data = client.get("/v1/audit-logs/evidence/EVD-404", headers=auth()).json()
        assert data["trail"] == []
        assert data["count"] == 0

    def test_blank_id_is_400(self, client):
        response = client.get("/v1/audit-logs/evidence/%20", headers=auth())
        assert response.status_code == 400
        assert response.json()["error"] == "Evidence ID is required"


class TestUserActivity:
    def test_activity(self, client, seeded):
        response = client.get("/v1/audit-logs/user/0xabc", params={"limit": 1}, headers=auth())

        data = response.json()
        assert data["userId"] == "0xabc"
        assert data["count"] == 1
        assert data["activity"][0]["action_type"] == "CREATE"

    def test_blank_id_is_400(self, client):
        response = client.get("/v1/audit-logs/user/%20", headers=auth())
        assert response.status_code == 400
        assert response.json()["error"] == "User ID is required"

    def test_store_failure_is_500(self):
        response = make_client(failing_services()).get("/v1/audit-logs/user/0xabc", headers=auth())
        assert response.status_code == 500


def services_with_clock(store) -> AuditServices:
    engine = AuditQueryEngine(store, table=TABLE)
    return AuditServices(
        store=store,
        writer=AuditLogWriter(store, table=TABLE, clock=lambda: NOW),
        engine=engine,
        aggregator=AuditAggregator(store, table=TABLE, clock=lambda: NOW),
        views=AuditTrailViews(engine),
    )


def failing_services() -> AuditServices:
    return services_with_clock(FailingStore())
