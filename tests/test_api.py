"""Tests for the HTTP API."""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest
from fastapi.testclient import TestClient

from peopleflow.api.app import create_app

from conftest import build_employee, build_entry


@pytest.fixture
def client(settings, engine):
    app = create_app(settings, start_scheduler=False, dispose_on_shutdown=False)
    with TestClient(app) as client:
        yield client


@pytest.fixture
def employee_id(session_scope):
    """Committed employee with one week of 5 x 8.5 hours (2025-W23)."""
    with session_scope() as session:
        employee = build_employee()
        session.add(employee)
        session.flush()
        for offset in range(5):
            session.add(build_entry(employee, date(2025, 6, 2 + offset), "8.5"))
    return employee.employee_id


class TestHealth:
    """Test health endpoints."""

    def test_health(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "healthy"
        assert body["database"] == "healthy"
        assert body["scheduler"] == "disabled"
        assert body["integrations"] == []

    def test_probes(self, client):
        assert client.get("/live").json() == {"status": "alive"}
        assert client.get("/ready").json() == {"status": "ready"}


class TestOvertime:
    """Test overtime endpoints."""

    def test_snapshot(self, client, employee_id):
        response = client.get(f"/api/v1/employees/{employee_id}/overtime")

        assert response.status_code == 200
        body = response.json()
        assert Decimal(body["final_balance"]) == Decimal("2.5")
        assert body["formatted_balance"] == "+2.5 Std"
        assert body["status"] == "POSITIVE"
        [week] = body["weekly_buckets"]
        assert week["label"] == "2025-W23"
        assert week["days_worked"] == 5

    def test_recompute_and_statistics(self, client, employee_id):
        assert client.post(f"/api/v1/employees/{employee_id}/overtime").status_code == 200

        stats = client.get("/api/v1/overtime/statistics").json()

        assert stats["employee_count"] == 1
        assert stats["positive_count"] == 1
        assert Decimal(stats["total_balance"]) == Decimal("2.5")

    def test_recompute_all(self, client, employee_id):
        body = client.post("/api/v1/overtime/recompute-all").json()

        assert body == {"processed": 1, "failed": 0, "errors": []}

    def test_export(self, client, employee_id):
        client.post("/api/v1/overtime/recompute-all")

        response = client.get("/api/v1/overtime/export", params={"balance": "POSITIVE"})

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/csv")
        lines = response.text.strip().split("\n")
        assert len(lines) == 2
        assert "+2.50" in lines[1]

    def test_unknown_employee(self, client):
        missing = uuid4()

        response = client.get(f"/api/v1/employees/{missing}/overtime")

        assert response.status_code == 404
        body = response.json()
        assert body["code"] == "NOT_FOUND"
        assert body["context"] == {"entity": "Employee", "key": str(missing)}


class TestAdjustments:
    """Test the adjustment workflow over HTTP."""

    def test_submit_approve_and_balance(self, client, employee_id):
        created = client.post(
            f"/api/v1/employees/{employee_id}/adjustments",
            json={"adjustment_type": "correction", "hours": "1.5", "reason": "Messe"},
        )
        assert created.status_code == 201
        adjustment = created.json()
        assert adjustment["status"] == "pending"

        approved = client.post(
            f"/api/v1/adjustments/{adjustment['adjustment_id']}/approve",
            json={"approver_id": "boss", "approver_name": "Boss"},
        )
        assert approved.status_code == 200
        assert approved.json()["status"] == "approved"

        snapshot = client.get(f"/api/v1/employees/{employee_id}/overtime").json()
        assert Decimal(snapshot["adjustments_total"]) == Decimal("1.5")
        assert Decimal(snapshot["final_balance"]) == Decimal("4")

        listed = client.get(
            f"/api/v1/employees/{employee_id}/adjustments", params={"status": "approved"}
        ).json()
        assert [a["adjustment_id"] for a in listed] == [adjustment["adjustment_id"]]

    def test_second_decision_conflicts(self, client, employee_id):
        adjustment = client.post(
            f"/api/v1/employees/{employee_id}/adjustments",
            json={"adjustment_type": "bonus", "hours": "2", "reason": "Wochenende"},
        ).json()
        url = f"/api/v1/adjustments/{adjustment['adjustment_id']}"
        client.post(f"{url}/reject", json={"approver_id": "boss"})

        response = client.post(f"{url}/approve", json={"approver_id": "boss"})

        assert response.status_code == 409
        assert response.json()["code"] == "INVALID_TRANSITION"

    def test_pending_queue_and_delete(self, client, employee_id):
        url = f"/api/v1/employees/{employee_id}/adjustments"
        pending = client.post(
            url, json={"adjustment_type": "bonus", "hours": "2", "reason": "Messe"}
        ).json()
        decided = client.post(
            url, json={"adjustment_type": "bonus", "hours": "1", "reason": "Inventur"}
        ).json()
        client.post(
            f"/api/v1/adjustments/{decided['adjustment_id']}/approve", json={"approver_id": "boss"}
        )

        queue = client.get("/api/v1/adjustments/pending").json()

        assert [a["adjustment_id"] for a in queue] == [pending["adjustment_id"]]
        assert queue[0]["employee_name"] == "Erika Mustermann"
        assert queue[0]["department"] == "Engineering"

        deleted = client.delete(
            f"/api/v1/adjustments/{pending['adjustment_id']}", params={"actor": "Boss"}
        )
        assert deleted.status_code == 204
        assert client.get("/api/v1/adjustments/pending").json() == []
        missing = client.delete(f"/api/v1/adjustments/{pending['adjustment_id']}")
        assert missing.status_code == 404

    def test_zero_hours_is_invalid(self, client, employee_id):
        response = client.post(
            f"/api/v1/employees/{employee_id}/adjustments",
            json={"adjustment_type": "manual", "hours": "0", "reason": "nichts"},
        )

        assert response.status_code == 422
        body = response.json()
        assert body["code"] == "INVALID"
        assert body["context"] == {"field": "hours"}


class TestAbsences:
    """Test absence endpoints."""

    def test_quota_exceeded(self, client, session_scope):
        with session_scope() as session:
            employee = build_employee(annual_vacation_days=Decimal("2"))
            session.add(employee)

        absence = client.post(
            f"/api/v1/employees/{employee.employee_id}/absences",
            json={"absence_type": "vacation", "start_date": "2025-07-07", "end_date": "2025-07-09"},
        ).json()
        assert Decimal(absence["days"]) == Decimal("3")

        response = client.post(
            f"/api/v1/absences/{absence['absence_id']}/approve", json={"approver_id": "boss"}
        )

        assert response.status_code == 409
        assert response.json()["code"] == "QUOTA_EXCEEDED"

    def test_vacation_balance(self, client, employee_id):
        absence = client.post(
            f"/api/v1/employees/{employee_id}/absences",
            json={"absence_type": "vacation", "start_date": "2025-07-07", "end_date": "2025-07-08"},
        ).json()
        client.post(f"/api/v1/absences/{absence['absence_id']}/approve", json={"approver_id": "b"})

        balance = client.get(
            f"/api/v1/employees/{employee_id}/vacation", params={"year": 2025}
        ).json()

        assert Decimal(balance["used"]) == Decimal("2")
        assert Decimal(balance["remaining"]) == Decimal("28")


class TestTimeEntries:
    """Test time entry endpoints."""

    def test_create_list_delete(self, client, employee_id):
        created = client.post(
            f"/api/v1/employees/{employee_id}/time-entries",
            json={"start_at": "2025-06-09T08:00:00", "end_at": "2025-06-09T12:30:00"},
        )
        assert created.status_code == 201
        entry = created.json()
        assert Decimal(entry["duration_hours"]) == Decimal("4.5")
        assert entry["source"] == "manual"

        listed = client.get(
            f"/api/v1/employees/{employee_id}/time-entries", params={"date_from": "2025-06-09"}
        ).json()
        assert [e["time_entry_id"] for e in listed] == [entry["time_entry_id"]]

        assert client.delete(f"/api/v1/time-entries/{entry['time_entry_id']}").status_code == 204
        assert client.delete(f"/api/v1/time-entries/{entry['time_entry_id']}").status_code == 404

    def test_end_before_start(self, client, employee_id):
        response = client.post(
            f"/api/v1/employees/{employee_id}/time-entries",
            json={"start_at": "2025-06-09T12:00:00", "end_at": "2025-06-09T08:00:00"},
        )

        assert response.status_code == 422
        assert response.json()["context"] == {"field": "end_at"}


class TestIntegrations:
    """Test integration configuration."""

    def test_configure_hides_credentials(self, client):
        response = client.put(
            "/api/v1/integrations/timebutler",
            json={"credentials": "api-key", "auto_sync": True, "sync_start_date": "2025-01-01"},
        )

        assert response.status_code == 200
        body = response.json()
        assert body["active"] is True
        assert body["auto_sync"] is True
        assert "credentials" not in body
        assert "encrypted_credentials" not in body
        assert [i["provider"] for i in client.get("/api/v1/integrations").json()] == ["timebutler"]

    def test_unknown_provider(self, client):
        response = client.put("/api/v1/integrations/personio", json={"credentials": "x"})

        assert response.status_code == 422
        assert response.json()["code"] == "INVALID"

    def test_sync_of_inactive_integration_conflicts(self, client):
        client.put("/api/v1/integrations/timebutler", json={"credentials": "api-key"})
        client.patch("/api/v1/integrations/timebutler", json={"active": False})

        response = client.post("/api/v1/sync", params={"provider": "timebutler"})

        assert response.status_code == 409
        assert response.json()["code"] == "CONFLICT"

    def test_sync_without_integrations(self, client):
        response = client.post("/api/v1/sync")

        assert response.status_code == 200
        assert response.json() == {"started": True, "providers": []}
