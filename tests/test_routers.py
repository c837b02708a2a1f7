import pytest
from fastapi.testclient import TestClient

from church_admin.dependencies import SYSTEM_USER, get_current_user
from church_admin.infrastructure.persistence.memory.ledger_store_memory import InMemoryLedgerStore
from church_admin.infrastructure.persistence.memory.scheduling_repository_memory import InMemorySchedulingRepository
from church_admin.main import create_app


@pytest.fixture
def app():
    return create_app(ledger_store=InMemoryLedgerStore(), scheduling_repo=InMemorySchedulingRepository())


@pytest.fixture
def client(app):
    app.dependency_overrides[get_current_user] = lambda: SYSTEM_USER
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


def create_department(client, name, balance=0):
    response = client.post("/departments/", json={"name": name, "initial_balance": balance})
    assert response.status_code == 201
    return response.json()["id"]


def create_professional(client):
    response = client.post("/professionals/", json={
        "name": "Ana Souza",
        "email": "ana@example.org",
        "phone": "11999998888",
        "specialty": "social",
        "consultation_duration_minutes": 60,
        "working_hours": [{"weekday": 1, "start": "09:00", "end": "12:00"}],
    })
    assert response.status_code == 201
    return response.json()["id"]


def test_requests_without_token_are_rejected(app):
    with TestClient(app) as c:
        response = c.get("/departments/")
    assert response.status_code == 401
    assert response.json()["success"] is False
    assert response.json()["error"] == "Authentication required"


def test_health(client):
    body = client.get("/health").json()
    assert body["status"] == "healthy"
    assert body["storage"] in ("memory", "firestore")


def test_department_roundtrip(client):
    dept_id = create_department(client, "Missões", 150.5)
    body = client.get(f"/departments/{dept_id}").json()
    assert body["current_balance"] == 150.5
    assert body["current_balance_display"] == "R$ 150,50"

    patched = client.patch(f"/departments/{dept_id}", json={"color": "#00ff00"})
    assert patched.status_code == 200
    assert patched.json()["color"] == "#00ff00"


def test_missing_department_uses_error_envelope(client):
    response = client.get("/departments/nope")
    assert response.status_code == 404
    assert response.json() == {
        "success": False,
        "data": None,
        "error": "Department not found",
        "details": {"department_id": "nope"},
    }


def test_string_amount_is_rejected(client):
    dept_id = create_department(client, "Jovens")
    response = client.post("/department-transactions/", json={
        "department_id": dept_id,
        "type": "deposit",
        "amount": "1.234,56",
        "description": "oferta",
        "date": "2024-03-10T10:00:00",
    })
    assert response.status_code == 422
    assert response.json()["error"] == "Validation errors"


def test_transaction_approval_updates_balance(client):
    dept_id = create_department(client, "Louvor", 10)
    created = client.post("/department-transactions/", json={
        "department_id": dept_id,
        "type": "withdrawal",
        "amount": 4,
        "description": "cordas",
        "date": "2024-03-10T10:00:00",
    })
    tx_id = created.json()["id"]
    assert client.get(f"/departments/{dept_id}").json()["current_balance"] == 10

    approved = client.patch(f"/department-transactions/{tx_id}/status", json={"status": "approved"})
    assert approved.status_code == 200
    assert client.get(f"/departments/{dept_id}").json()["current_balance"] == 6

    again = client.patch(f"/department-transactions/{tx_id}/status", json={"status": "rejected"})
    assert again.status_code == 409

    listed = client.get("/department-transactions/", params={"department_id": dept_id}).json()
    assert [t["status_label"] for t in listed] == ["Aprovada"]


def test_overdrawn_transfer_reports_balance(client):
    source = create_department(client, "Missões", 50)
    target = create_department(client, "Jovens")
    response = client.post("/department-transfers/", json={
        "from_department_id": source,
        "to_department_id": target,
        "amount": 80,
        "description": "acampamento",
        "date": "2024-03-10T10:00:00",
        "status": "approved",
    })
    assert response.status_code == 409
    details = response.json()["details"]
    assert details["current_balance"] == "50"
    assert details["requested_amount"] == "80"
    assert client.get("/department-transfers/").json() == []


def test_monthly_balance_and_summary(client):
    dept_id = create_department(client, "Missões", 100)
    client.post("/department-transactions/", json={
        "department_id": dept_id,
        "type": "deposit",
        "amount": 25,
        "description": "oferta",
        "date": "2024-03-31T23:59:00",
        "status": "approved",
    })
    monthly = client.get(f"/departments/{dept_id}/monthly-balance", params={"year": 2024, "month": 3})
    assert monthly.status_code == 200
    assert monthly.json()["total_deposits"] == 25
    assert monthly.json()["closing_balance"] == 125

    assert client.get(f"/departments/{dept_id}/monthly-balance", params={"year": 2024, "month": 13}).status_code == 422

    summary = client.get("/departments/summary").json()
    assert summary["total_balance"] == 125
    assert summary["extended_available"] is True


def test_delete_department_with_transactions_is_refused(client):
    dept_id = create_department(client, "Diaconia", 10)
    client.post("/department-transactions/", json={
        "department_id": dept_id,
        "type": "deposit",
        "amount": 1,
        "description": "oferta",
        "date": "2024-03-10T10:00:00",
    })
    assert client.delete(f"/departments/{dept_id}").status_code == 409
    empty = create_department(client, "Vazio")
    assert client.delete(f"/departments/{empty}").status_code == 200


def test_slots_booking_and_conflict(client):
    pid = create_professional(client)
    slots = client.get(f"/professionals/{pid}/available-slots", params={
        "start": "2024-01-01T00:00:00",
        "end": "2024-01-02T00:00:00",
    }).json()
    assert slots["duration_minutes"] == 60
    assert slots["slots"] == ["2024-01-01T09:00:00", "2024-01-01T10:00:00", "2024-01-01T11:00:00"]

    booking = {
        "professional_id": pid,
        "patient_id": "m1",
        "patient_name": "João",
        "patient_phone": "11988887777",
        "start": "2024-01-01T10:00:00",
        "reason": "orientação",
    }
    created = client.post("/appointments/", json=booking)
    assert created.status_code == 201
    assert created.json()["status"] == "agendado"
    assert created.json()["status_label"] == "Agendado"

    conflict = client.post("/appointments/", json={**booking, "patient_id": "m2"})
    assert conflict.status_code == 409

    slots = client.get(f"/professionals/{pid}/available-slots", params={
        "start": "2024-01-01T00:00:00",
        "end": "2024-01-02T00:00:00",
    }).json()
    assert slots["slots"] == ["2024-01-01T09:00:00", "2024-01-01T11:00:00"]


def test_appointment_transitions_over_http(client):
    pid = create_professional(client)
    appointment = client.post("/appointments/", json={
        "professional_id": pid,
        "patient_id": "m1",
        "patient_name": "João",
        "patient_phone": "11988887777",
        "start": "2024-01-01T09:00:00",
        "reason": "orientação",
    }).json()
    aid = appointment["id"]

    assert client.post(f"/appointments/{aid}/cancel", json={"reason": ""}).status_code == 422
    canceled = client.post(f"/appointments/{aid}/cancel", json={"reason": "viagem"})
    assert canceled.status_code == 200
    assert canceled.json()["cancellation_reason"] == "viagem"
    assert [h["action"] for h in canceled.json()["history"]] == ["criado", "cancelado"]

    assert client.post(f"/appointments/{aid}/confirm").status_code == 409
    assert client.get("/appointments/missing").status_code == 404


def test_professional_status_hides_slots(client):
    pid = create_professional(client)
    response = client.patch(f"/professionals/{pid}/status", json={"status": "licenca", "reason": "licença"})
    assert response.status_code == 200
    slots = client.get(f"/professionals/{pid}/available-slots", params={
        "start": "2024-01-01T00:00:00",
        "end": "2024-01-08T00:00:00",
    }).json()
    assert slots["slots"] == []
