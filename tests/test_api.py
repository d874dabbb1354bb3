from datetime import date

from fastapi.testclient import TestClient

from backend.auth_security import create_access_token


def _login(client: TestClient, email: str, password: str):
    return client.post("/api/auth/login", data={"username": email, "password": password})


def test_health(client: TestClient) -> None:
    assert client.get("/api/health").json() == {"ok": True, "status": "ok"}


def test_login_and_me(client: TestClient, admin_id: str) -> None:
    res = _login(client, "admin@dentalcare.com", "admin123")
    assert res.status_code == 200
    token = res.json()["access_token"]

    me = client.get("/api/me", headers={"Authorization": f"Bearer {token}"}).json()
    assert me["id"] == admin_id
    assert me["role"] == "ADMIN"
    assert me["full_name"] == "Clinic Administrator"


def test_bad_credentials(client: TestClient, admin_id: str) -> None:
    assert _login(client, "admin@dentalcare.com", "nope").status_code == 401


def test_protected_endpoints_need_a_token(client: TestClient) -> None:
    for path in ("/api/me", "/api/patients", "/api/dashboard", "/api/staff"):
        assert client.get(path).status_code == 401
    assert client.get("/api/me", headers={"Authorization": "Bearer junk"}).status_code == 401


def test_token_of_deleted_user_is_rejected(client: TestClient) -> None:
    headers = {"Authorization": f"Bearer {create_access_token('ghost')}"}
    assert client.get("/api/me", headers=headers).status_code == 401


def test_profile_update(client: TestClient, receptionist_headers) -> None:
    res = client.put("/api/me", json={"phone": "555-0123"}, headers=receptionist_headers)
    assert res.status_code == 200
    assert res.json()["phone"] == "555-0123"

    res = client.post(
        "/api/me/password",
        json={"current_password": "wrong", "new_password": "secret99"},
        headers=receptionist_headers,
    )
    assert res.status_code == 400

    res = client.post(
        "/api/me/password",
        json={"current_password": "receptionist123", "new_password": "secret99"},
        headers=receptionist_headers,
    )
    assert res.status_code == 200
    assert _login(client, "emily.davis@dentalcare.com", "secret99").status_code == 200


def test_patient_crud(client: TestClient, admin_headers) -> None:
    res = client.post(
        "/api/patients",
        json={"first_name": "Anna", "last_name": "Martinez", "date_of_birth": "2001-01-30", "allergies": "Latex"},
        headers=admin_headers,
    )
    assert res.status_code == 201
    pid = res.json()["patient_id"]

    assert [p["id"] for p in client.get("/api/patients", params={"search": "mart"}, headers=admin_headers).json()] == [pid]

    detail = client.get(f"/api/patients/{pid}", headers=admin_headers).json()
    assert detail["date_of_birth"] == "2001-01-30"
    assert detail["appointments"] == [] and detail["invoices"] == []

    assert client.put(f"/api/patients/{pid}", json={"phone": "555-0104"}, headers=admin_headers).status_code == 200
    assert client.put(f"/api/patients/{pid}", json={"first_name": ""}, headers=admin_headers).status_code == 400
    assert client.delete(f"/api/patients/{pid}", headers=admin_headers).status_code == 200
    assert client.get(f"/api/patients/{pid}", headers=admin_headers).status_code == 404


def test_booking_flow(client: TestClient, admin_headers, patient_id, dentist_id, cleaning_id) -> None:
    payload = {
        "patient_id": patient_id,
        "dentist_id": dentist_id,
        "treatment_id": cleaning_id,
        "start": "2026-03-02T09:00:00",
    }
    res = client.post("/api/appointments", json=payload, headers=admin_headers)
    assert res.status_code == 200
    appointment_id = res.json()["appointment_id"]

    assert client.post("/api/appointments", json=payload, headers=admin_headers).status_code == 409

    rows = client.get("/api/appointments", params={"day": "2026-03-02"}, headers=admin_headers).json()
    assert [r["id"] for r in rows] == [appointment_id]

    res = client.patch(
        f"/api/appointments/{appointment_id}/status", json={"status": "CONFIRMED"}, headers=admin_headers
    )
    assert res.status_code == 200
    res = client.post(f"/api/appointments/{appointment_id}/cancel", json={"reason": "moved"}, headers=admin_headers)
    assert res.status_code == 200
    res = client.post(f"/api/appointments/{appointment_id}/cancel", json={}, headers=admin_headers)
    assert res.status_code == 404


def test_treatments(client: TestClient, admin_headers) -> None:
    res = client.post("/api/treatments", json={"name": "Root Canal", "price": 850, "duration_minutes": 90}, headers=admin_headers)
    assert res.status_code == 201
    tid = res.json()["treatment_id"]

    assert client.post("/api/treatments", json={"name": "Root Canal", "price": 1}, headers=admin_headers).status_code == 400
    assert client.post("/api/treatments", json={"name": "Bad", "price": -1}, headers=admin_headers).status_code == 422

    assert client.put(f"/api/treatments/{tid}", json={"active": False}, headers=admin_headers).status_code == 200
    assert client.get("/api/treatments", params={"active_only": "true"}, headers=admin_headers).json() == []
    assert client.put("/api/treatments/999", json={"price": 1}, headers=admin_headers).status_code == 404


def test_treatment_rename_to_existing_name_is_rejected(client: TestClient, admin_headers) -> None:
    client.post("/api/treatments", json={"name": "Scaling", "price": 90}, headers=admin_headers)
    res = client.post("/api/treatments", json={"name": "Filling", "price": 150}, headers=admin_headers)
    filling_id = res.json()["treatment_id"]

    res = client.put(f"/api/treatments/{filling_id}", json={"name": "Scaling"}, headers=admin_headers)
    assert res.status_code == 400
    assert "already exists" in res.json()["detail"]

    # keeping its own name is not a clash
    res = client.put(f"/api/treatments/{filling_id}", json={"name": "Filling", "price": 160}, headers=admin_headers)
    assert res.status_code == 200


def test_billing(client: TestClient, admin_headers, patient_id, cleaning_id) -> None:
    res = client.post(
        "/api/invoices",
        json={"patient_id": patient_id, "items": [{"treatment_id": cleaning_id}], "issued_on": "2026-03-02"},
        headers=admin_headers,
    )
    assert res.status_code == 201
    invoice_id = res.json()["invoice_id"]

    assert client.post("/api/invoices", json={"patient_id": patient_id, "items": []}, headers=admin_headers).status_code == 422
    res = client.post(
        "/api/invoices", json={"patient_id": "missing", "items": [{"treatment_id": cleaning_id}]}, headers=admin_headers
    )
    assert res.status_code == 400

    res = client.post(f"/api/invoices/{invoice_id}/pay", json={"method": "CARD"}, headers=admin_headers)
    assert res.status_code == 200
    assert client.post(f"/api/invoices/{invoice_id}/pay", json={"method": "CARD"}, headers=admin_headers).status_code == 404

    paid = client.get("/api/invoices", params={"status": "PAID"}, headers=admin_headers).json()
    assert [i["id"] for i in paid] == [invoice_id]
    assert paid[0]["total"] == 120.0


def test_staff_admin_only(client: TestClient, admin_id, admin_headers, receptionist_headers) -> None:
    new = {
        "email": "lisa.brown@dentalcare.com",
        "password": "hygienist123",
        "first_name": "Lisa",
        "last_name": "Brown",
        "role": "HYGIENIST",
    }
    assert client.post("/api/staff", json=new, headers=receptionist_headers).status_code == 403

    res = client.post("/api/staff", json=new, headers=admin_headers)
    assert res.status_code == 201
    user_id = res.json()["user_id"]
    assert client.post("/api/staff", json=new, headers=admin_headers).status_code == 400

    roles = {u["email"]: u["role"] for u in client.get("/api/staff", headers=receptionist_headers).json()}
    assert roles["lisa.brown@dentalcare.com"] == "HYGIENIST"

    res = client.patch(f"/api/staff/{user_id}/active", json={"is_active": False}, headers=admin_headers)
    assert res.status_code == 200
    assert _login(client, "lisa.brown@dentalcare.com", "hygienist123").status_code == 401

    res = client.patch(f"/api/staff/{admin_id}/active", json={"is_active": False}, headers=admin_headers)
    assert res.status_code == 400


def test_dashboard_and_reports(client: TestClient, admin_headers) -> None:
    stats = client.get("/api/dashboard", headers=admin_headers).json()
    assert stats["date"] == date.today().isoformat()
    assert stats["total_patients"] == 0

    params = {"start": "2026-01-01", "end": "2026-03-31"}
    assert client.get("/api/reports/revenue", params=params, headers=admin_headers).json()["total"] == 0
    assert client.get("/api/reports/appointments", params=params, headers=admin_headers).json()["total"] == 0

    bad = {"start": "2026-03-31", "end": "2026-01-01"}
    assert client.get("/api/reports/revenue", params=bad, headers=admin_headers).status_code == 400
