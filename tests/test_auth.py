"""Authentification JWT et gestion des comptes."""
from datetime import datetime, timedelta

import jwt

from auth import issue_token
from models import Appointment, User, db


class TestLogin:

    def test_login_returns_a_usable_token(self, client, patient):
        response = client.post("/api/auth/login", json={"email": "PATIENT@cabinet.test", "password": "password123"})

        assert response.status_code == 200
        token = response.json["token"]
        me = client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
        assert me.json["user"]["id"] == patient.id

    def test_wrong_password(self, client, patient):
        response = client.post("/api/auth/login", json={"email": "patient@cabinet.test", "password": "nope"})
        assert response.status_code == 401
        assert response.json["success"] is False

    def test_disabled_account(self, client, make_user):
        make_user("nurse", email="off@cabinet.test", active=False)
        response = client.post("/api/auth/login", json={"email": "off@cabinet.test", "password": "password123"})
        assert response.status_code == 401

    def test_missing_field(self, client):
        response = client.post("/api/auth/login", json={"email": "x@cabinet.test"})
        assert response.status_code == 400
        assert response.json["errors"][0]["field"] == "password"


class TestTokens:

    def test_missing_token(self, client):
        assert client.get("/api/auth/me").status_code == 401

    def test_tampered_token(self, client, patient):
        token = issue_token(patient) + "x"
        assert client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"}).status_code == 401

    def test_expired_token(self, app, client, patient):
        app.config["JWT_EXPIRES_HOURS"] = -1
        token = issue_token(patient)
        response = client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == 401
        assert "expired" in response.json["message"]

    def test_token_payload(self, app, doctor):
        payload = jwt.decode(issue_token(doctor), app.config["JWT_SECRET"], algorithms=["HS256"])
        assert payload["sub"] == str(doctor.id)
        assert payload["role"] == "doctor"
        assert timedelta(seconds=payload["exp"] - payload["iat"]) == timedelta(hours=app.config["JWT_EXPIRES_HOURS"])

    def test_deactivated_user_token_is_rejected(self, client, auth_headers, admin, nurse):
        headers = auth_headers(nurse)
        client.put(f"/api/users/{nurse.id}/active", headers=auth_headers(admin), json={"active": False})
        assert client.get("/api/auth/me", headers=headers).status_code == 401


class TestUsers:

    def test_admin_creates_a_doctor(self, client, auth_headers, admin):
        response = client.post("/api/users", headers=auth_headers(admin), json={
            "first_name": "Claude", "last_name": "Bernard", "email": "bernard@cabinet.test",
            "password": "motdepasse", "role": "doctor", "specialty": "Cardiologie"})

        assert response.status_code == 201
        assert User.query.filter_by(email="bernard@cabinet.test").one().check_password("motdepasse")

    def test_doctor_requires_specialty(self, client, auth_headers, admin):
        response = client.post("/api/users", headers=auth_headers(admin), json={
            "first_name": "Claude", "last_name": "Bernard", "email": "bernard@cabinet.test",
            "password": "motdepasse", "role": "doctor"})
        assert response.status_code == 400
        assert response.json["errors"][0]["field"] == "specialty"

    def test_duplicate_email(self, client, auth_headers, admin, patient):
        response = client.post("/api/users", headers=auth_headers(admin), json={
            "first_name": "Jean", "last_name": "Dupont", "email": "patient@cabinet.test", "password": "motdepasse"})
        assert response.status_code == 409

    def test_secretary_cannot_create_users(self, client, auth_headers, secretary):
        response = client.post("/api/users", headers=auth_headers(secretary), json={
            "first_name": "A", "last_name": "B", "email": "ab@cabinet.test", "password": "motdepasse"})
        assert response.status_code == 403

    def test_practitioners_listing_hides_inactive_doctors(self, client, auth_headers, patient, doctor, make_user):
        make_user("doctor", active=False)
        response = client.get("/api/users/practitioners", headers=auth_headers(patient))
        assert [p["id"] for p in response.json["practitioners"]] == [doctor.id]

    def test_role_filter(self, client, auth_headers, secretary, doctor, patient):
        response = client.get("/api/users", headers=auth_headers(secretary), query_string={"role": "doctor"})
        assert [u["id"] for u in response.json["users"]] == [doctor.id]


class TestUserAdministration:

    def test_admin_updates_a_user(self, client, auth_headers, admin, patient):
        response = client.put(f"/api/users/{patient.id}", headers=auth_headers(admin),
                              json={"phone": "0601020304", "email": "Jean.Dupont@Cabinet.test"})

        assert response.status_code == 200
        assert response.json["user"]["phone"] == "0601020304"
        assert response.json["user"]["email"] == "jean.dupont@cabinet.test"
        assert patient.updated_by == admin.id

    def test_update_to_an_existing_email_conflicts(self, client, auth_headers, admin, patient, other_patient):
        response = client.put(f"/api/users/{patient.id}", headers=auth_headers(admin),
                              json={"email": other_patient.email})
        assert response.status_code == 409
        assert response.json["errors"][0]["field"] == "email"

    def test_promoting_to_doctor_requires_a_specialty(self, client, auth_headers, admin, nurse):
        response = client.put(f"/api/users/{nurse.id}", headers=auth_headers(admin), json={"role": "doctor"})
        assert response.status_code == 400
        assert db.session.get(User, nurse.id).role == "nurse"

    def test_secretary_cannot_update_users(self, client, auth_headers, secretary, patient):
        response = client.put(f"/api/users/{patient.id}", headers=auth_headers(secretary), json={"phone": "0600000000"})
        assert response.status_code == 403

    def test_password_reset_allows_login(self, client, auth_headers, admin, patient):
        response = client.post(f"/api/users/{patient.id}/password", headers=auth_headers(admin),
                               json={"password": "nouveaumotdepasse"})
        assert response.status_code == 200

        login = client.post("/api/auth/login", json={"email": patient.email, "password": "nouveaumotdepasse"})
        assert login.status_code == 200
        assert client.post("/api/auth/login", json={"email": patient.email,
                                                    "password": "password123"}).status_code == 401

    def test_password_reset_rejects_short_password(self, client, auth_headers, admin, patient):
        response = client.post(f"/api/users/{patient.id}/password", headers=auth_headers(admin),
                               json={"password": "court"})
        assert response.status_code == 400
        assert response.json["errors"][0]["field"] == "password"

    def test_deactivating_a_doctor_cancels_upcoming_appointments(self, client, auth_headers, admin, patient, doctor,
                                                                 make_appointment, freeze_now):
        freeze_now(datetime(2025, 6, 1, 12, 0))
        upcoming = make_appointment(patient, doctor)
        past = make_appointment(patient, doctor, start=datetime(2025, 5, 30, 9), end=datetime(2025, 5, 30, 9, 30),
                                status="completed")

        response = client.put(f"/api/users/{doctor.id}/active", headers=auth_headers(admin), json={"active": False})

        assert response.status_code == 200
        assert response.json["cancelled_appointments"] == 1
        assert db.session.get(Appointment, upcoming.id).status == "cancelled"
        assert db.session.get(Appointment, past.id).status == "completed"

    def test_delete_is_refused_with_upcoming_appointments(self, client, auth_headers, admin, patient, doctor,
                                                          make_appointment, freeze_now):
        freeze_now(datetime(2025, 6, 1, 12, 0))
        make_appointment(patient, doctor)

        response = client.delete(f"/api/users/{patient.id}", headers=auth_headers(admin))

        assert response.status_code == 400
        assert response.json["errors"][0]["field"] == "appointments"
        assert db.session.get(User, patient.id).deleted is False

    def test_deleted_user_disappears_and_frees_the_email(self, client, auth_headers, admin, patient):
        email = patient.email
        response = client.delete(f"/api/users/{patient.id}", headers=auth_headers(admin))
        assert response.status_code == 200

        assert client.get(f"/api/users/{patient.id}", headers=auth_headers(admin)).status_code == 404
        listing = client.get("/api/users", headers=auth_headers(admin))
        assert patient.id not in [u["id"] for u in listing.json["users"]]
        assert client.post("/api/auth/login", json={"email": email, "password": "password123"}).status_code == 401

        recreated = client.post("/api/users", headers=auth_headers(admin), json={
            "first_name": "Jean", "last_name": "Dupont", "email": email, "password": "motdepasse"})
        assert recreated.status_code == 201

    def test_admin_cannot_delete_itself(self, client, auth_headers, admin):
        response = client.delete(f"/api/users/{admin.id}", headers=auth_headers(admin))
        assert response.status_code == 400
