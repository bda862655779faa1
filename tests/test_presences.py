"""Présences du personnel."""
import pytest


def presence(user, day="2025-06-02", **extra):
    return {"user_id": user.id, "date": day, "start_time": "08:30", "end_time": "17:00", **extra}


class TestRecordPresence:

    def test_staff_records_own_presence(self, client, auth_headers, nurse):
        response = client.post("/api/presences", headers=auth_headers(nurse),
                               json={"date": "2025-06-02", "start_time": "08:30", "consultations": 4})

        assert response.status_code == 201
        assert response.json["presence"]["user_id"] == nurse.id
        assert response.json["presence"]["status"] == "present"
        assert response.json["presence"]["start_time"] == "08:30"

    def test_one_presence_per_user_and_day(self, client, auth_headers, secretary, doctor):
        assert client.post("/api/presences", headers=auth_headers(secretary),
                           json=presence(doctor)).status_code == 201
        duplicate = client.post("/api/presences", headers=auth_headers(secretary), json=presence(doctor))
        assert duplicate.status_code == 409

    def test_end_before_start_is_rejected(self, client, auth_headers, secretary, doctor):
        response = client.post("/api/presences", headers=auth_headers(secretary),
                               json=presence(doctor, start_time="17:00", end_time="08:00"))
        assert response.status_code == 400

    def test_nurse_cannot_record_for_someone_else(self, client, auth_headers, nurse, doctor):
        response = client.post("/api/presences", headers=auth_headers(nurse), json=presence(doctor))
        assert response.status_code == 403

    def test_patients_have_no_presence(self, client, auth_headers, secretary, patient):
        response = client.post("/api/presences", headers=auth_headers(secretary), json=presence(patient))
        assert response.status_code == 404


class TestPresenceQueries:

    @pytest.fixture
    def recorded(self, client, auth_headers, secretary, doctor, nurse):
        headers = auth_headers(secretary)
        client.post("/api/presences", headers=headers, json=presence(doctor, "2025-06-02", consultations=8))
        client.post("/api/presences", headers=headers, json=presence(doctor, "2025-06-03", status="late",
                                                                       consultations=5))
        client.post("/api/presences", headers=headers, json=presence(doctor, "2025-06-04", status="absent",
                                                                       reason="Formation"))
        client.post("/api/presences", headers=headers, json=presence(nurse, "2025-06-02"))

    def test_non_manager_only_sees_own(self, client, auth_headers, recorded, nurse):
        response = client.get("/api/presences", headers=auth_headers(nurse))
        assert response.json["count"] == 1
        assert response.json["presences"][0]["user_id"] == nurse.id

    def test_manager_filters(self, client, auth_headers, recorded, secretary, doctor):
        response = client.get("/api/presences", headers=auth_headers(secretary),
                              query_string={"user_id": doctor.id, "date_from": "2025-06-03"})
        assert [p["date"] for p in response.json["presences"]] == ["2025-06-04", "2025-06-03"]

    def test_summary(self, client, auth_headers, recorded, secretary, doctor):
        response = client.get("/api/presences/summary", headers=auth_headers(secretary),
                              query_string={"date_from": "2025-06-01", "date_to": "2025-06-30"})

        assert response.status_code == 200
        entry = next(e for e in response.json["summary"] if e["user_id"] == doctor.id)
        assert entry["present"] == 1
        assert entry["late"] == 1
        assert entry["absent"] == 1
        assert entry["consultations"] == 13
        assert entry["attendance_rate"] == 67

    def test_update_and_delete(self, client, auth_headers, recorded, secretary, nurse):
        presence_id = client.get("/api/presences", headers=auth_headers(nurse)).json["presences"][0]["id"]

        updated = client.put(f"/api/presences/{presence_id}", headers=auth_headers(nurse),
                             json={"end_time": "18:00", "notes": "Garde prolongée"})
        assert updated.status_code == 200
        assert updated.json["presence"]["end_time"] == "18:00"

        assert client.delete(f"/api/presences/{presence_id}", headers=auth_headers(nurse)).status_code == 403
        assert client.delete(f"/api/presences/{presence_id}", headers=auth_headers(secretary)).status_code == 200
