"""Paramètres du cabinet et préférences de notification."""
from models import DEFAULT_NOTIFICATION_SETTINGS


class TestPracticeSettings:

    def test_defaults_created_on_first_read(self, client, auth_headers, admin):
        response = client.get("/api/settings", headers=auth_headers(admin))

        assert response.status_code == 200
        settings = response.json["settings"]
        assert settings["default_appointment_minutes"] == 30
        assert settings["cancellation_notice_hours"] == 24
        assert len(settings["opening_hours"]) == 7

    def test_update(self, client, auth_headers, admin):
        response = client.put("/api/settings", headers=auth_headers(admin), json={
            "default_appointment_minutes": 20,
            "opening_hours": [{"day": 1, "open": "07:30", "close": "19:00"}],
            "notifications": {"sms_enabled": False},
        })

        assert response.status_code == 200
        settings = response.json["settings"]
        assert settings["default_appointment_minutes"] == 20
        assert settings["opening_hours"] == [{"day": 1, "open": "07:30", "close": "19:00", "is_open": True}]
        assert settings["notifications"]["sms_enabled"] is False
        assert settings["notifications"]["email_enabled"] is True

    def test_closing_before_opening_is_rejected(self, client, auth_headers, admin):
        response = client.put("/api/settings", headers=auth_headers(admin), json={
            "opening_hours": [{"day": 2, "open": "18:00", "close": "08:00"}]})
        assert response.status_code == 400
        assert response.json["errors"][0]["field"] == "opening_hours.close"

    def test_negative_duration_is_rejected(self, client, auth_headers, admin):
        response = client.put("/api/settings", headers=auth_headers(admin),
                              json={"default_break_minutes": -5})
        assert response.status_code == 400

    def test_non_admin_is_forbidden(self, client, auth_headers, doctor):
        assert client.get("/api/settings", headers=auth_headers(doctor)).status_code == 403


class TestNotificationPreferences:

    def test_defaults(self, client, auth_headers, patient):
        response = client.get("/api/settings/notifications", headers=auth_headers(patient))
        assert response.json["settings"] == DEFAULT_NOTIFICATION_SETTINGS

    def test_update_merges_with_defaults(self, client, auth_headers, patient):
        response = client.put("/api/settings/notifications", headers=auth_headers(patient),
                              json={"reminder_hours_before": 2, "email_enabled": False})

        assert response.status_code == 200
        assert response.json["settings"]["reminder_hours_before"] == 2
        assert response.json["settings"]["email_enabled"] is False
        assert response.json["settings"]["sms_enabled"] is True

    def test_unknown_key_is_rejected(self, client, auth_headers, patient):
        response = client.put("/api/settings/notifications", headers=auth_headers(patient),
                              json={"pigeon_enabled": True})
        assert response.status_code == 400
