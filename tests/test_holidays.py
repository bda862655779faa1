"""Jours fériés : calcul de Pâques et génération annuelle."""
from datetime import date

import pytest

from models import Holiday, db
from services.holidays import easter_sunday, french_holidays, generate_holidays


@pytest.mark.parametrize("year,expected", [
    (2024, date(2024, 3, 31)),
    (2025, date(2025, 4, 20)),
    (2026, date(2026, 4, 5)),
    (2038, date(2038, 4, 25)),
])
def test_easter_sunday(year, expected):
    assert easter_sunday(year) == expected


def test_french_holidays_2025():
    holidays = dict(french_holidays(2025))

    assert len(holidays) == 12
    assert holidays[date(2025, 4, 21)] == "Lundi de Pâques"
    assert holidays[date(2025, 5, 29)] == "Jeudi de l'Ascension"
    assert holidays[date(2025, 6, 9)] == "Lundi de Pentecôte"
    assert holidays[date(2025, 7, 14)] == "Fête Nationale"


def test_generate_skips_existing_dates(app, admin):
    db.session.add(Holiday(date=date(2025, 1, 1), label="Nouvel an", created_by=admin.id))
    db.session.commit()

    added, skipped = generate_holidays(2025, created_by=admin.id)

    assert len(added) == 11
    assert [s["date"] for s in skipped] == ["2025-01-01"]
    assert Holiday.query.count() == 12
    assert all(h.recurring for h in added)


def test_generate_twice_adds_nothing(app):
    generate_holidays(2025)
    added, skipped = generate_holidays(2025)
    assert added == []
    assert len(skipped) == 12


class TestHolidayRoutes:

    def test_admin_generates_a_year(self, client, auth_headers, admin):
        response = client.post("/api/settings/holidays/generate", headers=auth_headers(admin), json={"year": 2025})

        assert response.status_code == 200
        assert response.json["added"] == 12
        assert response.json["skipped"] == 0

        listing = client.get("/api/settings/holidays", headers=auth_headers(admin), query_string={"year": 2025})
        assert listing.json["total"] == 12
        assert listing.json["holidays"][0]["date"] == "2025-01-01"

    def test_duplicate_date_returns_409(self, client, auth_headers, admin):
        payload = {"date": "2025-12-24", "label": "Réveillon"}
        assert client.post("/api/settings/holidays", headers=auth_headers(admin), json=payload).status_code == 201
        assert client.post("/api/settings/holidays", headers=auth_headers(admin), json=payload).status_code == 409

    def test_delete_holiday(self, client, auth_headers, admin):
        created = client.post("/api/settings/holidays", headers=auth_headers(admin),
                              json={"date": "2025-12-24", "label": "Réveillon"})
        holiday_id = created.json["holiday"]["id"]

        assert client.delete(f"/api/settings/holidays/{holiday_id}", headers=auth_headers(admin)).status_code == 200
        assert client.delete(f"/api/settings/holidays/{holiday_id}", headers=auth_headers(admin)).status_code == 404

    def test_only_admin_generates(self, client, auth_headers, secretary):
        response = client.post("/api/settings/holidays/generate", headers=auth_headers(secretary),
                               json={"year": 2025})
        assert response.status_code == 403


def test_holidays_sharing_a_date_are_merged():
    # En 2008, Pâques tombe le 23 mars et l'Ascension le 1er mai
    holidays = french_holidays(2008)
    days = [day for day, _ in holidays]

    assert len(holidays) == 11
    assert len(set(days)) == len(days)
    assert dict(holidays)[date(2008, 5, 1)] == "Fête du Travail / Jeudi de l'Ascension"


def test_generate_a_year_with_a_shared_date(app):
    added, skipped = generate_holidays(2008)

    assert len(added) == 11
    assert skipped == []
    assert Holiday.query.count() == 11
