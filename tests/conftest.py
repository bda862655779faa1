"""
Fixtures communes : application en mémoire (SQLite), utilisateurs par rôle
et en-têtes d'authentification JWT.
"""
from datetime import datetime

import pytest

import utils
from app import create_app
from auth import issue_token
from config import TestConfig
from models import Appointment, Role, User, db

# Lundi 2 juin 2025, 09:00 - 09:30
SLOT_START = datetime(2025, 6, 2, 9, 0)
SLOT_END = datetime(2025, 6, 2, 9, 30)


@pytest.fixture
def app():
    app = create_app(TestConfig())
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def make_user(app):
    counter = {"n": 0}

    def _make_user(role=Role.PATIENT, first_name="Test", last_name=None, email=None,
                   password="password123", specialty=None, active=True, phone=None):
        counter["n"] += 1
        role = getattr(role, "value", role)
        user = User(
            first_name=first_name,
            last_name=last_name or f"{role.capitalize()}{counter['n']}",
            email=email or f"{role}{counter['n']}@cabinet.test",
            phone=phone,
            role=role,
            specialty=specialty or ("Généraliste" if role == Role.DOCTOR.value else None),
            active=active,
        )
        user.set_password(password)
        db.session.add(user)
        db.session.commit()
        return user

    return _make_user


@pytest.fixture
def admin(make_user):
    return make_user(Role.ADMIN, email="admin@cabinet.test")


@pytest.fixture
def doctor(make_user):
    return make_user(Role.DOCTOR, first_name="Marie", last_name="Curie", email="doctor@cabinet.test")


@pytest.fixture
def other_doctor(make_user):
    return make_user(Role.DOCTOR, first_name="Louis", last_name="Pasteur", email="pasteur@cabinet.test")


@pytest.fixture
def secretary(make_user):
    return make_user(Role.SECRETARY, email="secretary@cabinet.test")


@pytest.fixture
def nurse(make_user):
    return make_user(Role.NURSE, email="nurse@cabinet.test")


@pytest.fixture
def patient(make_user):
    return make_user(Role.PATIENT, first_name="Jean", last_name="Dupont", email="patient@cabinet.test")


@pytest.fixture
def other_patient(make_user):
    return make_user(Role.PATIENT, first_name="Paul", last_name="Martin", email="martin@cabinet.test")


@pytest.fixture
def auth_headers(app):
    def _auth_headers(user):
        return {"Authorization": f"Bearer {issue_token(user)}"}
    return _auth_headers


@pytest.fixture
def make_appointment(app):
    """Insère un rendez-vous directement en base, sans passer par les contrôles de réservation."""

    def _make_appointment(patient, practitioner, start=SLOT_START, end=SLOT_END, status="confirmed", **fields):
        appointment = Appointment(
            patient_id=patient.id,
            patient_name=patient.full_name,
            practitioner_id=practitioner.id,
            practitioner_name=practitioner.full_name,
            start=start,
            end=end,
            status=status,
            created_by=fields.pop("created_by", patient.id),
            **fields,
        )
        db.session.add(appointment)
        db.session.commit()
        return appointment

    return _make_appointment


@pytest.fixture
def freeze_now(monkeypatch):
    """Fixe l'heure courante vue par les routes."""
    def _freeze(value):
        monkeypatch.setattr(utils, "utcnow", lambda: value)
    return _freeze
