"""Commandes flask mark-late, mark-missed et create-admin."""
from datetime import datetime, timedelta

import utils
from cli import create_admin_command, mark_late_command, mark_missed_command
from models import Role, User


def test_create_admin(app):
    runner = app.test_cli_runner()
    result = runner.invoke(create_admin_command, ["root@cabinet.test", "supersecret"])

    assert result.exit_code == 0
    user = User.query.filter_by(email="root@cabinet.test").one()
    assert user.role == Role.ADMIN.value


def test_create_admin_rejects_short_password(app):
    result = app.test_cli_runner().invoke(create_admin_command, ["root@cabinet.test", "short"])
    assert result.exit_code != 0
    assert "8 characters" in result.output


def test_sweeps(app, make_appointment, patient, doctor):
    now = utils.utcnow()
    overdue = make_appointment(patient, doctor, start=now - timedelta(minutes=10), end=now + timedelta(minutes=20))
    forgotten = make_appointment(patient, doctor, start=datetime(2020, 1, 6, 9), end=datetime(2020, 1, 6, 9, 30))
    runner = app.test_cli_runner()

    result = runner.invoke(mark_late_command)
    assert "2 appointment(s) marked as late" in result.output

    result = runner.invoke(mark_missed_command)
    assert "1 appointment(s) marked as missed" in result.output
    assert overdue.status == "late"
    assert forgotten.status == "missed"


def test_create_admin_duplicate_email(app, admin):
    result = app.test_cli_runner().invoke(create_admin_command, [admin.email, "supersecret"])
    assert result.exit_code != 0
    assert "already exists" in result.output
    assert User.query.filter_by(role=Role.ADMIN.value).count() == 1
