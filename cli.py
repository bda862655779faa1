"""Commandes `flask` pour les tâches planifiées et l'administration."""
import click
from flask.cli import with_appcontext

from errors import ApiError
from models import Role
from services.users import create_user
from services.lifecycle import mark_late_appointments, mark_missed_appointments


@click.command("mark-late")
@with_appcontext
def mark_late_command():
    """Passe en retard les rendez-vous confirmés dont l'heure de début est dépassée."""
    count = mark_late_appointments()
    click.echo(f"{count} appointment(s) marked as late")


@click.command("mark-missed")
@with_appcontext
def mark_missed_command():
    """Passe en manqué les rendez-vous jamais commencés dont l'heure de fin est dépassée."""
    count = mark_missed_appointments()
    click.echo(f"{count} appointment(s) marked as missed")


@click.command("create-admin")
@click.argument("email")
@click.argument("password")
@click.option("--first-name", default="Admin")
@click.option("--last-name", default="Cabinet")
@with_appcontext
def create_admin_command(email, password, first_name, last_name):
    try:
        user = create_user(first_name, last_name, email, password, role=Role.ADMIN.value)
    except ApiError as e:
        raise click.ClickException(e.message)
    click.echo(f"Administrator {user.email} created (id={user.id})")


def register_commands(app):
    app.cli.add_command(mark_late_command)
    app.cli.add_command(mark_missed_command)
    app.cli.add_command(create_admin_command)
