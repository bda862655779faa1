"""Vérification de la disponibilité d'un médecin sur un créneau.

Deux créneaux se chevauchent si ``existing.start < end`` et
``existing.end > start`` : des créneaux qui se touchent (fin de l'un égale
au début de l'autre) ne sont pas en conflit.
"""
import logging

from models import Appointment, AppointmentStatus, User, db

logger = logging.getLogger(__name__)


def conflicts_query(practitioner_id, start, end, exclude_id=None):
    query = Appointment.query.filter(
        Appointment.practitioner_id == practitioner_id,
        Appointment.status != AppointmentStatus.CANCELLED.value,
        Appointment.deleted.is_(False),
        Appointment.start < end,
        Appointment.end > start,
    )
    if exclude_id is not None:
        query = query.filter(Appointment.id != exclude_id)
    return query


def find_conflicts(practitioner_id, start, end, exclude_id=None, for_update=False):
    """Rendez-vous actifs qui chevauchent [start, end).

    Avec ``for_update``, la lecture est verrouillante : sous MySQL en
    REPEATABLE READ elle voit les rendez-vous validés par une transaction
    concurrente au lieu de l'instantané de début de transaction.
    """
    query = conflicts_query(practitioner_id, start, end, exclude_id).order_by(Appointment.start)
    if for_update:
        query = query.with_for_update()
    return query.all()


def is_available(practitioner_id, start, end, exclude_id=None):
    conflict = conflicts_query(practitioner_id, start, end, exclude_id).first()
    if conflict is not None:
        logger.debug("Practitioner %s busy: %s-%s overlaps %r", practitioner_id, start, end, conflict)
    return conflict is None


def lock_practitioner(practitioner_id):
    """Verrouille la ligne du médecin jusqu'à la fin de la transaction.

    Deux réservations concurrentes pour le même médecin sont ainsi
    sérialisées : la seconde relit les rendez-vous après le commit de la
    première. Sans effet sous SQLite, qui verrouille toute la base en écriture.
    """
    return db.session.execute(
        db.select(User).where(User.id == practitioner_id).with_for_update()
    ).scalar_one_or_none()
