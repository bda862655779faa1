"""Gestion des comptes : création, modification, mot de passe, activation, suppression."""
import logging

from errors import ConflictError, InvalidStateError, NotFoundError, ValidationError
from models import Appointment, AppointmentStatus, Role, User, db
from utils import utcnow

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 8

# Rendez-vous encore attendus : ils bloquent la suppression d'un compte
UPCOMING_STATUSES = (AppointmentStatus.PENDING.value, AppointmentStatus.CONFIRMED.value)


def get_user(user_id):
    user = db.session.get(User, user_id)
    if user is None or user.deleted:
        raise NotFoundError("User not found", field="id")
    return user


def _check_password(password):
    if len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationError(f"The password must contain at least {MIN_PASSWORD_LENGTH} characters",
                              field="password")


def _ensure_email_free(email, user_id=None):
    query = User.query.filter(User.email == email)
    if user_id is not None:
        query = query.filter(User.id != user_id)
    if query.first() is not None:
        raise ConflictError("A user already exists with this email", field="email")


def create_user(first_name, last_name, email, password, role=Role.PATIENT.value, phone=None, specialty=None):
    email = email.strip().lower()
    _ensure_email_free(email)
    if role == Role.DOCTOR and not specialty:
        raise ValidationError("A specialty is required for a doctor", field="specialty")
    _check_password(password)

    user = User(first_name=first_name, last_name=last_name, email=email, phone=phone,
                role=role, specialty=specialty, created_at=utcnow())
    user.set_password(password)
    db.session.add(user)
    db.session.commit()
    logger.info("Created user %s (role=%s)", user.id, user.role)
    return user


def update_user(user_id, actor, changes):
    user = get_user(user_id)

    if "email" in changes:
        changes["email"] = changes["email"].strip().lower()
        _ensure_email_free(changes["email"], user_id=user.id)
    for field in ("first_name", "last_name", "email", "phone", "role", "specialty"):
        if field in changes:
            setattr(user, field, changes[field])
    if user.role == Role.DOCTOR and not user.specialty:
        raise ValidationError("A specialty is required for a doctor", field="specialty")
    if user.role != Role.DOCTOR:
        user.specialty = None

    user.updated_by = actor.id
    user.updated_at = utcnow()
    db.session.commit()
    logger.info("User %s updated by %s (fields: %s)", user.id, actor.id, sorted(changes))
    return user


def reset_password(user_id, actor, password):
    user = get_user(user_id)
    _check_password(password)
    user.set_password(password)
    user.updated_by = actor.id
    user.updated_at = utcnow()
    db.session.commit()
    logger.info("Password of user %s reset by %s", user.id, actor.id)
    return user


def _upcoming_appointments(query, now):
    return query.filter(
        Appointment.deleted.is_(False),
        Appointment.start > now,
        Appointment.status.in_(UPCOMING_STATUSES),
    )


def set_active(user_id, actor, active, now=None):
    """Active ou désactive un compte.

    Désactiver un médecin annule ses rendez-vous à venir : ils ne pourraient
    plus être honorés. Retourne (utilisateur, nombre de rendez-vous annulés).
    """
    now = now or utcnow()
    user = get_user(user_id)
    user.active = active
    user.updated_by = actor.id
    user.updated_at = now

    cancelled = []
    if not active and user.role == Role.DOCTOR:
        cancelled = _upcoming_appointments(
            Appointment.query.filter(Appointment.practitioner_id == user.id), now).all()
        for appointment in cancelled:
            appointment.status = AppointmentStatus.CANCELLED.value
            appointment.cancelled_at = now
            appointment.cancelled_by = actor.id
            appointment.updated_by = actor.id
            appointment.updated_at = now

    db.session.commit()
    logger.info("User %s %s by %s (%d appointment(s) cancelled)",
                user.id, "activated" if active else "deactivated", actor.id, len(cancelled))
    return user, len(cancelled)


def delete_user(user_id, actor, now=None):
    """Suppression logique d'un compte sans rendez-vous à venir."""
    now = now or utcnow()
    user = get_user(user_id)
    if user.id == actor.id:
        raise InvalidStateError("You cannot delete your own account", field="id")

    upcoming = _upcoming_appointments(
        Appointment.query.filter(db.or_(Appointment.practitioner_id == user.id,
                                        Appointment.patient_id == user.id)), now).first()
    if upcoming is not None:
        raise InvalidStateError(
            "This user has upcoming appointments. Cancel or reassign them first", field="appointments")

    user.deleted = True
    user.active = False
    # L'email est libéré pour un futur compte
    user.email = f"deleted.{user.id}.{int(now.timestamp())}.{user.email}"[:120]
    user.updated_by = actor.id
    user.updated_at = now
    db.session.commit()
    logger.info("User %s soft-deleted by %s", user.id, actor.id)
    return user
