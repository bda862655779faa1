"""Réservation, modification, suppression logique et recherche de rendez-vous."""
import logging
from datetime import datetime, time, timedelta

from errors import ConflictError, InvalidStateError, NotFoundError, ValidationError
from models import TERMINAL_STATUSES, Appointment, AppointmentStatus, AppointmentType, Role, User, db
from services.availability import find_conflicts, lock_practitioner
from services.permissions import Operation, authorize, authorize_booking
from utils import utcnow

logger = logging.getLogger(__name__)

BOOKABLE_STATUSES = (AppointmentStatus.PENDING.value, AppointmentStatus.CONFIRMED.value)


def get_appointment(appointment_id, actor=None):
    appointment = Appointment.query.filter_by(id=appointment_id, deleted=False).first()
    if appointment is None:
        raise NotFoundError("Appointment not found", field="id")
    if actor is not None:
        authorize(actor, appointment, Operation.VIEW)
    return appointment


def get_active_practitioner(practitioner_id):
    practitioner = User.query.filter_by(id=practitioner_id, role=Role.DOCTOR.value, active=True).first()
    if practitioner is None:
        raise NotFoundError("Practitioner not found or inactive", field="practitioner_id")
    return practitioner


def _ensure_available(practitioner_id, start, end, exclude_id=None):
    conflicts = find_conflicts(practitioner_id, start, end, exclude_id, for_update=True)
    if conflicts:
        logger.info("Slot %s-%s unavailable for practitioner %s (conflicts: %s)",
                    start, end, practitioner_id, [c.id for c in conflicts])
        message = "The practitioner already has an appointment in this time slot"
        raise ConflictError(
            "Slot unavailable",
            errors=[
                {"field": "start", "message": message},
                {"field": "end", "message": message},
            ] + [{"field": "conflict", "message": f"appointment {c.id}"} for c in conflicts],
        )


def book(actor, patient_id, practitioner_id, start, end, type=AppointmentType.CONSULTATION.value,
         status=AppointmentStatus.CONFIRMED.value, reason=None, notes=None,
         patient_name=None, patient_phone=None):
    """Crée un rendez-vous après avoir vérifié patient, médecin et créneau.

    La ligne du médecin est verrouillée pendant la vérification puis l'écriture
    afin que deux réservations concurrentes ne voient pas toutes deux le
    créneau comme libre.
    """
    if end <= start:
        raise ValidationError("'end' must be after 'start'", field="end")
    if status not in BOOKABLE_STATUSES:
        raise ValidationError("A new appointment must be pending or confirmed", field="status")
    authorize_booking(actor, patient_id)

    patient = db.session.get(User, patient_id)
    if patient is None or patient.deleted:
        raise NotFoundError("Patient not found with this id", field="patient_id")
    practitioner = get_active_practitioner(practitioner_id)

    lock_practitioner(practitioner.id)
    _ensure_available(practitioner.id, start, end)

    appointment = Appointment(
        patient_id=patient.id,
        patient_name=patient_name or patient.full_name,
        patient_phone=patient_phone or patient.phone,
        practitioner_id=practitioner.id,
        practitioner_name=practitioner.full_name,
        start=start,
        end=end,
        type=type,
        status=status,
        reason=reason,
        notes=notes,
        created_by=actor.id,
        created_at=utcnow(),
    )
    db.session.add(appointment)
    db.session.commit()
    logger.info("Appointment %s booked: practitioner %s, %s-%s", appointment.id, practitioner.id, start, end)
    return appointment


def update(appointment_id, actor, changes, now=None):
    """Applique des modifications partielles.

    Les changements de créneau revérifient la disponibilité en excluant le
    rendez-vous lui-même. Le statut passe par les opérations du cycle de vie, sauf un
    rendez-vous en retard replanifié dans le futur qui redevient confirmé.
    """
    now = now or utcnow()
    appointment = get_appointment(appointment_id)
    authorize(actor, appointment, Operation.UPDATE)

    if appointment.status in TERMINAL_STATUSES:
        raise InvalidStateError(f"Cannot modify an appointment with status {appointment.status}", field="status")

    start = changes.get("start", appointment.start)
    end = changes.get("end", appointment.end)
    if end <= start:
        raise ValidationError("'end' must be after 'start'", field="end")

    if start != appointment.start or end != appointment.end:
        if appointment.actual_start is not None:
            raise InvalidStateError("Cannot reschedule an appointment that has started", field="start")
        lock_practitioner(appointment.practitioner_id)
        _ensure_available(appointment.practitioner_id, start, end, exclude_id=appointment.id)
        appointment.start = start
        appointment.end = end
        # Un retard replanifié dans le futur redevient un rendez-vous confirmé
        if appointment.status == AppointmentStatus.LATE.value and start > now:
            appointment.status = AppointmentStatus.CONFIRMED.value

    for field in ("type", "reason", "notes"):
        if field in changes:
            setattr(appointment, field, changes[field])

    if "attendance_confirmed" in changes:
        confirmed = changes["attendance_confirmed"]
        appointment.attendance_confirmed = confirmed
        if confirmed and appointment.arrival_time is None:
            appointment.arrival_time = changes.get("arrival_time") or now
        elif not confirmed:
            appointment.arrival_time = None
    elif changes.get("arrival_time"):
        appointment.arrival_time = changes["arrival_time"]

    appointment.updated_by = actor.id
    appointment.updated_at = now
    db.session.commit()
    logger.info("Appointment %s updated by user %s", appointment.id, actor.id)
    return appointment


def soft_delete(appointment_id, actor, now=None):
    now = now or utcnow()
    appointment = get_appointment(appointment_id)
    authorize(actor, appointment, Operation.DELETE)

    if now > appointment.start and actor.role != Role.ADMIN:
        raise InvalidStateError(
            "Cannot delete a past appointment. Please contact the administration", field="start")

    appointment.deleted = True
    appointment.deleted_by = actor.id
    appointment.deleted_at = now
    db.session.commit()
    logger.info("Appointment %s soft-deleted by user %s", appointment.id, actor.id)
    return appointment


def search(actor, statuses=None, day=None, practitioner_id=None, patient_id=None, types=None):
    """Requête de liste, restreinte selon le rôle de l'acteur."""
    query = Appointment.query.filter(Appointment.deleted.is_(False))

    if actor.role == Role.PATIENT:
        query = query.filter(Appointment.patient_id == actor.id)
    elif actor.role == Role.DOCTOR:
        query = query.filter(Appointment.practitioner_id == actor.id)

    if statuses:
        query = query.filter(Appointment.status.in_(statuses))
    if day is not None:
        day_start = datetime.combine(day, time.min)
        query = query.filter(Appointment.start >= day_start,
                             Appointment.start < day_start + timedelta(days=1))
    if practitioner_id is not None:
        query = query.filter(Appointment.practitioner_id == practitioner_id)
    if patient_id is not None:
        query = query.filter(Appointment.patient_id == patient_id)
    if types:
        query = query.filter(Appointment.type.in_(types))

    return query.order_by(Appointment.start)
