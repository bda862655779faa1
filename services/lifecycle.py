"""Cycle de vie d'un rendez-vous.

Chaque opération vérifie ses gardes (statut courant, heure courante, droits
de l'acteur) avant de modifier quoi que ce soit : une garde non respectée lève
une exception et laisse le statut enregistré inchangé.

    pending ──confirm──> confirmed ──start──> in_progress ──finish──> completed
                            │  ▲
                 mark_late  ▼  │ start
                           late
    confirmed/late ──mark_missed──> missed
    tout statut non terminal ──cancel──> cancelled
"""
import logging
from dataclasses import dataclass
from typing import Optional

from flask import current_app

from errors import InvalidStateError, NotFoundError
from models import TERMINAL_STATUSES, Appointment, AppointmentStatus, Role, db
from services.permissions import Operation, authorize
from utils import utcnow, whole_minutes

logger = logging.getLogger(__name__)

S = AppointmentStatus

NON_TERMINAL = frozenset(status.value for status in S if status.value not in TERMINAL_STATUSES)

# opération -> (statuts de départ autorisés, statut d'arrivée)
TRANSITIONS = {
    'confirm': (frozenset({S.PENDING.value}), S.CONFIRMED),
    'start': (frozenset({S.CONFIRMED.value, S.LATE.value}), S.IN_PROGRESS),
    'finish': (frozenset({S.IN_PROGRESS.value}), S.COMPLETED),
    'cancel': (NON_TERMINAL, S.CANCELLED),
    'mark_late': (frozenset({S.CONFIRMED.value}), S.LATE),
    'mark_missed': (frozenset({S.CONFIRMED.value, S.LATE.value}), S.MISSED),
}


@dataclass
class TransitionResult:
    appointment: Appointment
    late_minutes: Optional[int] = None
    actual_duration_minutes: Optional[int] = None
    overrun_minutes: Optional[int] = None

    @property
    def status(self):
        return self.appointment.status

    def to_dict(self):
        data = {"appointment": self.appointment.to_dict(), "status": self.status}
        if self.late_minutes is not None:
            data["late_minutes"] = self.late_minutes
        if self.actual_duration_minutes is not None:
            data["actual_duration_minutes"] = self.actual_duration_minutes
            data["overrun_minutes"] = max(self.overrun_minutes or 0, 0)
        return data


def can_transition(status, operation):
    sources, _ = TRANSITIONS[operation]
    return status in sources


def _target(operation):
    return TRANSITIONS[operation][1].value


def _load_for_update(appointment_id):
    appointment = db.session.execute(
        db.select(Appointment)
        .where(Appointment.id == appointment_id, Appointment.deleted.is_(False))
        .with_for_update()
    ).scalar_one_or_none()
    if appointment is None:
        raise NotFoundError("Appointment not found", field="id")
    return appointment


def _reject(appointment, operation, message, field="status"):
    logger.info("Rejected %s on appointment %s (status=%s): %s",
                operation, appointment.id, appointment.status, message)
    raise InvalidStateError(message, field=field)


def _touch(appointment, actor, now):
    appointment.updated_by = actor.id
    appointment.updated_at = now


def _commit(appointment, operation, previous):
    db.session.commit()
    logger.info("Appointment %s: %s -> %s (%s)", appointment.id, previous, appointment.status, operation)


def confirm(appointment_id, actor, now=None):
    now = now or utcnow()
    appointment = _load_for_update(appointment_id)
    authorize(actor, appointment, Operation.CONFIRM)
    previous = appointment.status
    if not can_transition(previous, 'confirm'):
        _reject(appointment, 'confirm', f"Only pending appointments can be confirmed. Current status: {previous}")

    appointment.status = _target('confirm')
    _touch(appointment, actor, now)
    _commit(appointment, 'confirm', previous)
    return TransitionResult(appointment)


def start(appointment_id, actor, now=None):
    now = now or utcnow()
    appointment = _load_for_update(appointment_id)
    authorize(actor, appointment, Operation.START)
    previous = appointment.status

    if previous == S.COMPLETED:
        _reject(appointment, 'start', "Cannot start an appointment that is already completed")
    if not can_transition(previous, 'start'):
        _reject(appointment, 'start',
                f"The appointment must be confirmed to be started. Current status: {previous}")
    if now < appointment.start:
        _reject(appointment, 'start', "Cannot start before the scheduled time", field="start")

    appointment.status = _target('start')
    appointment.actual_start = now
    late_minutes = None
    if now > appointment.start:
        late_minutes = whole_minutes(appointment.start, now)
        appointment.late_minutes = late_minutes
    _touch(appointment, actor, now)
    _commit(appointment, 'start', previous)
    return TransitionResult(appointment, late_minutes=late_minutes)


def finish(appointment_id, actor, now=None, overrun_threshold=None):
    now = now or utcnow()
    if overrun_threshold is None:
        overrun_threshold = current_app.config.get("OVERRUN_THRESHOLD_MINUTES", 5)
    appointment = _load_for_update(appointment_id)
    authorize(actor, appointment, Operation.FINISH)
    previous = appointment.status

    if appointment.actual_start is None:
        _reject(appointment, 'finish', "Cannot finish an appointment that has not started")
    if not can_transition(previous, 'finish'):
        _reject(appointment, 'finish',
                f"The appointment must be in progress to be finished. Current status: {previous}")

    duration = whole_minutes(appointment.actual_start, now)
    overrun = duration - appointment.scheduled_minutes

    appointment.status = _target('finish')
    appointment.actual_end = now
    appointment.actual_duration_minutes = duration
    if overrun > 0:
        appointment.overrun_minutes = overrun
        appointment.has_overrun = overrun > overrun_threshold
    _touch(appointment, actor, now)
    _commit(appointment, 'finish', previous)
    if appointment.has_overrun:
        logger.warning("Appointment %s overran by %s minutes", appointment.id, overrun)
    return TransitionResult(appointment, actual_duration_minutes=duration, overrun_minutes=overrun)


def cancel(appointment_id, actor, now=None):
    now = now or utcnow()
    appointment = _load_for_update(appointment_id)
    authorize(actor, appointment, Operation.CANCEL)
    previous = appointment.status

    if not can_transition(previous, 'cancel'):
        _reject(appointment, 'cancel', f"Cannot cancel an appointment with status {previous}")
    if now > appointment.start and actor.role != Role.ADMIN:
        _reject(appointment, 'cancel',
                "Cannot cancel an appointment after its scheduled start. Please contact the administration",
                field="start")

    appointment.status = _target('cancel')
    appointment.cancelled_at = now
    appointment.cancelled_by = actor.id
    _touch(appointment, actor, now)
    _commit(appointment, 'cancel', previous)
    return TransitionResult(appointment)


def mark_missed(appointment_id, actor, now=None):
    now = now or utcnow()
    appointment = _load_for_update(appointment_id)
    authorize(actor, appointment, Operation.MARK_MISSED)
    previous = appointment.status

    if not can_transition(previous, 'mark_missed') or appointment.actual_start is not None:
        _reject(appointment, 'mark_missed', f"Cannot mark an appointment with status {previous} as missed")
    if now <= appointment.end:
        _reject(appointment, 'mark_missed', "Cannot mark as missed before the scheduled end", field="end")

    appointment.status = _target('mark_missed')
    _touch(appointment, actor, now)
    _commit(appointment, 'mark_missed', previous)
    return TransitionResult(appointment)


def _sweep(operation, extra_filter, now):
    sources, target = TRANSITIONS[operation]
    appointments = Appointment.query.filter(
        Appointment.status.in_(sorted(sources)),
        Appointment.deleted.is_(False),
        Appointment.actual_start.is_(None),
        extra_filter,
    ).with_for_update().all()
    for appointment in appointments:
        appointment.status = target.value
        appointment.updated_at = now
    db.session.commit()
    if appointments:
        logger.info("%s: %d appointment(s) -> %s", operation, len(appointments), target.value)
    return len(appointments)


def mark_late_appointments(now=None):
    """Passe en retard les rendez-vous confirmés dont l'heure est dépassée sans avoir commencé."""
    now = now or utcnow()
    return _sweep('mark_late', Appointment.start < now, now)


def mark_missed_appointments(now=None):
    now = now or utcnow()
    return _sweep('mark_missed', Appointment.end < now, now)
