"""Statistiques d'activité calculées sur les rendez-vous d'une période."""
import calendar
from datetime import timedelta

from sqlalchemy import func

from models import Appointment, AppointmentStatus, Role, User, db
from utils import isoformat, utcnow

S = AppointmentStatus


def default_period(start=None, end=None):
    # 30 derniers jours par défaut
    end = end or utcnow()
    start = start or end - timedelta(days=30)
    return start, end


def _period_filter(start, end):
    return (
        Appointment.deleted.is_(False),
        Appointment.start >= start,
        Appointment.start <= end,
    )


def _scope_filter(actor):
    if actor is None:
        return ()
    if actor.role == Role.DOCTOR:
        return (Appointment.practitioner_id == actor.id,)
    if actor.role == Role.PATIENT:
        return (Appointment.patient_id == actor.id,)
    return ()


def _count_by(column, filters):
    rows = (
        db.session.query(column, func.count(Appointment.id))
        .filter(*filters)
        .group_by(column)
        .order_by(func.count(Appointment.id).desc())
        .all()
    )
    return [(value, count) for value, count in rows if value is not None]


def _average_duration(appointments):
    durations = [a.actual_duration_minutes for a in appointments
                 if a.status == S.COMPLETED and a.actual_duration_minutes]
    return round(sum(durations) / len(durations)) if durations else 0


def _punctuality_rate(appointments, tolerance_minutes):
    started = [a for a in appointments
               if a.actual_start is not None and a.status in (S.COMPLETED.value, S.IN_PROGRESS.value)]
    if not started:
        return 0
    tolerance = timedelta(minutes=tolerance_minutes)
    punctual = sum(1 for a in started if a.actual_start - a.start <= tolerance)
    return round(punctual * 100 / len(started))


def _by_weekday(appointments):
    counts = {}
    for appointment in appointments:
        weekday = appointment.start.isoweekday()
        counts[weekday] = counts.get(weekday, 0) + 1
    return [
        {"day": day, "day_name": calendar.day_name[day - 1], "count": counts[day]}
        for day in sorted(counts)
    ]


def _top_practitioners(filters, limit=5):
    rows = (
        db.session.query(User.id, User.first_name, User.last_name, User.specialty,
                         func.count(Appointment.id).label("count"))
        .join(Appointment, Appointment.practitioner_id == User.id)
        .filter(*filters)
        .group_by(User.id, User.first_name, User.last_name, User.specialty)
        .order_by(func.count(Appointment.id).desc())
        .limit(limit)
        .all()
    )
    return [
        {"id": row.id, "name": f"{row.first_name} {row.last_name}", "specialty": row.specialty,
         "count": row.count}
        for row in rows
    ]


def _frequent_patients(filters, limit=10):
    rows = (
        db.session.query(User.id, User.first_name, User.last_name, User.phone,
                         func.count(Appointment.id).label("count"),
                         func.max(Appointment.start).label("last_appointment"))
        .join(Appointment, Appointment.patient_id == User.id)
        .filter(*filters)
        .group_by(User.id, User.first_name, User.last_name, User.phone)
        .order_by(func.count(Appointment.id).desc())
        .limit(limit)
        .all()
    )
    return [
        {"id": row.id, "name": f"{row.first_name} {row.last_name}", "phone": row.phone,
         "count": row.count, "last_appointment": isoformat(row.last_appointment)}
        for row in rows
    ]


def _period(start, end):
    return {"start": isoformat(start), "end": isoformat(end), "days": (end - start).days + 1}


def general_statistics(actor, start, end, punctuality_tolerance=5):
    filters = _period_filter(start, end) + _scope_filter(actor)
    appointments = Appointment.query.filter(*filters).all()
    by_status = _count_by(Appointment.status, filters)
    status_counts = dict(by_status)

    return {
        "period": _period(start, end),
        "summary": {
            "total": len(appointments),
            "confirmed": status_counts.get(S.CONFIRMED.value, 0),
            "completed": status_counts.get(S.COMPLETED.value, 0),
            "cancelled": status_counts.get(S.CANCELLED.value, 0),
            "average_duration_minutes": _average_duration(appointments),
            "punctuality_rate": _punctuality_rate(appointments, punctuality_tolerance),
        },
        "by_weekday": _by_weekday(appointments),
        "by_type": [{"type": t, "count": c} for t, c in _count_by(Appointment.type, filters)],
        "by_status": [{"status": s, "count": c} for s, c in by_status],
        "top_practitioners": _top_practitioners(filters),
        "frequent_patients": _frequent_patients(filters),
    }


def practitioner_statistics(practitioner, start, end, punctuality_tolerance=5):
    filters = _period_filter(start, end) + (Appointment.practitioner_id == practitioner.id,)
    appointments = Appointment.query.filter(*filters).all()
    by_status = _count_by(Appointment.status, filters)

    completed = [a for a in appointments if a.status == S.COMPLETED]
    scheduled_total = sum(a.scheduled_minutes for a in completed)
    actual_total = sum(a.actual_duration_minutes or 0 for a in completed)
    utilization = round(actual_total * 100 / scheduled_total) if scheduled_total else 0

    return {
        "practitioner": {
            "id": practitioner.id,
            "full_name": practitioner.full_name,
            "specialty": practitioner.specialty,
        },
        "period": _period(start, end),
        "summary": {
            "total": len(appointments),
            "completed": len(completed),
            "average_duration_minutes": _average_duration(appointments),
            "punctuality_rate": _punctuality_rate(appointments, punctuality_tolerance),
            "utilization_rate": utilization,
            "overruns": sum(1 for a in completed if a.has_overrun),
        },
        "by_weekday": _by_weekday(appointments),
        "by_type": [{"type": t, "count": c} for t, c in _count_by(Appointment.type, filters)],
        "by_status": [{"status": s, "count": c} for s, c in by_status],
        "frequent_patients": _frequent_patients(filters),
    }
