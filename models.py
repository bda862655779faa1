from enum import Enum

from flask_sqlalchemy import SQLAlchemy
from werkzeug.security import check_password_hash, generate_password_hash

from utils import isoformat, utcnow, whole_minutes

db = SQLAlchemy()


class Role(str, Enum):
    ADMIN = 'admin'
    DOCTOR = 'doctor'
    NURSE = 'nurse'
    SECRETARY = 'secretary'
    PATIENT = 'patient'


STAFF_ROLES = (Role.ADMIN, Role.DOCTOR, Role.NURSE, Role.SECRETARY)


class AppointmentStatus(str, Enum):
    PENDING = 'pending'
    CONFIRMED = 'confirmed'
    IN_PROGRESS = 'in_progress'
    COMPLETED = 'completed'
    CANCELLED = 'cancelled'
    MISSED = 'missed'
    LATE = 'late'  # confirmé mais pas encore commencé après l'heure prévue


TERMINAL_STATUSES = frozenset({
    AppointmentStatus.COMPLETED.value,
    AppointmentStatus.CANCELLED.value,
    AppointmentStatus.MISSED.value,
})


class AppointmentType(str, Enum):
    CONSULTATION = 'consultation'
    FOLLOW_UP = 'follow_up'
    EMERGENCY = 'emergency'
    OTHER = 'other'


class PresenceStatus(str, Enum):
    PRESENT = 'present'
    LATE = 'late'
    ABSENT = 'absent'


class PlanningType(str, Enum):
    CONSULTATION = 'consultation'
    MEETING = 'reunion'
    OTHER = 'autre'


DEFAULT_NOTIFICATION_SETTINGS = {
    'email_enabled': True,
    'sms_enabled': True,
    'reminder_enabled': True,
    'confirmation_enabled': True,
    'cancellation_enabled': True,
    'modification_enabled': True,
    'reminder_hours_before': 24,
}


class User(db.Model):
    __tablename__ = 'users'

    id = db.Column(db.Integer, primary_key=True)
    first_name = db.Column(db.String(100), nullable=False)
    last_name = db.Column(db.String(100), nullable=False)
    email = db.Column(db.String(120), unique=True, nullable=False)
    phone = db.Column(db.String(30))
    role = db.Column(db.String(20), nullable=False, default=Role.PATIENT.value)
    specialty = db.Column(db.String(100))  # requis pour un médecin
    active = db.Column(db.Boolean, nullable=False, default=True)
    # Suppression logique : le compte est aussi désactivé et son email libéré
    deleted = db.Column(db.Boolean, nullable=False, default=False)
    password_hash = db.Column(db.String(255), nullable=False)
    notification_settings = db.Column(db.JSON)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    updated_by = db.Column(db.Integer)
    updated_at = db.Column(db.DateTime)

    __table_args__ = (
        db.Index('ix_users_role', 'role'),
    )

    @property
    def full_name(self):
        return f"{self.first_name} {self.last_name}".strip()

    @property
    def is_admin(self):
        return self.role == Role.ADMIN

    def set_password(self, password):
        self.password_hash = generate_password_hash(password)

    def check_password(self, password):
        return check_password_hash(self.password_hash, password)

    def to_dict(self):
        return {
            "id": self.id,
            "first_name": self.first_name,
            "last_name": self.last_name,
            "email": self.email,
            "phone": self.phone,
            "role": self.role,
            "specialty": self.specialty,
            "active": self.active,
            "created_at": isoformat(self.created_at),
        }

    def __repr__(self):
        return f'<User {self.id} {self.email} role={self.role}>'


class Appointment(db.Model):
    __tablename__ = 'appointments'

    id = db.Column(db.Integer, primary_key=True)
    patient_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False)
    patient_name = db.Column(db.String(200), nullable=False)
    patient_phone = db.Column(db.String(30))
    practitioner_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False)
    practitioner_name = db.Column(db.String(200), nullable=False)

    start = db.Column(db.DateTime, nullable=False)
    end = db.Column(db.DateTime, nullable=False)
    type = db.Column(db.String(20), nullable=False, default=AppointmentType.CONSULTATION.value)
    status = db.Column(db.String(20), nullable=False, default=AppointmentStatus.PENDING.value)
    reason = db.Column(db.Text)
    notes = db.Column(db.Text)

    # Suivi de la présence du patient
    attendance_confirmed = db.Column(db.Boolean, nullable=False, default=False)
    arrival_time = db.Column(db.DateTime)

    # Renseignés uniquement par start / finish
    actual_start = db.Column(db.DateTime)
    actual_end = db.Column(db.DateTime)
    late_minutes = db.Column(db.Integer)
    actual_duration_minutes = db.Column(db.Integer)
    overrun_minutes = db.Column(db.Integer)
    has_overrun = db.Column(db.Boolean, nullable=False, default=False)

    cancelled_at = db.Column(db.DateTime)
    cancelled_by = db.Column(db.Integer, db.ForeignKey('users.id'))

    # Suppression logique
    deleted = db.Column(db.Boolean, nullable=False, default=False)
    deleted_by = db.Column(db.Integer, db.ForeignKey('users.id'))
    deleted_at = db.Column(db.DateTime)

    created_by = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    updated_by = db.Column(db.Integer, db.ForeignKey('users.id'))
    updated_at = db.Column(db.DateTime)

    patient = db.relationship('User', foreign_keys=[patient_id])
    practitioner = db.relationship('User', foreign_keys=[practitioner_id])

    __table_args__ = (
        db.CheckConstraint(end > start, name='ck_appointment_interval'),
        db.Index('ix_appointments_practitioner_interval', 'practitioner_id', 'start', 'end'),
        db.Index('ix_appointments_patient_start', 'patient_id', 'start'),
        db.Index('ix_appointments_status_start', 'status', 'start'),
    )

    @property
    def scheduled_minutes(self):
        return whole_minutes(self.start, self.end)

    def participant_ids(self):
        return {self.patient_id, self.practitioner_id, self.created_by}

    def to_dict(self):
        return {
            "id": self.id,
            "patient_id": self.patient_id,
            "patient_name": self.patient_name,
            "patient_phone": self.patient_phone,
            "practitioner_id": self.practitioner_id,
            "practitioner_name": self.practitioner_name,
            "start": isoformat(self.start),
            "end": isoformat(self.end),
            "type": self.type,
            "status": self.status,
            "reason": self.reason,
            "notes": self.notes,
            "attendance_confirmed": self.attendance_confirmed,
            "arrival_time": isoformat(self.arrival_time),
            "actual_start": isoformat(self.actual_start),
            "actual_end": isoformat(self.actual_end),
            "late_minutes": self.late_minutes,
            "actual_duration_minutes": self.actual_duration_minutes,
            "overrun_minutes": self.overrun_minutes,
            "has_overrun": self.has_overrun,
            "created_by": self.created_by,
            "created_at": isoformat(self.created_at),
            "updated_by": self.updated_by,
            "updated_at": isoformat(self.updated_at),
        }

    def __repr__(self):
        return f'<Appointment {self.id} - Practitioner {self.practitioner_id} - Patient {self.patient_id}>'


class Presence(db.Model):
    __tablename__ = 'presences'

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False)
    date = db.Column(db.Date, nullable=False)
    start_time = db.Column(db.Time)
    end_time = db.Column(db.Time)
    status = db.Column(db.String(20), nullable=False, default=PresenceStatus.PRESENT.value)
    consultations = db.Column(db.Integer)
    shift = db.Column(db.String(50))  # garde
    reason = db.Column(db.Text)
    notes = db.Column(db.Text)
    created_by = db.Column(db.Integer, db.ForeignKey('users.id'))
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime)

    user = db.relationship('User', foreign_keys=[user_id])

    __table_args__ = (
        db.UniqueConstraint('user_id', 'date', name='unique_user_presence_date'),
    )

    def to_dict(self):
        return {
            "id": self.id,
            "user_id": self.user_id,
            "user_name": self.user.full_name if self.user else None,
            "date": self.date.isoformat(),
            "start_time": self.start_time.strftime("%H:%M") if self.start_time else None,
            "end_time": self.end_time.strftime("%H:%M") if self.end_time else None,
            "status": self.status,
            "consultations": self.consultations,
            "shift": self.shift,
            "reason": self.reason,
            "notes": self.notes,
        }


def default_opening_hours():
    hours = [{"day": day, "open": "08:00", "close": "18:00", "is_open": True} for day in range(1, 6)]
    hours.append({"day": 6, "open": "09:00", "close": "12:00", "is_open": False})
    hours.append({"day": 0, "open": "09:00", "close": "12:00", "is_open": False})
    return hours


class Setting(db.Model):
    __tablename__ = 'settings'

    id = db.Column(db.Integer, primary_key=True)
    opening_hours = db.Column(db.JSON, nullable=False, default=default_opening_hours)
    default_appointment_minutes = db.Column(db.Integer, nullable=False, default=30)
    default_break_minutes = db.Column(db.Integer, nullable=False, default=15)
    cancellation_notice_hours = db.Column(db.Integer, nullable=False, default=24)
    reminder_notice_hours = db.Column(db.Integer, nullable=False, default=24)
    notifications = db.Column(db.JSON, nullable=False, default=lambda: dict(DEFAULT_NOTIFICATION_SETTINGS))
    created_by = db.Column(db.Integer, db.ForeignKey('users.id'))
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    updated_by = db.Column(db.Integer, db.ForeignKey('users.id'))
    updated_at = db.Column(db.DateTime)

    def to_dict(self):
        return {
            "opening_hours": self.opening_hours,
            "default_appointment_minutes": self.default_appointment_minutes,
            "default_break_minutes": self.default_break_minutes,
            "cancellation_notice_hours": self.cancellation_notice_hours,
            "reminder_notice_hours": self.reminder_notice_hours,
            "notifications": self.notifications,
            "updated_at": isoformat(self.updated_at),
        }


class Holiday(db.Model):
    __tablename__ = 'holidays'

    id = db.Column(db.Integer, primary_key=True)
    date = db.Column(db.Date, unique=True, nullable=False)
    label = db.Column(db.String(120), nullable=False)
    recurring = db.Column(db.Boolean, nullable=False, default=False)
    created_by = db.Column(db.Integer, db.ForeignKey('users.id'))
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    def to_dict(self):
        return {
            "id": self.id,
            "date": self.date.isoformat(),
            "label": self.label,
            "recurring": self.recurring,
        }


class Planning(db.Model):
    """Événement du planning du personnel (consultation, réunion...)."""
    __tablename__ = 'plannings'

    id = db.Column(db.Integer, primary_key=True)
    title = db.Column(db.String(200), nullable=False)
    start = db.Column(db.DateTime, nullable=False)
    end = db.Column(db.DateTime, nullable=False)
    type = db.Column(db.String(20), nullable=False, default=PlanningType.CONSULTATION.value)
    staff_id = db.Column(db.Integer, db.ForeignKey('users.id'))
    patient_id = db.Column(db.Integer, db.ForeignKey('users.id'))
    description = db.Column(db.Text)
    status = db.Column(db.String(50))
    created_by = db.Column(db.Integer, db.ForeignKey('users.id'))
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    updated_by = db.Column(db.Integer, db.ForeignKey('users.id'))
    updated_at = db.Column(db.DateTime)

    staff = db.relationship('User', foreign_keys=[staff_id])
    patient = db.relationship('User', foreign_keys=[patient_id])

    __table_args__ = (
        db.CheckConstraint(end > start, name='ck_planning_interval'),
        db.Index('ix_plannings_staff_start', 'staff_id', 'start'),
    )

    def to_dict(self):
        return {
            "id": self.id,
            "title": self.title,
            "start": isoformat(self.start),
            "end": isoformat(self.end),
            "type": self.type,
            "staff_id": self.staff_id,
            "staff_name": self.staff.full_name if self.staff else None,
            "patient_id": self.patient_id,
            "patient_name": self.patient.full_name if self.patient else None,
            "description": self.description,
            "status": self.status,
        }
