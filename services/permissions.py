"""Droits d'accès aux rendez-vous : (acteur, rendez-vous, opération) -> autorisé ou non."""
from enum import Enum

from errors import ForbiddenError
from models import Role


class Operation(str, Enum):
    VIEW = 'view'
    UPDATE = 'update'
    CONFIRM = 'confirm'
    START = 'start'
    FINISH = 'finish'
    CANCEL = 'cancel'
    MARK_MISSED = 'mark_missed'
    DELETE = 'delete'


# Rôles qui agissent sur n'importe quel rendez-vous, par opération
ROLE_GRANTS = {
    Operation.VIEW: {Role.ADMIN, Role.SECRETARY, Role.NURSE},
    Operation.UPDATE: {Role.ADMIN, Role.SECRETARY},
    Operation.CONFIRM: {Role.ADMIN, Role.SECRETARY},
    Operation.START: {Role.ADMIN},
    Operation.FINISH: {Role.ADMIN},
    Operation.CANCEL: {Role.ADMIN, Role.SECRETARY},
    Operation.MARK_MISSED: {Role.ADMIN, Role.SECRETARY},
    Operation.DELETE: {Role.ADMIN},
}

# Opérations réservées au médecin du rendez-vous parmi les participants
PRACTITIONER_ONLY = {Operation.START, Operation.FINISH, Operation.CONFIRM, Operation.MARK_MISSED}


def is_allowed(actor, appointment, operation):
    operation = Operation(operation)
    if actor.role in {role.value for role in ROLE_GRANTS[operation]}:
        return True
    if operation in PRACTITIONER_ONLY:
        return actor.id == appointment.practitioner_id
    return actor.id in appointment.participant_ids()


def authorize(actor, appointment, operation):
    if not is_allowed(actor, appointment, operation):
        raise ForbiddenError(
            f"You are not allowed to {Operation(operation).value.replace('_', ' ')} this appointment",
            field="authorization",
        )


def authorize_booking(actor, patient_id):
    # Un patient ne réserve que pour lui-même
    if actor.role == Role.PATIENT and actor.id != patient_id:
        raise ForbiddenError("Patients can only book appointments for themselves", field="patient_id")
