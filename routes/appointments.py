from flask import Blueprint, current_app, g, jsonify, request
from flasgger import swag_from

import utils
from auth import login_required
from errors import ForbiddenError, NotFoundError
from models import AppointmentStatus, AppointmentType, Role, User, db
from services import appointments as appointment_service
from services import lifecycle
from services.availability import find_conflicts
from validators import (get_json, parse_bool, parse_choice, parse_choices_csv, parse_date,
                        parse_datetime, parse_int, parse_interval, require)

appointments_bp = Blueprint("appointments", __name__)

APPOINTMENT_ID_PARAM = {
    'name': 'appointment_id',
    'in': 'path',
    'type': 'integer',
    'required': True,
    'description': 'ID du rendez-vous'
}


def _paginate(query):
    page = parse_int(request.args.get('page', 1), 'page', minimum=1)
    limit = parse_int(request.args.get('limit', current_app.config['DEFAULT_PAGE_SIZE']), 'limit', minimum=1)
    pagination = query.paginate(page=page, per_page=limit, error_out=False)
    meta = {"page": page, "limit": limit, "total": pagination.total, "total_pages": pagination.pages}
    if pagination.has_next:
        meta["next"] = page + 1
    if pagination.has_prev:
        meta["previous"] = page - 1
    return [a.to_dict() for a in pagination.items], meta


# Récupérer les rendez-vous (filtrés selon le rôle de l'utilisateur)
@appointments_bp.route("/appointments", methods=["GET"])
@swag_from({
    'tags': ['Appointments'],
    'summary': 'Récupérer les rendez-vous',
    'parameters': [
        {'name': 'status', 'in': 'query', 'type': 'string', 'description': 'Statuts séparés par des virgules'},
        {'name': 'date', 'in': 'query', 'type': 'string', 'description': 'Jour (YYYY-MM-DD)'},
        {'name': 'practitioner_id', 'in': 'query', 'type': 'integer'},
        {'name': 'patient_id', 'in': 'query', 'type': 'integer'},
        {'name': 'type', 'in': 'query', 'type': 'string', 'description': 'Types séparés par des virgules'},
        {'name': 'page', 'in': 'query', 'type': 'integer'},
        {'name': 'limit', 'in': 'query', 'type': 'integer'},
    ],
    'responses': {200: {'description': 'Liste paginée des rendez-vous'}}
})
@login_required
def get_appointments():
    args = request.args
    query = appointment_service.search(
        g.current_user,
        statuses=parse_choices_csv(args['status'], 'status', AppointmentStatus) if args.get('status') else None,
        day=parse_date(args['date'], 'date') if args.get('date') else None,
        practitioner_id=parse_int(args['practitioner_id'], 'practitioner_id') if args.get('practitioner_id') else None,
        patient_id=parse_int(args['patient_id'], 'patient_id') if args.get('patient_id') else None,
        types=parse_choices_csv(args['type'], 'type', AppointmentType) if args.get('type') else None,
    )
    appointments, pagination = _paginate(query)
    return jsonify({"count": len(appointments), "pagination": pagination, "appointments": appointments})


@appointments_bp.route('/appointments', methods=['POST'])
@swag_from({
    'tags': ['Appointments'],
    'summary': 'Créer un rendez-vous',
    'parameters': [
        {
            'name': 'body',
            'in': 'body',
            'required': True,
            'schema': {
                'type': 'object',
                'properties': {
                    'patient_id': {'type': 'integer'},
                    'practitioner_id': {'type': 'integer'},
                    'start': {'type': 'string', 'format': 'date-time'},
                    'end': {'type': 'string', 'format': 'date-time'},
                    'type': {'type': 'string'},
                    'status': {'type': 'string', 'enum': ['pending', 'confirmed']},
                    'reason': {'type': 'string'},
                    'notes': {'type': 'string'},
                    'patient_name': {'type': 'string'},
                    'patient_phone': {'type': 'string'}
                }
            }
        }
    ],
    'responses': {
        201: {'description': 'Rendez-vous créé avec succès'},
        400: {'description': 'Erreur dans les données fournies'},
        404: {'description': 'Patient ou médecin introuvable'},
        409: {'description': 'Créneau indisponible'}
    }
})
@login_required
def create_appointment():
    data = get_json()

    start, end = parse_interval(require(data, 'start'), require(data, 'end'))
    appointment = appointment_service.book(
        g.current_user,
        patient_id=parse_int(require(data, 'patient_id'), 'patient_id'),
        practitioner_id=parse_int(require(data, 'practitioner_id'), 'practitioner_id'),
        start=start,
        end=end,
        type=parse_choice(data.get('type', AppointmentType.CONSULTATION.value), 'type', AppointmentType),
        status=data.get('status', AppointmentStatus.CONFIRMED.value),
        reason=data.get('reason'),
        notes=data.get('notes'),
        patient_name=data.get('patient_name'),
        patient_phone=data.get('patient_phone'),
    )
    return jsonify({"message": "Appointment created successfully!", "appointment": appointment.to_dict()}), 201


@appointments_bp.route('/appointments/availability', methods=['GET'])
@swag_from({
    'tags': ['Appointments'],
    'summary': "Vérifier la disponibilité d'un médecin sur un créneau",
    'parameters': [
        {'name': 'practitioner_id', 'in': 'query', 'type': 'integer', 'required': True},
        {'name': 'start', 'in': 'query', 'type': 'string', 'required': True},
        {'name': 'end', 'in': 'query', 'type': 'string', 'required': True},
        {'name': 'exclude_id', 'in': 'query', 'type': 'integer',
         'description': 'Rendez-vous à ignorer (déplacement)'}
    ],
    'responses': {200: {'description': 'Disponibilité et rendez-vous en conflit'}}
})
@login_required
def check_availability():
    args = request.args
    practitioner_id = parse_int(require(args, 'practitioner_id'), 'practitioner_id')
    start, end = parse_interval(require(args, 'start'), require(args, 'end'))
    exclude_id = parse_int(args['exclude_id'], 'exclude_id') if args.get('exclude_id') else None

    conflicts = find_conflicts(practitioner_id, start, end, exclude_id)
    return jsonify({
        "practitioner_id": practitioner_id,
        "start": start.isoformat(),
        "end": end.isoformat(),
        "available": not conflicts,
        "conflicts": [c.id for c in conflicts],
    })


@appointments_bp.route("/appointments/<int:appointment_id>", methods=["GET"])
@swag_from({
    'tags': ['Appointments'],
    'parameters': [APPOINTMENT_ID_PARAM],
    'responses': {
        200: {'description': 'Détails du rendez-vous'},
        404: {'description': 'Rendez-vous introuvable'}
    }
})
@login_required
def get_appointment(appointment_id):
    appointment = appointment_service.get_appointment(appointment_id, g.current_user)
    return jsonify(appointment.to_dict())


@appointments_bp.route('/appointments/<int:appointment_id>', methods=['PUT'])
@swag_from({
    'tags': ['Appointments'],
    'summary': 'Modifier ou déplacer un rendez-vous',
    'parameters': [
        APPOINTMENT_ID_PARAM,
        {
            'name': 'body',
            'in': 'body',
            'required': True,
            'schema': {
                'type': 'object',
                'properties': {
                    'start': {'type': 'string', 'format': 'date-time'},
                    'end': {'type': 'string', 'format': 'date-time'},
                    'type': {'type': 'string'},
                    'reason': {'type': 'string'},
                    'notes': {'type': 'string'},
                    'attendance_confirmed': {'type': 'boolean'},
                    'arrival_time': {'type': 'string', 'format': 'date-time'}
                }
            }
        }
    ],
    'responses': {
        200: {'description': 'Rendez-vous mis à jour avec succès'},
        404: {'description': 'Rendez-vous introuvable'},
        409: {'description': 'Créneau indisponible'}
    }
})
@login_required
def update_appointment(appointment_id):
    data = get_json()

    changes = {}
    if data.get('start'):
        changes['start'] = parse_datetime(data['start'], 'start')
    if data.get('end'):
        changes['end'] = parse_datetime(data['end'], 'end')
    if 'type' in data:
        changes['type'] = parse_choice(data['type'], 'type', AppointmentType)
    for field in ('reason', 'notes'):
        if field in data:
            changes[field] = data[field]
    if 'attendance_confirmed' in data:
        changes['attendance_confirmed'] = parse_bool(data['attendance_confirmed'], 'attendance_confirmed')
    if data.get('arrival_time'):
        changes['arrival_time'] = parse_datetime(data['arrival_time'], 'arrival_time')

    appointment = appointment_service.update(appointment_id, g.current_user, changes, now=utils.utcnow())
    return jsonify({"message": "Appointment updated successfully!", "appointment": appointment.to_dict()}), 200


# Supprimer un rendez-vous (suppression logique)
@appointments_bp.route("/appointments/<int:appointment_id>", methods=["DELETE"])
@swag_from({
    'tags': ['Appointments'],
    'parameters': [APPOINTMENT_ID_PARAM],
    'responses': {
        200: {'description': 'Rendez-vous supprimé'},
        404: {'description': 'Rendez-vous introuvable'}
    }
})
@login_required
def delete_appointment(appointment_id):
    appointment_service.soft_delete(appointment_id, g.current_user, now=utils.utcnow())
    return jsonify({"message": "Appointment deleted!"})


TRANSITION_RESPONSES = {
    400: {'description': "Opération non autorisée dans l'état actuel"},
    403: {'description': 'Accès refusé'},
    404: {'description': 'Rendez-vous introuvable'}
}


@appointments_bp.route("/appointments/<int:appointment_id>/confirm", methods=["POST"])
@swag_from({
    'tags': ['Appointment lifecycle'],
    'summary': 'Confirmer un rendez-vous en attente',
    'parameters': [APPOINTMENT_ID_PARAM],
    'responses': {200: {'description': 'Rendez-vous confirmé'}, **TRANSITION_RESPONSES}
})
@login_required
def confirm_appointment(appointment_id):
    result = lifecycle.confirm(appointment_id, g.current_user, now=utils.utcnow())
    return jsonify({"message": "Appointment confirmed", **result.to_dict()})


# Marquer un rendez-vous comme commencé
@appointments_bp.route("/appointments/<int:appointment_id>/start", methods=["POST"])
@swag_from({
    'tags': ['Appointment lifecycle'],
    'summary': 'Marquer un rendez-vous comme commencé',
    'parameters': [APPOINTMENT_ID_PARAM],
    'responses': {
        200: {
            'description': 'Rendez-vous commencé',
            'examples': {
                'application/json': {
                    "message": "Appointment marked as started",
                    "status": "in_progress",
                    "late_minutes": 10
                }
            }
        },
        **TRANSITION_RESPONSES
    }
})
@login_required
def start_appointment(appointment_id):
    result = lifecycle.start(appointment_id, g.current_user, now=utils.utcnow())
    return jsonify({"message": "Appointment marked as started", **result.to_dict()})


# Marquer un rendez-vous comme terminé
@appointments_bp.route("/appointments/<int:appointment_id>/finish", methods=["POST"])
@swag_from({
    'tags': ['Appointment lifecycle'],
    'summary': 'Marquer un rendez-vous comme terminé',
    'parameters': [APPOINTMENT_ID_PARAM],
    'responses': {
        200: {
            'description': 'Rendez-vous terminé',
            'examples': {
                'application/json': {
                    "message": "Appointment marked as completed",
                    "status": "completed",
                    "actual_duration_minutes": 32,
                    "overrun_minutes": 2
                }
            }
        },
        **TRANSITION_RESPONSES
    }
})
@login_required
def finish_appointment(appointment_id):
    result = lifecycle.finish(appointment_id, g.current_user, now=utils.utcnow())
    return jsonify({"message": "Appointment marked as completed", **result.to_dict()})


@appointments_bp.route("/appointments/<int:appointment_id>/cancel", methods=["POST"])
@swag_from({
    'tags': ['Appointment lifecycle'],
    'summary': 'Annuler un rendez-vous',
    'parameters': [APPOINTMENT_ID_PARAM],
    'responses': {200: {'description': 'Rendez-vous annulé'}, **TRANSITION_RESPONSES}
})
@login_required
def cancel_appointment(appointment_id):
    result = lifecycle.cancel(appointment_id, g.current_user, now=utils.utcnow())
    return jsonify({"message": "Appointment cancelled", **result.to_dict()})


@appointments_bp.route("/appointments/<int:appointment_id>/missed", methods=["POST"])
@swag_from({
    'tags': ['Appointment lifecycle'],
    'summary': 'Marquer un rendez-vous comme manqué (patient absent)',
    'parameters': [APPOINTMENT_ID_PARAM],
    'responses': {200: {'description': 'Rendez-vous marqué comme manqué'}, **TRANSITION_RESPONSES}
})
@login_required
def missed_appointment(appointment_id):
    result = lifecycle.mark_missed(appointment_id, g.current_user, now=utils.utcnow())
    return jsonify({"message": "Appointment marked as missed", **result.to_dict()})


# Récupérer tous les rendez-vous d'un médecin spécifique par son ID
@appointments_bp.route("/appointments/practitioner/<int:practitioner_id>", methods=["GET"])
@swag_from({
    'tags': ['Appointments'],
    'parameters': [{'name': 'practitioner_id', 'in': 'path', 'type': 'integer', 'required': True}],
    'responses': {200: {'description': "Liste des rendez-vous d'un médecin"}}
})
@login_required
def get_appointments_by_practitioner(practitioner_id):
    user = g.current_user
    if user.role == Role.PATIENT or (user.role == Role.DOCTOR and user.id != practitioner_id):
        raise ForbiddenError("You cannot list another practitioner's appointments", field="authorization")
    if db.session.get(User, practitioner_id) is None:
        raise NotFoundError("Practitioner not found", field="practitioner_id")
    appointments, pagination = _paginate(appointment_service.search(user, practitioner_id=practitioner_id))
    return jsonify({"count": len(appointments), "pagination": pagination, "appointments": appointments})


@appointments_bp.route("/appointments/patient/<int:patient_id>", methods=["GET"])
@swag_from({
    'tags': ['Appointments'],
    'parameters': [{'name': 'patient_id', 'in': 'path', 'type': 'integer', 'required': True}],
    'responses': {200: {'description': "Liste des rendez-vous d'un patient"}}
})
@login_required
def get_appointments_by_patient(patient_id):
    user = g.current_user
    if user.role == Role.PATIENT and user.id != patient_id:
        raise ForbiddenError("You cannot list another patient's appointments", field="authorization")
    if db.session.get(User, patient_id) is None:
        raise NotFoundError("Patient not found", field="patient_id")
    appointments, pagination = _paginate(appointment_service.search(user, patient_id=patient_id))
    return jsonify({"count": len(appointments), "pagination": pagination, "appointments": appointments})
