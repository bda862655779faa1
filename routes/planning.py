import logging
from datetime import datetime, time, timedelta

from flask import Blueprint, g, jsonify, request
from flasgger import swag_from

import utils
from auth import login_required, roles_required
from errors import NotFoundError, ValidationError
from models import STAFF_ROLES, Planning, PlanningType, Role, User, db
from validators import get_json, parse_choice, parse_date, parse_datetime, parse_int, require

logger = logging.getLogger(__name__)

planning_bp = Blueprint("planning", __name__)

# Rôles autorisés à créer ou modifier un événement
EDITOR_ROLES = (Role.ADMIN, Role.DOCTOR, Role.SECRETARY)

MIN_TITLE_LENGTH = 3

PLANNING_ID_PARAM = {'name': 'planning_id', 'in': 'path', 'type': 'integer', 'required': True}

PLANNING_SCHEMA = {
    'type': 'object',
    'properties': {
        'title': {'type': 'string', 'example': 'Réunion d\'équipe'},
        'start': {'type': 'string', 'format': 'date-time'},
        'end': {'type': 'string', 'format': 'date-time'},
        'type': {'type': 'string', 'enum': [t.value for t in PlanningType]},
        'staff_id': {'type': 'integer'},
        'patient_id': {'type': 'integer'},
        'description': {'type': 'string'},
        'status': {'type': 'string'}
    }
}


def _get_planning(planning_id):
    planning = db.session.get(Planning, planning_id)
    if planning is None:
        raise NotFoundError("Planning event not found", field="id")
    return planning


def _get_member(user_id, field, roles=None):
    user = db.session.get(User, parse_int(user_id, field))
    if user is None or user.deleted or (roles is not None and user.role not in roles):
        raise NotFoundError(f"No user found for '{field}'", field=field)
    return user


def _apply(planning, data):
    if 'title' in data:
        title = (data['title'] or '').strip()
        if len(title) < MIN_TITLE_LENGTH:
            raise ValidationError(f"The title must contain at least {MIN_TITLE_LENGTH} characters", field="title")
        planning.title = title
    if 'start' in data:
        planning.start = parse_datetime(data['start'], 'start')
    if 'end' in data:
        planning.end = parse_datetime(data['end'], 'end')
    if planning.end <= planning.start:
        raise ValidationError("'end' must be after 'start'", field="end")
    if 'type' in data:
        planning.type = parse_choice(data['type'], 'type', PlanningType)
    if 'staff_id' in data:
        planning.staff_id = None if data['staff_id'] is None else \
            _get_member(data['staff_id'], 'staff_id', {role.value for role in STAFF_ROLES}).id
    if 'patient_id' in data:
        planning.patient_id = None if data['patient_id'] is None else \
            _get_member(data['patient_id'], 'patient_id', {Role.PATIENT.value}).id
    for field in ('description', 'status'):
        if field in data:
            setattr(planning, field, data[field])


@planning_bp.route("/planning", methods=["GET"])
@swag_from({
    'tags': ['Planning'],
    'summary': 'Récupérer les événements du planning',
    'parameters': [
        {'name': 'staff_id', 'in': 'query', 'type': 'integer'},
        {'name': 'date_from', 'in': 'query', 'type': 'string'},
        {'name': 'date_to', 'in': 'query', 'type': 'string'},
        {'name': 'type', 'in': 'query', 'type': 'string'}
    ],
    'responses': {200: {'description': 'Liste des événements'}}
})
@login_required
def get_plannings():
    args = request.args
    query = Planning.query
    if args.get('staff_id'):
        query = query.filter(Planning.staff_id == parse_int(args['staff_id'], 'staff_id'))
    if args.get('date_from'):
        day = parse_date(args['date_from'], 'date_from')
        query = query.filter(Planning.end > datetime.combine(day, time.min))
    if args.get('date_to'):
        day = parse_date(args['date_to'], 'date_to')
        query = query.filter(Planning.start < datetime.combine(day + timedelta(days=1), time.min))
    if args.get('type'):
        query = query.filter(Planning.type == parse_choice(args['type'], 'type', PlanningType))

    plannings = query.order_by(Planning.start).all()
    return jsonify({"count": len(plannings), "plannings": [p.to_dict() for p in plannings]})


# Créer un événement de planning
@planning_bp.route("/planning", methods=["POST"])
@swag_from({
    'tags': ['Planning'],
    'summary': 'Créer un créneau de planning',
    'parameters': [{'name': 'body', 'in': 'body', 'required': True, 'schema': PLANNING_SCHEMA}],
    'responses': {201: {'description': 'Événement créé'}, 400: {'description': 'Données invalides'}}
})
@roles_required(*EDITOR_ROLES)
def create_planning():
    data = get_json()
    require(data, 'title')
    planning = Planning(
        start=parse_datetime(require(data, 'start'), 'start'),
        end=parse_datetime(require(data, 'end'), 'end'),
        type=PlanningType.CONSULTATION.value,
        created_by=g.current_user.id,
        created_at=utils.utcnow(),
    )
    _apply(planning, data)
    db.session.add(planning)
    db.session.commit()
    logger.info("Planning event %s created by %s", planning.id, g.current_user.id)
    return jsonify({"message": "Planning event created", "planning": planning.to_dict()}), 201


@planning_bp.route("/planning/<int:planning_id>", methods=["GET"])
@swag_from({
    'tags': ['Planning'],
    'parameters': [PLANNING_ID_PARAM],
    'responses': {200: {'description': 'Événement'}, 404: {'description': 'Événement non trouvé'}}
})
@login_required
def get_planning(planning_id):
    return jsonify({"planning": _get_planning(planning_id).to_dict()})


# Mettre à jour un événement
@planning_bp.route("/planning/<int:planning_id>", methods=["PUT"])
@swag_from({
    'tags': ['Planning'],
    'summary': 'Modifier un créneau de planning',
    'parameters': [PLANNING_ID_PARAM, {'name': 'body', 'in': 'body', 'required': True, 'schema': PLANNING_SCHEMA}],
    'responses': {200: {'description': 'Événement mis à jour'}, 404: {'description': 'Événement non trouvé'}}
})
@roles_required(*EDITOR_ROLES)
def update_planning(planning_id):
    planning = _get_planning(planning_id)
    _apply(planning, get_json())
    planning.updated_by = g.current_user.id
    planning.updated_at = utils.utcnow()
    db.session.commit()
    return jsonify({"message": "Planning event updated", "planning": planning.to_dict()})


@planning_bp.route("/planning/<int:planning_id>", methods=["DELETE"])
@swag_from({
    'tags': ['Planning'],
    'summary': 'Supprimer un créneau de planning',
    'parameters': [PLANNING_ID_PARAM],
    'responses': {200: {'description': 'Événement supprimé'}, 404: {'description': 'Événement non trouvé'}}
})
@roles_required(Role.ADMIN)
def delete_planning(planning_id):
    planning = _get_planning(planning_id)
    db.session.delete(planning)
    db.session.commit()
    logger.info("Planning event %s deleted by %s", planning_id, g.current_user.id)
    return jsonify({"message": "Planning event deleted"})
