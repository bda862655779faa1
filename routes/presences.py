from flask import Blueprint, g, jsonify, request
from flasgger import swag_from
from sqlalchemy import func

import utils
from auth import login_required
from errors import ConflictError, ForbiddenError, NotFoundError, ValidationError
from models import STAFF_ROLES, Presence, PresenceStatus, Role, User, db
from validators import get_json, parse_choice, parse_date, parse_int, parse_time, require

presences_bp = Blueprint("presences", __name__)

# Rôles autorisés à saisir la présence de n'importe quel membre du personnel
MANAGER_ROLES = (Role.ADMIN.value, Role.SECRETARY.value)

PRESENCE_SCHEMA = {
    'type': 'object',
    'properties': {
        'user_id': {'type': 'integer'},
        'date': {'type': 'string', 'format': 'date'},
        'start_time': {'type': 'string', 'example': '08:30'},
        'end_time': {'type': 'string', 'example': '17:00'},
        'status': {'type': 'string', 'enum': ['present', 'late', 'absent']},
        'consultations': {'type': 'integer'},
        'shift': {'type': 'string'},
        'reason': {'type': 'string'},
        'notes': {'type': 'string'}
    }
}


def _is_manager(user):
    return user.role in MANAGER_ROLES


def _get_presence(presence_id):
    presence = db.session.get(Presence, presence_id)
    if presence is None:
        raise NotFoundError("Presence not found", field="id")
    user = g.current_user
    if not _is_manager(user) and presence.user_id != user.id:
        raise ForbiddenError("You can only access your own presences", field="authorization")
    return presence


def _apply(presence, data):
    if 'start_time' in data:
        presence.start_time = parse_time(data['start_time'], 'start_time')
    if 'end_time' in data:
        presence.end_time = parse_time(data['end_time'], 'end_time')
    if presence.start_time and presence.end_time and presence.end_time <= presence.start_time:
        raise ValidationError("'end_time' must be after 'start_time'", field="end_time")
    if 'status' in data:
        presence.status = parse_choice(data['status'], 'status', PresenceStatus)
    if data.get('consultations') is not None:
        presence.consultations = parse_int(data['consultations'], 'consultations', minimum=0)
    for field in ('shift', 'reason', 'notes'):
        if field in data:
            setattr(presence, field, data[field])


@presences_bp.route("/presences", methods=["GET"])
@swag_from({
    'tags': ['Presences'],
    'summary': 'Récupérer les présences du personnel',
    'parameters': [
        {'name': 'user_id', 'in': 'query', 'type': 'integer'},
        {'name': 'date_from', 'in': 'query', 'type': 'string'},
        {'name': 'date_to', 'in': 'query', 'type': 'string'},
        {'name': 'status', 'in': 'query', 'type': 'string'}
    ],
    'responses': {200: {'description': 'Liste des présences'}}
})
@login_required
def get_presences():
    args = request.args
    user = g.current_user
    query = Presence.query

    if not _is_manager(user):
        query = query.filter(Presence.user_id == user.id)
    elif args.get('user_id'):
        query = query.filter(Presence.user_id == parse_int(args['user_id'], 'user_id'))
    if args.get('date_from'):
        query = query.filter(Presence.date >= parse_date(args['date_from'], 'date_from'))
    if args.get('date_to'):
        query = query.filter(Presence.date <= parse_date(args['date_to'], 'date_to'))
    if args.get('status'):
        query = query.filter(Presence.status == parse_choice(args['status'], 'status', PresenceStatus))

    presences = query.order_by(Presence.date.desc(), Presence.user_id).all()
    return jsonify({"count": len(presences), "presences": [p.to_dict() for p in presences]})


# Créer une présence
@presences_bp.route("/presences", methods=["POST"])
@swag_from({
    'tags': ['Presences'],
    'parameters': [{'name': 'body', 'in': 'body', 'required': True, 'schema': PRESENCE_SCHEMA}],
    'responses': {
        201: {'description': 'Présence créée'},
        409: {'description': 'Une présence existe déjà pour cet utilisateur à cette date'}
    }
})
@login_required
def create_presence():
    data = get_json()
    user = g.current_user

    user_id = parse_int(data.get('user_id', user.id), 'user_id')
    if user_id != user.id and not _is_manager(user):
        raise ForbiddenError("You can only record your own presence", field="user_id")
    staff = db.session.get(User, user_id)
    if staff is None or staff.role not in {role.value for role in STAFF_ROLES}:
        raise NotFoundError("Staff member not found", field="user_id")

    day = parse_date(require(data, 'date'), 'date')
    if Presence.query.filter_by(user_id=user_id, date=day).first() is not None:
        raise ConflictError("A presence already exists for this user and date", field="date")

    presence = Presence(user_id=user_id, date=day, created_by=user.id, created_at=utils.utcnow())
    _apply(presence, data)
    db.session.add(presence)
    db.session.commit()
    return jsonify({"message": "Presence created", "presence": presence.to_dict()}), 201


@presences_bp.route("/presences/<int:presence_id>", methods=["GET"])
@swag_from({
    'tags': ['Presences'],
    'parameters': [{'name': 'presence_id', 'in': 'path', 'type': 'integer', 'required': True}],
    'responses': {200: {'description': 'Présence'}, 404: {'description': 'Présence introuvable'}}
})
@login_required
def get_presence(presence_id):
    return jsonify(_get_presence(presence_id).to_dict())


# Mettre à jour une présence
@presences_bp.route("/presences/<int:presence_id>", methods=["PUT"])
@swag_from({
    'tags': ['Presences'],
    'parameters': [
        {'name': 'presence_id', 'in': 'path', 'type': 'integer', 'required': True},
        {'name': 'body', 'in': 'body', 'required': True, 'schema': PRESENCE_SCHEMA}
    ],
    'responses': {200: {'description': 'Présence mise à jour'}, 404: {'description': 'Présence introuvable'}}
})
@login_required
def update_presence(presence_id):
    presence = _get_presence(presence_id)
    _apply(presence, get_json())
    presence.updated_at = utils.utcnow()
    db.session.commit()
    return jsonify({"message": "Presence updated", "presence": presence.to_dict()})


@presences_bp.route("/presences/<int:presence_id>", methods=["DELETE"])
@swag_from({
    'tags': ['Presences'],
    'parameters': [{'name': 'presence_id', 'in': 'path', 'type': 'integer', 'required': True}],
    'responses': {200: {'description': 'Présence supprimée'}, 404: {'description': 'Présence introuvable'}}
})
@login_required
def delete_presence(presence_id):
    if not _is_manager(g.current_user):
        raise ForbiddenError("Only administrators and secretaries can delete presences", field="authorization")
    presence = _get_presence(presence_id)
    db.session.delete(presence)
    db.session.commit()
    return jsonify({"message": "Presence deleted"})


# Taux de présence par membre du personnel sur une période
@presences_bp.route("/presences/summary", methods=["GET"])
@swag_from({
    'tags': ['Presences'],
    'parameters': [
        {'name': 'date_from', 'in': 'query', 'type': 'string', 'required': True},
        {'name': 'date_to', 'in': 'query', 'type': 'string', 'required': True}
    ],
    'responses': {200: {'description': 'Taux de présence par membre du personnel'}}
})
@login_required
def presence_summary():
    args = request.args
    date_from = parse_date(require(args, 'date_from'), 'date_from')
    date_to = parse_date(require(args, 'date_to'), 'date_to')
    if date_to < date_from:
        raise ValidationError("'date_to' must not be before 'date_from'", field="date_to")

    filters = [Presence.date >= date_from, Presence.date <= date_to]
    if not _is_manager(g.current_user):
        filters.append(Presence.user_id == g.current_user.id)

    rows = (
        db.session.query(Presence.user_id, Presence.status, func.count(Presence.id),
                         func.coalesce(func.sum(Presence.consultations), 0))
        .filter(*filters)
        .group_by(Presence.user_id, Presence.status)
        .all()
    )

    summary = {}
    for user_id, status, count, consultations in rows:
        entry = summary.setdefault(user_id, {
            "user_id": user_id, "present": 0, "late": 0, "absent": 0, "consultations": 0})
        entry[status] = count
        entry["consultations"] += int(consultations)

    users = {u.id: u for u in User.query.filter(User.id.in_(list(summary))).all()} if summary else {}
    result = []
    for user_id, entry in sorted(summary.items()):
        recorded = entry["present"] + entry["late"] + entry["absent"]
        entry["user_name"] = users[user_id].full_name if user_id in users else None
        entry["days_recorded"] = recorded
        entry["attendance_rate"] = round((entry["present"] + entry["late"]) * 100 / recorded) if recorded else 0
        result.append(entry)

    return jsonify({"date_from": date_from.isoformat(), "date_to": date_to.isoformat(), "summary": result})
