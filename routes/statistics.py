from flask import Blueprint, current_app, g, jsonify, request
from flasgger import swag_from

from auth import login_required
from errors import ForbiddenError, NotFoundError, ValidationError
from models import Role, User
from services.statistics import default_period, general_statistics, practitioner_statistics
from validators import parse_datetime

statistics_bp = Blueprint("statistics", __name__)

PERIOD_PARAMS = [
    {'name': 'start', 'in': 'query', 'type': 'string', 'description': 'Début de la période (par défaut : il y a 30 jours)'},
    {'name': 'end', 'in': 'query', 'type': 'string', 'description': 'Fin de la période (par défaut : maintenant)'}
]


def _requested_period():
    args = request.args
    start = parse_datetime(args['start'], 'start') if args.get('start') else None
    end = parse_datetime(args['end'], 'end') if args.get('end') else None
    start, end = default_period(start, end)
    if end < start:
        raise ValidationError("'end' must be after 'start'", field="end")
    return start, end


@statistics_bp.route("/statistics", methods=["GET"])
@swag_from({
    'tags': ['Statistics'],
    'summary': 'Statistiques générales des rendez-vous (limitées aux siens pour un médecin ou un patient)',
    'parameters': PERIOD_PARAMS,
    'responses': {200: {'description': 'Statistiques de la période'}}
})
@login_required
def get_statistics():
    start, end = _requested_period()
    statistics = general_statistics(
        g.current_user, start, end,
        punctuality_tolerance=current_app.config['PUNCTUALITY_TOLERANCE_MINUTES'])
    return jsonify({"statistics": statistics})


@statistics_bp.route("/statistics/practitioners/<int:practitioner_id>", methods=["GET"])
@swag_from({
    'tags': ['Statistics'],
    'parameters': [{'name': 'practitioner_id', 'in': 'path', 'type': 'integer', 'required': True}] + PERIOD_PARAMS,
    'responses': {
        200: {'description': 'Statistiques du médecin'},
        403: {'description': 'Accès refusé'},
        404: {'description': 'Médecin introuvable ou inactif'}
    }
})
@login_required
def get_practitioner_statistics(practitioner_id):
    user = g.current_user
    if user.role == Role.PATIENT or (user.role == Role.DOCTOR and user.id != practitioner_id):
        raise ForbiddenError("You are not allowed to access these statistics", field="authorization")

    practitioner = User.query.filter_by(id=practitioner_id, role=Role.DOCTOR.value, active=True).first()
    if practitioner is None:
        raise NotFoundError("Practitioner not found or inactive", field="practitioner_id")

    start, end = _requested_period()
    statistics = practitioner_statistics(
        practitioner, start, end,
        punctuality_tolerance=current_app.config['PUNCTUALITY_TOLERANCE_MINUTES'])
    return jsonify({"statistics": statistics})
