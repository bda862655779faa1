from datetime import date

from flask import Blueprint, g, jsonify, request
from flasgger import swag_from

import utils
from auth import login_required, roles_required
from errors import ConflictError, NotFoundError, ValidationError
from models import DEFAULT_NOTIFICATION_SETTINGS, Holiday, Role, Setting, db
from services.holidays import generate_holidays
from validators import get_json, parse_bool, parse_date, parse_int, parse_time, require

settings_bp = Blueprint("settings", __name__)

INTEGER_SETTINGS = (
    'default_appointment_minutes',
    'default_break_minutes',
    'cancellation_notice_hours',
    'reminder_notice_hours',
)


def get_or_create_settings(created_by=None):
    settings = Setting.query.first()
    if settings is None:
        settings = Setting(created_by=created_by, created_at=utils.utcnow())
        db.session.add(settings)
        db.session.commit()
    return settings


def _parse_opening_hours(value):
    if not isinstance(value, list):
        raise ValidationError("'opening_hours' must be a list", field="opening_hours")
    hours = []
    for entry in value:
        if not isinstance(entry, dict):
            raise ValidationError("Each opening hour must be an object", field="opening_hours")
        day = parse_int(require(entry, 'day'), 'opening_hours.day', minimum=0)
        if day > 6:
            raise ValidationError("'day' must be between 0 (Sunday) and 6", field="opening_hours.day")
        opens = parse_time(require(entry, 'open'), 'opening_hours.open')
        closes = parse_time(require(entry, 'close'), 'opening_hours.close')
        if closes <= opens:
            raise ValidationError("Closing time must be after opening time", field="opening_hours.close")
        hours.append({
            "day": day,
            "open": opens.strftime("%H:%M"),
            "close": closes.strftime("%H:%M"),
            "is_open": parse_bool(entry.get('is_open', True), 'opening_hours.is_open'),
        })
    return hours


def _parse_notifications(value, base):
    if not isinstance(value, dict):
        raise ValidationError("'notifications' must be an object", field="notifications")
    merged = dict(base)
    for key, flag in value.items():
        if key not in DEFAULT_NOTIFICATION_SETTINGS:
            raise ValidationError(f"Unknown notification setting '{key}'", field=f"notifications.{key}")
        if key == 'reminder_hours_before':
            merged[key] = parse_int(flag, f"notifications.{key}", minimum=0)
        else:
            merged[key] = parse_bool(flag, f"notifications.{key}")
    return merged


# Paramètres du cabinet (administrateur uniquement)
@settings_bp.route("/settings", methods=["GET"])
@swag_from({
    'tags': ['Settings'],
    'responses': {200: {'description': 'Paramètres du cabinet (créés avec les valeurs par défaut au premier accès)'}}
})
@roles_required(Role.ADMIN)
def get_settings():
    settings = get_or_create_settings(created_by=g.current_user.id)
    return jsonify({"settings": settings.to_dict()})


@settings_bp.route("/settings", methods=["PUT"])
@swag_from({
    'tags': ['Settings'],
    'parameters': [{
        'name': 'body',
        'in': 'body',
        'required': True,
        'schema': {
            'type': 'object',
            'properties': {
                'opening_hours': {'type': 'array', 'items': {'type': 'object'}},
                'default_appointment_minutes': {'type': 'integer'},
                'default_break_minutes': {'type': 'integer'},
                'cancellation_notice_hours': {'type': 'integer'},
                'reminder_notice_hours': {'type': 'integer'},
                'notifications': {'type': 'object'}
            }
        }
    }],
    'responses': {200: {'description': 'Paramètres mis à jour'}, 400: {'description': 'Erreur dans les données fournies'}}
})
@roles_required(Role.ADMIN)
def update_settings():
    data = get_json()
    settings = get_or_create_settings(created_by=g.current_user.id)

    if 'opening_hours' in data:
        settings.opening_hours = _parse_opening_hours(data['opening_hours'])
    for field in INTEGER_SETTINGS:
        if field in data:
            setattr(settings, field, parse_int(data[field], field, minimum=0))
    if 'notifications' in data:
        settings.notifications = _parse_notifications(data['notifications'], settings.notifications)

    settings.updated_by = g.current_user.id
    settings.updated_at = utils.utcnow()
    db.session.commit()
    return jsonify({"message": "Settings updated", "settings": settings.to_dict()})


# Jours fériés
@settings_bp.route("/settings/holidays", methods=["GET"])
@swag_from({
    'tags': ['Holidays'],
    'parameters': [{'name': 'year', 'in': 'query', 'type': 'integer'}],
    'responses': {200: {'description': 'Liste des jours fériés'}}
})
@login_required
def get_holidays():
    query = Holiday.query
    if request.args.get('year'):
        year = parse_int(request.args['year'], 'year', minimum=1583)
        query = query.filter(Holiday.date >= date(year, 1, 1), Holiday.date <= date(year, 12, 31))
    holidays = query.order_by(Holiday.date).all()
    return jsonify({"total": len(holidays), "holidays": [h.to_dict() for h in holidays]})


@settings_bp.route("/settings/holidays", methods=["POST"])
@swag_from({
    'tags': ['Holidays'],
    'parameters': [{
        'name': 'body',
        'in': 'body',
        'required': True,
        'schema': {
            'type': 'object',
            'properties': {
                'date': {'type': 'string', 'format': 'date'},
                'label': {'type': 'string'},
                'recurring': {'type': 'boolean'}
            }
        }
    }],
    'responses': {201: {'description': 'Jour férié ajouté'}, 409: {'description': 'Un jour férié existe déjà à cette date'}}
})
@roles_required(Role.ADMIN)
def add_holiday():
    data = get_json()
    day = parse_date(require(data, 'date'), 'date')
    label = require(data, 'label')

    if Holiday.query.filter_by(date=day).first() is not None:
        raise ConflictError("A holiday already exists for this date", field="date")

    holiday = Holiday(date=day, label=label, recurring=parse_bool(data.get('recurring', False), 'recurring'),
                      created_by=g.current_user.id, created_at=utils.utcnow())
    db.session.add(holiday)
    db.session.commit()
    return jsonify({"message": "Holiday added", "holiday": holiday.to_dict()}), 201


@settings_bp.route("/settings/holidays/<int:holiday_id>", methods=["DELETE"])
@swag_from({
    'tags': ['Holidays'],
    'parameters': [{'name': 'holiday_id', 'in': 'path', 'type': 'integer', 'required': True}],
    'responses': {200: {'description': 'Jour férié supprimé'}, 404: {'description': 'Jour férié introuvable'}}
})
@roles_required(Role.ADMIN)
def delete_holiday(holiday_id):
    holiday = db.session.get(Holiday, holiday_id)
    if holiday is None:
        raise NotFoundError("Holiday not found", field="id")
    db.session.delete(holiday)
    db.session.commit()
    return jsonify({"message": "Holiday deleted"})


# Générer automatiquement les jours fériés français d'une année
@settings_bp.route("/settings/holidays/generate", methods=["POST"])
@swag_from({
    'tags': ['Holidays'],
    'parameters': [{
        'name': 'body',
        'in': 'body',
        'required': True,
        'schema': {'type': 'object', 'properties': {'year': {'type': 'integer', 'example': 2025}}}
    }],
    'responses': {200: {'description': 'Nombre de jours fériés ajoutés et ignorés'}}
})
@roles_required(Role.ADMIN)
def generate_year_holidays():
    year = parse_int(require(get_json(), 'year'), 'year', minimum=1583)
    added, skipped = generate_holidays(year, created_by=g.current_user.id)
    return jsonify({
        "message": f"Holiday generation for {year} completed",
        "added": len(added),
        "skipped": len(skipped),
        "holidays": [h.to_dict() for h in added],
        "errors": skipped,
    })


# Préférences de notification de l'utilisateur connecté
@settings_bp.route("/settings/notifications", methods=["GET"])
@swag_from({'tags': ['Settings'], 'responses': {200: {'description': 'Préférences de notification'}}})
@login_required
def get_notification_settings():
    user = g.current_user
    if not user.notification_settings:
        user.notification_settings = dict(DEFAULT_NOTIFICATION_SETTINGS)
        db.session.commit()
    return jsonify({"settings": user.notification_settings})


@settings_bp.route("/settings/notifications", methods=["PUT"])
@swag_from({
    'tags': ['Settings'],
    'parameters': [{'name': 'body', 'in': 'body', 'required': True, 'schema': {'type': 'object'}}],
    'responses': {200: {'description': 'Préférences de notification mises à jour'}}
})
@login_required
def update_notification_settings():
    user = g.current_user
    base = user.notification_settings or DEFAULT_NOTIFICATION_SETTINGS
    user.notification_settings = _parse_notifications(get_json(), base)
    db.session.commit()
    return jsonify({"message": "Notification settings updated", "settings": user.notification_settings})
