import logging

from flask import Blueprint, g, jsonify, request
from flasgger import swag_from

import utils
from auth import issue_token, login_required, roles_required
from errors import UnauthorizedError
from models import Role, User
from services import users as user_service
from validators import get_json, parse_bool, parse_choice, require

logger = logging.getLogger(__name__)

users_bp = Blueprint("users", __name__)

USER_ID_PARAM = {'name': 'user_id', 'in': 'path', 'type': 'integer', 'required': True}

USER_SCHEMA = {
    'type': 'object',
    'properties': {
        'first_name': {'type': 'string'},
        'last_name': {'type': 'string'},
        'email': {'type': 'string'},
        'password': {'type': 'string'},
        'phone': {'type': 'string'},
        'role': {'type': 'string', 'enum': [role.value for role in Role]},
        'specialty': {'type': 'string'}
    }
}


# Connexion utilisateur
@users_bp.route("/auth/login", methods=["POST"])
@swag_from({
    'tags': ['Auth'],
    'parameters': [{
        'name': 'body',
        'in': 'body',
        'required': True,
        'schema': {
            'type': 'object',
            'properties': {'email': {'type': 'string'}, 'password': {'type': 'string'}}
        }
    }],
    'responses': {200: {'description': 'Jeton JWT et utilisateur'}, 401: {'description': 'Identifiants invalides'}}
})
def login():
    data = get_json()
    email = require(data, 'email').strip().lower()
    password = require(data, 'password')

    user = User.query.filter_by(email=email).first()
    if user is None or not user.check_password(password):
        logger.info("Failed login for %s", email)
        raise UnauthorizedError("Invalid email or password")
    if not user.active:
        raise UnauthorizedError("This account has been disabled. Please contact an administrator")

    logger.info("User %s logged in (role=%s)", user.id, user.role)
    return jsonify({"token": issue_token(user), "user": user.to_dict()})


@users_bp.route("/auth/me", methods=["GET"])
@swag_from({'tags': ['Auth'], 'responses': {200: {'description': 'Utilisateur connecté'}}})
@login_required
def me():
    return jsonify({"user": g.current_user.to_dict()})


@users_bp.route("/users", methods=["GET"])
@swag_from({
    'tags': ['Users'],
    'parameters': [{'name': 'role', 'in': 'query', 'type': 'string'}],
    'responses': {200: {'description': 'Liste des utilisateurs'}}
})
@roles_required(Role.ADMIN, Role.SECRETARY)
def get_users():
    query = User.query.filter_by(deleted=False)
    if request.args.get('role'):
        query = query.filter_by(role=parse_choice(request.args['role'], 'role', Role))
    users = query.order_by(User.last_name, User.first_name).all()
    return jsonify({"count": len(users), "users": [u.to_dict() for u in users]})


# Médecins actifs pouvant recevoir des rendez-vous
@users_bp.route("/users/practitioners", methods=["GET"])
@swag_from({'tags': ['Users'], 'responses': {200: {'description': 'Médecins actifs'}}})
@login_required
def get_practitioners():
    practitioners = (User.query.filter_by(role=Role.DOCTOR.value, active=True)
                     .order_by(User.last_name, User.first_name).all())
    return jsonify({"count": len(practitioners), "practitioners": [p.to_dict() for p in practitioners]})


@users_bp.route("/users/<int:user_id>", methods=["GET"])
@swag_from({
    'tags': ['Users'],
    'parameters': [USER_ID_PARAM],
    'responses': {200: {'description': 'Utilisateur'}, 404: {'description': 'Utilisateur introuvable'}}
})
@roles_required(Role.ADMIN, Role.SECRETARY)
def get_user(user_id):
    return jsonify({"user": user_service.get_user(user_id).to_dict()})


# Créer un utilisateur (administrateur uniquement)
@users_bp.route("/users", methods=["POST"])
@swag_from({
    'tags': ['Users'],
    'summary': 'Créer un utilisateur',
    'parameters': [{
        'name': 'body',
        'in': 'body',
        'required': True,
        'schema': USER_SCHEMA
    }],
    'responses': {201: {'description': 'Utilisateur créé'}, 409: {'description': 'Email déjà utilisé'}}
})
@roles_required(Role.ADMIN)
def post_user():
    data = get_json()
    user = user_service.create_user(
        first_name=require(data, 'first_name'),
        last_name=require(data, 'last_name'),
        email=require(data, 'email'),
        password=require(data, 'password'),
        role=parse_choice(data.get('role', Role.PATIENT.value), 'role', Role),
        phone=data.get('phone'),
        specialty=data.get('specialty'),
    )
    return jsonify({"message": "User created", "user": user.to_dict()}), 201


@users_bp.route("/users/<int:user_id>", methods=["PUT"])
@swag_from({
    'tags': ['Users'],
    'summary': 'Modifier un utilisateur',
    'parameters': [USER_ID_PARAM, {'name': 'body', 'in': 'body', 'required': True, 'schema': USER_SCHEMA}],
    'responses': {
        200: {'description': 'Utilisateur mis à jour'},
        404: {'description': 'Utilisateur introuvable'},
        409: {'description': 'Email déjà utilisé'}
    }
})
@roles_required(Role.ADMIN)
def update_user(user_id):
    data = get_json()
    changes = {}
    for field in ('first_name', 'last_name', 'email'):
        if field in data:
            changes[field] = require(data, field)
    for field in ('phone', 'specialty'):
        if field in data:
            changes[field] = data[field]
    if 'role' in data:
        changes['role'] = parse_choice(data['role'], 'role', Role)

    user = user_service.update_user(user_id, g.current_user, changes)
    return jsonify({"message": "User updated", "user": user.to_dict()})


# Réinitialiser le mot de passe d'un utilisateur
@users_bp.route("/users/<int:user_id>/password", methods=["POST"])
@swag_from({
    'tags': ['Users'],
    'summary': "Réinitialiser le mot de passe d'un utilisateur",
    'parameters': [
        USER_ID_PARAM,
        {'name': 'body', 'in': 'body', 'required': True,
         'schema': {'type': 'object', 'properties': {'password': {'type': 'string'}}}}
    ],
    'responses': {200: {'description': 'Mot de passe réinitialisé'}, 400: {'description': 'Mot de passe trop court'}}
})
@roles_required(Role.ADMIN)
def reset_user_password(user_id):
    user_service.reset_password(user_id, g.current_user, require(get_json(), 'password'))
    return jsonify({"message": "Password reset"})


@users_bp.route("/users/<int:user_id>/active", methods=["PUT"])
@swag_from({
    'tags': ['Users'],
    'summary': 'Activer ou désactiver un compte (les rendez-vous à venir d\'un médecin désactivé sont annulés)',
    'parameters': [
        USER_ID_PARAM,
        {'name': 'body', 'in': 'body', 'required': True,
         'schema': {'type': 'object', 'properties': {'active': {'type': 'boolean'}}}}
    ],
    'responses': {200: {'description': 'Compte activé ou désactivé'}}
})
@roles_required(Role.ADMIN)
def set_user_active(user_id):
    active = parse_bool(require(get_json(), 'active'), 'active')
    user, cancelled = user_service.set_active(user_id, g.current_user, active, now=utils.utcnow())
    return jsonify({"message": "User updated", "user": user.to_dict(), "cancelled_appointments": cancelled})


# Supprimer un utilisateur (suppression logique)
@users_bp.route("/users/<int:user_id>", methods=["DELETE"])
@swag_from({
    'tags': ['Users'],
    'summary': 'Supprimer un utilisateur sans rendez-vous à venir',
    'parameters': [USER_ID_PARAM],
    'responses': {
        200: {'description': 'Utilisateur supprimé'},
        400: {'description': "L'utilisateur a des rendez-vous à venir"},
        404: {'description': 'Utilisateur introuvable'}
    }
})
@roles_required(Role.ADMIN)
def delete_user(user_id):
    user_service.delete_user(user_id, g.current_user, now=utils.utcnow())
    return jsonify({"message": "User deleted"})
