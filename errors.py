import logging

from flask import jsonify
from werkzeug.exceptions import HTTPException

logger = logging.getLogger(__name__)


class ApiError(Exception):
    """Erreur métier renvoyée au client sous forme JSON."""

    status_code = 500
    default_message = "Internal error"

    def __init__(self, message=None, field=None, errors=None):
        super().__init__(message or self.default_message)
        self.message = message or self.default_message
        self.errors = list(errors or [])
        if field is not None:
            self.errors.append({"field": field, "message": self.message})

    def to_dict(self):
        return {"success": False, "message": self.message, "errors": self.errors}


class ValidationError(ApiError):
    status_code = 400
    default_message = "Validation error"


class UnauthorizedError(ApiError):
    status_code = 401
    default_message = "Authentication required"


class ForbiddenError(ApiError):
    status_code = 403
    default_message = "Access denied"


class NotFoundError(ApiError):
    status_code = 404
    default_message = "Resource not found"


class ConflictError(ApiError):
    status_code = 409
    default_message = "Slot unavailable"


class InvalidStateError(ApiError):
    """Une garde du cycle de vie a échoué."""

    status_code = 400
    default_message = "Operation not allowed"


def register_error_handlers(app, db):
    @app.errorhandler(ApiError)
    def handle_api_error(error):
        db.session.rollback()
        return jsonify(error.to_dict()), error.status_code

    @app.errorhandler(HTTPException)
    def handle_http_error(error):
        return jsonify({"success": False, "message": error.description, "errors": []}), error.code

    @app.errorhandler(Exception)
    def handle_unexpected_error(error):
        db.session.rollback()
        logger.exception("Unhandled error: %s", error)
        return jsonify({"success": False, "message": "An unexpected error occurred", "errors": []}), 500
