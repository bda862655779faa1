import logging
from datetime import datetime, timedelta, timezone
from functools import wraps

import jwt
from flask import current_app, g, request

from errors import ForbiddenError, UnauthorizedError
from models import User, db

logger = logging.getLogger(__name__)


def issue_token(user):
    now = datetime.now(timezone.utc)
    payload = {
        "sub": str(user.id),
        "role": user.role,
        "email": user.email,
        "iat": now,
        "exp": now + timedelta(hours=current_app.config["JWT_EXPIRES_HOURS"]),
    }
    return jwt.encode(payload, current_app.config["JWT_SECRET"], algorithm=current_app.config["JWT_ALGORITHM"])


def _bearer_token():
    header = request.headers.get("Authorization", "")
    if header.startswith("Bearer "):
        return header.split(" ", 1)[1].strip()
    return None


def load_current_user():
    token = _bearer_token()
    if not token:
        raise UnauthorizedError("You are not logged in")

    try:
        payload = jwt.decode(
            token,
            current_app.config["JWT_SECRET"],
            algorithms=[current_app.config["JWT_ALGORITHM"]],
        )
    except jwt.ExpiredSignatureError:
        raise UnauthorizedError("Session expired, please log in again")
    except jwt.InvalidTokenError as e:
        logger.info("Rejected token: %s", e)
        raise UnauthorizedError("Invalid token")

    user = db.session.get(User, int(payload["sub"]))
    if user is None or not user.active:
        raise UnauthorizedError("The account linked to this token no longer exists or is disabled")
    return user


def login_required(view):
    @wraps(view)
    def wrapper(*args, **kwargs):
        g.current_user = load_current_user()
        return view(*args, **kwargs)
    return wrapper


def roles_required(*roles):
    allowed = {getattr(role, "value", role) for role in roles}

    def decorator(view):
        @wraps(view)
        def wrapper(*args, **kwargs):
            g.current_user = load_current_user()
            if g.current_user.role not in allowed:
                raise ForbiddenError("Your role does not allow this operation", field="authorization")
            return view(*args, **kwargs)
        return wrapper
    return decorator
