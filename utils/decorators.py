from __future__ import annotations
from functools import wraps
from flask import request, abort, current_app


def _bearer_token() -> str | None:
    auth = request.headers.get("Authorization", "")
    if not auth.startswith("Bearer "):
        return None
    return auth.split(" ", 1)[1].strip() or None


def jwt_required():
    """
    Verify the Bearer access token and hand the principal to the view as the
    `current_user` keyword argument. Access tokens are checked
    cryptographically only; the subject must still resolve to an active user.
    """
    def decorator(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            token = _bearer_token()
            if token is None:
                abort(401, description="Missing or invalid Authorization header")

            claims = current_app.extensions["token_codec"].verify_access_token(token)
            if claims is None:
                abort(401, description="Invalid or expired access token")

            user = current_app.extensions["credential_store"].find_by_email(claims["sub"])
            if user is None or not user.is_active:
                abort(401, description="Invalid or expired access token")

            kwargs["current_user"] = user
            return fn(*args, **kwargs)

        return wrapper

    return decorator


def roles_required(required_roles: list[str]):
    """
    Allow access only if the authenticated user's role is one of required_roles.
    """
    req = set(required_roles or [])

    def decorator(fn):
        @wraps(fn)
        @jwt_required()
        def wrapper(*args, current_user, **kwargs):
            role = getattr(current_user.role, "value", current_user.role)
            if role not in req:
                abort(403, description="Insufficient role")
            return fn(*args, current_user=current_user, **kwargs)

        return wrapper

    return decorator
