"""
Authentication blueprint:
- POST /auth/register
- POST /auth/login
- POST /auth/token
- POST /auth/logout
- POST /auth/forgot-password
- POST /auth/reset-password

Views only parse and validate the request body (marshmallow) and translate
AuthService outcomes to HTTP; all decisions live in services.auth_service.
"""
from __future__ import annotations

from flask import Blueprint, request, jsonify, current_app

from models.schemas.user import (
    ForgotPasswordSchema,
    PasswordResetSchema,
    RefreshSchema,
    UserLoginSchema,
    UserOutSchema,
    UserRegisterSchema,
)
from utils.decorators import jwt_required
from .errors import auth_error_response

bp = Blueprint("auth", __name__)

user_register_schema = UserRegisterSchema()
user_login_schema = UserLoginSchema()
refresh_schema = RefreshSchema()
forgot_password_schema = ForgotPasswordSchema()
password_reset_schema = PasswordResetSchema()
user_out_schema = UserOutSchema()


def _auth_service():
    return current_app.extensions["auth_service"]


@bp.post("/register")
def register():
    """
    Register a new user account.
    ---
    tags:
      - Auth
    consumes:
      - application/json
    parameters:
      - in: body
        name: body
        schema:
          type: object
          required: [email, password, confirm_password, first_name, last_name]
          properties:
            email: { type: string }
            password: { type: string }
            confirm_password: { type: string }
            first_name: { type: string }
            last_name: { type: string }
    responses:
      201:
        description: Created
      400:
        description: Password and confirmation differ
      409:
        description: Email already registered
      422:
        description: Validation error
    """
    data = user_register_schema.load(request.get_json(silent=True) or {})
    outcome = _auth_service().register(
        email=data["email"],
        password=data["password"],
        confirm_password=data["confirm_password"],
        first_name=data["first_name"],
        last_name=data["last_name"],
    )
    if not outcome.ok:
        return auth_error_response(outcome.error)
    return jsonify({"data": user_out_schema.dump(outcome.value)}), 201


@bp.post("/login")
def login():
    """
    Login: return access_token and refresh_token
    ---
    tags:
      - Auth
    consumes:
      - application/json
    parameters:
      -  in: body
         name: body
         schema:
           type: object
           properties:
             email: { type: string }
             password: { type: string }
    responses:
      200:
        description: OK (returns tokens)
      401:
        description: Unauthorized
    """
    data = user_login_schema.load(request.get_json(silent=True) or {})
    outcome = _auth_service().login(data["email"], data["password"])
    if not outcome.ok:
        return auth_error_response(outcome.error)
    return jsonify(
        {
            "type": "Bearer",
            "access_token": outcome.value.access_token,
            "refresh_token": outcome.value.refresh_token,
            "expires_in": int(current_app.config["ACCESS_TOKEN_EXPIRES"].total_seconds()),
        }
    ), 200


@bp.post("/token")
def refresh():
    """
    Exchange the current refresh token for a new access token.
    Presenting a refresh token that was replaced by a newer login ends the session.
    ---
    tags:
      - Auth
    consumes:
      - application/json
    parameters:
      -  in: body
         name: body
         schema:
           type: object
           properties:
             refresh_token: { type: string }
    responses:
      200:
        description: OK (returns a new access token)
      401:
        description: Missing, invalid, expired or reused refresh token
      404:
        description: Token subject no longer exists
    """
    data = refresh_schema.load(request.get_json(silent=True) or {})
    outcome = _auth_service().refresh(data.get("refresh_token"))
    if not outcome.ok:
        return auth_error_response(outcome.error)
    return jsonify(
        {
            "type": "Bearer",
            "access_token": outcome.value.access_token,
            "expires_in": int(current_app.config["ACCESS_TOKEN_EXPIRES"].total_seconds()),
        }
    ), 200


@bp.post("/logout")
@jwt_required()
def logout(current_user):
    """
    Logout: ends the session by dropping the stored refresh token
    ---
    tags:
      - Auth
    security:
      - Bearer: []
    responses:
      200:
        description: Logout successful
      401:
        description: Unauthorized or already logged out
    """
    outcome = _auth_service().logout(current_user)
    if not outcome.ok:
        return auth_error_response(outcome.error)
    return jsonify({"message": outcome.value}), 200


@bp.post("/forgot-password")
def forgot_password():
    """
    Send a password reset link to the user's email
    ---
    tags:
      - Auth
    consumes:
      - application/json
    parameters:
      -  in: body
         name: body
         schema:
           type: object
           properties:
             email: { type: string }
    responses:
      200:
        description: Password reset link sent
      404:
        description: Unknown email
    """
    data = forgot_password_schema.load(request.get_json(silent=True) or {})
    outcome = _auth_service().forgot_password(data["email"])
    if not outcome.ok:
        return auth_error_response(outcome.error)
    return jsonify({"message": outcome.value}), 200


@bp.post("/reset-password")
def reset_password():
    """
    Reset the password with a single-use reset token
    ---
    tags:
      - Auth
    consumes:
      - application/json
    parameters:
      -  in: body
         name: body
         schema:
           type: object
           properties:
             password_reset_token: { type: string }
             new_password: { type: string }
             confirm_password: { type: string }
    responses:
      200:
        description: Password reset
      400:
        description: Password and confirmation differ
      401:
        description: Invalid, expired or reused reset token
    """
    data = password_reset_schema.load(request.get_json(silent=True) or {})
    outcome = _auth_service().reset_password(
        data.get("password_reset_token"),
        data["new_password"],
        data["confirm_password"],
    )
    if not outcome.ok:
        return auth_error_response(outcome.error)
    return jsonify({"message": outcome.value}), 200
