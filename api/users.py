from __future__ import annotations

from typing import Tuple

from flask import Blueprint, request, jsonify, abort, current_app

from models.schemas.user import ChangePasswordSchema, UnregisterSchema, UserOutSchema
from models.user import UserRole
from services.results import PublicPrincipal
from utils.decorators import jwt_required, roles_required
from .errors import auth_error_response

MAX_LIMIT = 100

bp = Blueprint("users", __name__)

user_out_schema = UserOutSchema()
user_list_out_schema = UserOutSchema(many=True)
unregister_schema = UnregisterSchema()
change_password_schema = ChangePasswordSchema()


def parse_pagination() -> Tuple[int, int]:
    try:
        page = int(request.args.get("page", "1"))
        limit = int(request.args.get("limit", "20"))
        page = max(page, 1)
        limit = max(1, min(limit, MAX_LIMIT))
        return page, limit
    except ValueError:
        abort(400, description="page and limit must be integers")


@bp.get("/users")
@roles_required([UserRole.ADMINISTRATOR.value])
def list_users(current_user):
    """
    List all users - administrator
    ---
    tags:
      - Users
    security:
      - Bearer: []
    parameters:
      - in: query
        name: page
        type: integer
        default: 1
      - in: query
        name: limit
        type: integer
        default: 20
    responses:
      200: { description: OK }
      401: { description: Unauthorized }
      403: { description: Forbidden }
    """
    page, limit = parse_pagination()
    rows, total = current_app.extensions["credential_store"].list_page(page, limit)
    return jsonify(
        {
            "data": user_list_out_schema.dump([PublicPrincipal.from_user(u) for u in rows]),
            "meta": {"page": page, "limit": limit, "total": total}
        }
    )


@bp.get("/users/me")
@jwt_required()
def me(current_user):
    """
    Get current user info
    ---
    tags:
      - Users
    security:
      - Bearer: []
    responses:
      200:
        description: OK
      401:
        description: Unauthorized
    """
    return jsonify(
        {
            "data": user_out_schema.dump(PublicPrincipal.from_user(current_user))
        }
    ), 200


def _account_service():
    return current_app.extensions["account_service"]


@bp.patch("/users/me/unregister")
@jwt_required()
def unregister_me(current_user):
    """
    Unregister the current user: the account is disabled and its session ends
    ---
    tags:
      - Users
    security:
      - Bearer: []
    consumes:
      - application/json
    parameters:
      - in: body
        name: body
        schema:
          type: object
          required: [password, confirm_password]
          properties:
            password: { type: string }
            confirm_password: { type: string }
    responses:
      200: { description: Unregistered }
      400: { description: Password and confirmation differ }
      401: { description: Unauthorized or wrong password }
      422: { description: Validation error }
    """
    data = unregister_schema.load(request.get_json(silent=True) or {})
    outcome = _account_service().unregister(current_user, data["password"], data["confirm_password"])
    if not outcome.ok:
        return auth_error_response(outcome.error)
    return jsonify({"message": outcome.value}), 200


@bp.patch("/users/me/change-password")
@jwt_required()
def change_my_password(current_user):
    """
    Change the current user's password
    ---
    tags:
      - Users
    security:
      - Bearer: []
    consumes:
      - application/json
    parameters:
      - in: body
        name: body
        schema:
          type: object
          required: [current_password, new_password, confirm_new_password]
          properties:
            current_password: { type: string }
            new_password: { type: string }
            confirm_new_password: { type: string }
    responses:
      200: { description: Password changed }
      400: { description: New password and confirmation differ }
      401: { description: Unauthorized or wrong current password }
      422: { description: Validation error }
    """
    data = change_password_schema.load(request.get_json(silent=True) or {})
    outcome = _account_service().change_password(
        current_user,
        data["current_password"],
        data["new_password"],
        data["confirm_new_password"],
    )
    if not outcome.ok:
        return auth_error_response(outcome.error)
    return jsonify({"message": outcome.value}), 200


@bp.patch("/users/<user_id>/toggle-lock")
@roles_required([UserRole.ADMINISTRATOR.value])
def toggle_lock(user_id, current_user):
    """
    Lock or unlock a user - administrator
    ---
    tags:
      - Users
    security:
      - Bearer: []
    parameters:
      - in: path
        name: user_id
        type: string
        required: true
    responses:
      200: { description: Lock state flipped }
      400: { description: User is unregistered }
      401: { description: Unauthorized }
      403: { description: Forbidden }
      404: { description: User not found }
    """
    outcome = _account_service().toggle_lock(user_id)
    if not outcome.ok:
        return auth_error_response(outcome.error)
    return jsonify({"message": outcome.value}), 200
