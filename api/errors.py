from flask import jsonify, current_app
from werkzeug.exceptions import HTTPException
from marshmallow import ValidationError
from sqlalchemy.exc import IntegrityError
import logging

from services.results import AuthError, ErrorKind

logger = logging.getLogger(__name__)

# kind -> (status, error code)
AUTH_ERROR_STATUS = {
    ErrorKind.CREDENTIAL_MISMATCH: (400, "BAD_REQUEST"),
    ErrorKind.ALREADY_EXISTS: (409, "CONFLICT"),
    ErrorKind.INVALID_CREDENTIALS: (401, "UNAUTHORIZED"),
    ErrorKind.NOT_FOUND: (404, "NOT_FOUND"),
    ErrorKind.STATE_INCONSISTENCY: (500, "INTERNAL_ERROR"),
    ErrorKind.INVALID_STATE: (400, "BAD_REQUEST"),
}

INVALID_CREDENTIALS_MESSAGE = "Invalid credentials"


def error_response(error: str, message: str, status: int, details: dict | None = None):
    payload = {"error": error, "message": message, "status": status}
    if details:
        payload["details"] = details
    return jsonify(payload), status


def auth_error_response(err: AuthError):
    """
    Translate an auth outcome failure. InvalidCredentials always gets the
    same message so clients cannot tell which check failed.
    """
    status, code = AUTH_ERROR_STATUS[err.kind]
    if err.kind is ErrorKind.INVALID_CREDENTIALS:
        logger.info("Auth rejected: %s", err.message)
        return error_response(code, INVALID_CREDENTIALS_MESSAGE, status)
    if status >= 500:
        logger.error("Auth failure %s: %s", err.kind.value, err.message)
        return error_response(code, "An unexpected error occurred", status)
    return error_response(code, err.message, status)


def register_error_handlers(app):
    # 400 Bad Request (generic)
    @app.errorhandler(400)
    def bad_request(e):
        if current_app and current_app.debug:
            logging.exception("Unhandled exception", exc_info=e)
        message = getattr(e, "description", "Bad request")
        return error_response("BAD_REQUEST", message, 400)

    # 401 Unauthorized
    @app.errorhandler(401)
    def unauthorized(e):
        message = getattr(e, "description", "Unauthorized")
        return error_response("UNAUTHORIZED", message, 401)

    # 403 Forbidden
    @app.errorhandler(403)
    def forbidden(e):
        message = getattr(e, "description", "Forbidden")
        return error_response("FORBIDDEN", message, 403)

    # 404 Not Found
    @app.errorhandler(404)
    def not_found(e):
        if current_app and current_app.debug:
            logging.exception("Unhandled exception", exc_info=e)
        return error_response("NOT_FOUND", "Resource not found", 404)

    # 409 Conflict
    @app.errorhandler(409)
    def conflict(e):
        if current_app and current_app.debug:
            logging.exception("Unhandled exception", exc_info=e)
        message = getattr(e, "description", "Conflict")
        return error_response("CONFLICT", message, 409)

    # 422 Unprocessable Entity (validation)
    @app.errorhandler(422)
    def unprocessable(e):
        message = getattr(e, "description", "Unprocessable entity")
        return error_response("VALIDATION_ERROR", message, 422)

    # Marshmallow validation errors map to 422
    @app.errorhandler(ValidationError)
    def handle_validation_error(err: ValidationError):
        # err.messages contains field-level details
        logger.warning("Validation failed: %s", err.messages)
        return error_response("VALIDATION_ERROR", "Invalid input", 422, details=err.messages)

    # Integrity errors (unique constraints, FK violations, check constraints)
    @app.errorhandler(IntegrityError)
    def handle_integrity_error(err: IntegrityError):
        message = str(getattr(err, "orig", err))
        lower_msg = message.lower()
        if current_app and current_app.debug:
            logging.exception("Unhandled exception", exc_info=err)
        if "unique constraint" in lower_msg or "unique violation" in lower_msg:
            return error_response("CONFLICT", "Unique constraint violated.", 409)
        return error_response("BAD_REQUEST", "Integrity error.", 400)

    # Werkzeug HTTPExceptions map to their status codes
    @app.errorhandler(HTTPException)
    def handle_http_exception(err: HTTPException):
        return error_response("BAD_REQUEST", err.description, err.code or 400)

    # 500 Internal Error (catch-all); storage failures end up here
    @app.errorhandler(Exception)
    def internal_error(err: Exception):
        logging.exception("Unhandled exception", exc_info=err)
        details = None
        if current_app and current_app.debug:
            details = {"type": err.__class__.__name__, "message": str(err)}
        return error_response("INTERNAL_ERROR", "An unexpected error occurred", 500, details=details)
