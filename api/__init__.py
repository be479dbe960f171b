from flask import Flask
from flasgger import Swagger
from flask_cors import CORS
import logging

from .config import get_config
from .errors import register_error_handlers
from models import CredentialStore, DBStorage
from services.account_service import AccountService
from services.auth_service import AuthService
from utils.mailer import LogMailer, SmtpMailer
from utils.security import TokenCodec

# Minimal Swagger config: exposes /swagger.json and UI at /apidocs
SWAGGER_TEMPLATE = {
    "swagger": "2.0.0",
    "info": {
        "title": "Home & Garden API",
        "version": "1.0.0",
        "description": "Storefront backend: registration, login and session tokens for customers and staff.",
    },
    "basePath": "/",  # blueprints are mounted under /api/v1
    "schemes": ["http"],
    "securityDefinitions": {
        "Bearer": {
            "type": "apiKey",
            "name": "Authorization",
            "in": "header",
            "description": "Enter the token with the `Bearer ` prefix, e.g. \"Bearer abcde12345\"."
        }
    }
}

SWAGGER_CONFIG = {
    "headers": [],
    "specs": [
        {
            "endpoint": "apispec_1",
            "route": "/swagger.json",
            "rule_filter": lambda rule: True,   # include all endpoints
            "model_filter": lambda tag: True,   # include all models
        }
    ],
    "static_url_path": "/flasgger_static",
    "swagger_ui": True,
    "specs_route": "/apidocs/",
}

API_PREFIX = "/api/v1"


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )


def build_mailer(config):
    if not config.get("MAIL_HOST"):
        return LogMailer()
    return SmtpMailer(
        host=config["MAIL_HOST"],
        port=config["MAIL_PORT"],
        username=config.get("MAIL_USERNAME"),
        password=config.get("MAIL_PASSWORD"),
        use_tls=config.get("MAIL_USE_TLS", True),
        sender=config.get("MAIL_SENDER"),
    )


def create_app(config_name: str | None = None, **overrides) -> Flask:
    """
    Application factory: creates and configures the Flask app.
    Keyword overrides are applied on top of the selected config class, and
    collaborators can be swapped the same way (e.g. mailer=FakeMailer()).
    """
    app = Flask(__name__)

    mailer = overrides.pop("mailer", None)
    app.config.from_object(get_config(config_name))
    app.config.update(overrides)

    configure_logging(app.config["LOG_LEVEL"])

    # Cross-Origin Resource Sharing: enable for dev, configurable for prod
    CORS(app, resources={r"/*": {"origins": app.config.get("CORS_ORIGINS", "*")}})

    # Swagger UI and JSON
    Swagger(app, template=SWAGGER_TEMPLATE, config=SWAGGER_CONFIG)

    # Register global error handlers that return the uniform error envelope
    register_error_handlers(app)

    # Explicit wiring: storage -> credential store -> codec -> auth service
    storage = DBStorage(app.config["DATABASE_URL"], echo=app.config["SQLALCHEMY_ECHO"])
    storage.reload()
    store = CredentialStore(storage)
    codec = TokenCodec(
        secret=app.config["JWT_SECRET"],
        algorithm=app.config["JWT_ALGORITHM"],
        access_ttl=app.config["ACCESS_TOKEN_EXPIRES"],
        refresh_ttl=app.config["REFRESH_TOKEN_EXPIRES"],
        reset_ttl=app.config["PASSWORD_RESET_TOKEN_EXPIRES"],
        issuer=app.config["JWT_ISSUER"],
    )
    auth_service = AuthService(
        store,
        codec,
        mailer=mailer or build_mailer(app.config),
        reset_base_url=app.config["PASSWORD_RESET_BASE_URL"],
    )
    app.extensions["storage"] = storage
    app.extensions["credential_store"] = store
    app.extensions["token_codec"] = codec
    app.extensions["auth_service"] = auth_service
    app.extensions["account_service"] = AccountService(store)

    from .health import bp as health_bp
    from .auth import bp as auth_bp
    from .users import bp as users_bp

    app.register_blueprint(health_bp, url_prefix=API_PREFIX)
    # a url_prefix given here replaces the blueprint's own, so spell out the full path
    app.register_blueprint(auth_bp, url_prefix=f"{API_PREFIX}/auth")
    app.register_blueprint(users_bp, url_prefix=API_PREFIX)

    # Ensure the DB session is removed at the end of each request/app context
    @app.teardown_appcontext
    def remove_session(exception=None):
        # calls scoped_session.remove(), preventing connection leaks
        storage.close()

    @app.route("/")
    def root():
        return {
            "message": "Welcome to Home & Garden API",
            "docs": "/apidocs/",
            "health": f"{API_PREFIX}/health",
        }, 200

    return app
