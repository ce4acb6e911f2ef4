# backend/tenantgate/__init__.py
import hmac

from flask import Flask, g, jsonify, request

from .config import Config
from .extensions import db, migrate

UNSAFE_METHODS = frozenset({"POST", "PUT", "PATCH", "DELETE"})


def create_app(config_overrides: dict | None = None) -> Flask:
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(Config)
    if config_overrides:
        app.config.update(config_overrides)

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)

    # Import models so Alembic can discover metadata reliably
    from . import models  # noqa: F401

    # Register blueprints
    from .routes.system import system_bp
    from .routes.auth import auth_bp, webauthn_bp, CSRF_EXEMPT_ENDPOINTS
    from .routes.team import team_bp
    from .routes.platform import platform_bp

    app.register_blueprint(system_bp)
    app.register_blueprint(auth_bp)
    app.register_blueprint(webauthn_bp)
    app.register_blueprint(team_bp)
    app.register_blueprint(platform_bp)

    from .errors import AuthFlowError, CsrfInvalid
    from .services.tenancy_service import resolve_tenancy

    @app.before_request
    def attach_tenancy():
        # Recomputed on every request; grants can change between requests.
        g.tenancy = resolve_tenancy(request)

    @app.before_request
    def enforce_csrf():
        """
        Double-submit check for cookie-authenticated mutations.

        Only requests carrying the refresh cookie are subject to it; bearer-only
        API clients are not exposed to CSRF.
        """
        if request.method not in UNSAFE_METHODS or request.endpoint in CSRF_EXEMPT_ENDPOINTS:
            return None
        if app.config["SESSION_COOKIE_NAME_REFRESH"] not in request.cookies:
            return None

        cookie_value = request.cookies.get(app.config["CSRF_COOKIE_NAME"], "")
        header_value = request.headers.get(app.config["CSRF_HEADER_NAME"], "")
        if not cookie_value or not header_value or not hmac.compare_digest(
            cookie_value.encode("utf-8"), header_value.encode("utf-8")
        ):
            app.logger.warning("CSRF check failed for %s %s", request.method, request.path)
            error = CsrfInvalid()
            return jsonify(error.to_dict()), error.status_code
        return None

    @app.errorhandler(AuthFlowError)
    def handle_auth_flow_error(error):
        return jsonify(error.to_dict()), error.status_code

    # Register CLI commands
    from .cli import register_commands
    register_commands(app)

    return app
