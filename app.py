import logging
import sys

import click
from flask import Flask, request, g
from flask_migrate import Migrate
from sqlalchemy import inspect
from werkzeug.exceptions import HTTPException

from config import Config
from routes import ALL_BLUEPRINTS

from models import db
from models.user import User
from utils.seed import seed_roles, get_role
from utils.auth_context import load_current_user
from utils.calendar import build_meeting_link_generator
from utils.errors import ApiError
from utils.responses import fail
from utils.roles import ROLE_ADMIN
from security.csrf import require_csrf
from services.lifecycle import run_sweep, start_scheduler

log = logging.getLogger(__name__)

CSRF_EXEMPT_PATHS = {
    "/auth/login",
    "/auth/register",
    "/health",
}


def create_app(config_object=Config, meeting_links=None):
    app = Flask(__name__)
    app.config.from_object(config_object)

    logging.basicConfig(
        level=app.config.get("LOG_LEVEL", "INFO"),
        stream=sys.stdout,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    # Register routes
    for bp in ALL_BLUEPRINTS:
        app.register_blueprint(bp)

    # Database init
    db.init_app(app)

    # Migrations
    Migrate(app, db)

    # Meeting ids for online slots; tests pass their own generator
    app.extensions["meeting_links"] = meeting_links or build_meeting_link_generator(app.config)

    # Seed default roles at startup (safe & idempotent)
    with app.app_context():
        if app.config.get("AUTO_CREATE_TABLES"):
            db.create_all()
        if inspect(db.engine).has_table("roles"):
            seed_roles()

    @app.before_request
    def _load_user():
        load_current_user()

    @app.before_request
    def _csrf_protect():
        # Only protect state-changing requests
        if request.method not in ("POST", "PUT", "PATCH", "DELETE"):
            return None
        if request.path in CSRF_EXEMPT_PATHS:
            return None

        # Bearer-token requests are exempt
        if g.get("user") is not None and g.get("auth_source") == "cookie":
            return require_csrf()
        return None

    @app.after_request
    def add_security_headers(resp):
        resp.headers["X-Content-Type-Options"] = "nosniff"
        resp.headers["X-Frame-Options"] = "DENY"
        resp.headers["Referrer-Policy"] = "no-referrer"
        resp.headers["Permissions-Policy"] = "geolocation=(), microphone=(), camera=()"
        resp.headers["Content-Security-Policy"] = "default-src 'none'; frame-ancestors 'none';"
        return resp

    register_error_handlers(app)
    register_cli(app)

    if app.config.get("SLOT_SWEEP_ENABLED") and not app.config.get("TESTING"):
        start_scheduler(app)

    return app


def register_error_handlers(app):
    @app.errorhandler(ApiError)
    def _api_error(exc):
        db.session.rollback()
        if exc.status_code >= 500:
            log.error("%s %s failed: %s", request.method, request.path, exc.message)
            return fail(exc.message, exc.status_code, error=str(exc))
        return fail(exc.message, exc.status_code)

    @app.errorhandler(HTTPException)
    def _http_error(exc):
        return fail(exc.description or exc.name, exc.code)

    @app.errorhandler(Exception)
    def _unexpected(exc):
        log.exception("unhandled error on %s %s", request.method, request.path)
        db.session.rollback()
        return fail("Server error", 500, error=str(exc))


def register_cli(app):
    @app.cli.command("make-admin")
    @click.argument("email")
    def make_admin(email):
        """Promote a user to ADMIN by email (bootstrap)."""
        user = User.query.filter_by(email=email.strip().lower()).first()
        if not user:
            click.echo("User not found")
            return

        admin_role = get_role(ROLE_ADMIN)
        if admin_role not in user.roles:
            user.roles.append(admin_role)
        db.session.commit()

        click.echo(f"{user.email} promoted to ADMIN")

    @app.cli.command("sweep-slots")
    def sweep_slots():
        """Advance slot statuses once (for cron)."""
        counts = run_sweep(app)
        if counts is None:
            raise click.ClickException("Slot status sweep failed; see log")
        click.echo(
            f"ongoing={counts['ongoing']} completed={counts['completed']} cancelled={counts['cancelled']}"
        )


if __name__ == "__main__":
    app = create_app()
    # Run locally
    app.run(host="127.0.0.1", port=5002)
