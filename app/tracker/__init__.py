import logging

from dotenv import load_dotenv
from flask import Flask, g, jsonify
from werkzeug.exceptions import HTTPException

from app.tracker.config import load_config
from app.tracker.db import init_db, teardown_db_session
from app.tracker.errors import TrackerError
from app.tracker.routes import bp as routes_bp
from app.tracker.auth import bp as auth_bp, load_request_context
from app.tracker.modules.projects.api import bp as projects_bp
from app.tracker.modules.tickets.api import bp as tickets_bp
from app.tracker.modules.comments.api import bp as comments_bp
from app.tracker.modules.users.api import bp as users_bp


def _request_id() -> str | None:
    ctx = getattr(g, "request_context", None)
    return ctx.request_id if ctx else None


def _error_response(message: str, status: int):
    return jsonify({"message": message, "requestId": _request_id()}), status


def _check_production_config(app: Flask) -> None:
    env = (app.config.get("ENV") or "").strip().lower()
    if env not in ("prod", "production"):
        return
    if not app.config.get("DATABASE_URL") or str(app.config["DATABASE_URL"]).strip() == "":
        raise RuntimeError("DATABASE_URL is required in production.")
    if str(app.config["DATABASE_URL"]).startswith("sqlite"):
        raise RuntimeError("DATABASE_URL must be Postgres in production (not sqlite).")
    if not app.config.get("SECRET_KEY") or str(app.config["SECRET_KEY"]) in ("", "change-me"):
        raise RuntimeError("SECRET_KEY must be set to a strong value in production (not default).")
    if str(app.config.get("JWT_SECRET") or "") in ("", "change-me"):
        raise RuntimeError("JWT_SECRET must be set to a strong value in production (not default).")


def _register_error_handlers(app: Flask) -> None:
    @app.errorhandler(TrackerError)
    def _err_tracker(e: TrackerError):
        if e.status_code >= 500:
            app.logger.error("Tracker error (request_id=%s): %s", _request_id(), e.message)
        return _error_response(e.message, e.status_code)

    @app.errorhandler(HTTPException)
    def _err_http(e: HTTPException):
        return _error_response(e.description or e.name, e.code or 500)

    @app.errorhandler(Exception)
    def _err_500(e: Exception):
        # Full trace goes to the logs only; clients get a generic message.
        app.logger.exception("Unhandled 500 (request_id=%s)", _request_id())
        return _error_response("Server Error", 500)


def create_app() -> Flask:
    load_dotenv()
    app = Flask(__name__)
    app.config.from_mapping(load_config())
    app.json.sort_keys = False
    app.logger.setLevel(app.config.get("LOG_LEVEL") or "INFO")

    _check_production_config(app)

    init_db(app)

    def _dispose_engine_on_fork() -> None:
        import os
        if hasattr(os, "register_at_fork"):
            def _after_fork_child():
                engine = app.extensions.get("sqlalchemy_engine")
                if engine:
                    engine.dispose()
                    app.logger.info("Disposed DB engine after fork (pid=%s)", os.getpid())

            os.register_at_fork(after_in_child=_after_fork_child)

    _dispose_engine_on_fork()

    app.register_blueprint(routes_bp)
    app.register_blueprint(auth_bp, url_prefix="/api/auth")
    app.register_blueprint(projects_bp, url_prefix="/api/projects")
    app.register_blueprint(tickets_bp, url_prefix="/api/tickets")
    app.register_blueprint(comments_bp, url_prefix="/api/comments")
    app.register_blueprint(users_bp, url_prefix="/api/users")

    app.before_request(load_request_context)
    app.teardown_appcontext(teardown_db_session)
    _register_error_handlers(app)

    logging.getLogger(__name__).info("create_app() complete; app ready to serve")

    return app
