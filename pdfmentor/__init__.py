from __future__ import annotations

import atexit
from contextlib import contextmanager
from pathlib import Path
import time
from uuid import uuid4

from flask import Flask, g, jsonify, request
from werkzeug.exceptions import HTTPException
from dotenv import load_dotenv

load_dotenv()

try:  # pragma: no cover - platform specific
    import fcntl
except ImportError:  # pragma: no cover - Windows fallback
    fcntl = None

from .config import Config, DEFAULT_INSTANCE_ROOT
from .errors import DocumentParseError, InsufficientContent, PdfMentorError
from .extensions import db
from .logging_utils import setup_logging
from .routes.agent import agent_bp
from .routes.api import api_bp
from .routes.audio import audio_bp
from .services.agent import LearningAssistant
from .services.audio_store import AudioStore
from .services.provider_gateway import ProviderGateway, ProviderSettings
from .services.study_materials import GenerationSettings, StudyMaterialService


# Status codes for pipeline errors that reach a view.
DOMAIN_ERROR_STATUS: dict[type[PdfMentorError], int] = {
    InsufficientContent: 422,
    DocumentParseError: 400,
}

SERVICE_ENDPOINTS = {
    "upload": "POST /api/upload",
    "documents": "GET /api/documents",
    "summary": "POST /api/generate-summary",
    "flashcards": "POST /api/generate-flashcards",
    "quiz": "POST /api/quiz/generate",
    "podcast": "POST /api/generate-podcast",
    "chat": "POST /api/chat",
    "agent": "POST /api/ai-agent/chat",
    "voices": "GET /api/voices",
    "health": "GET /api/health",
}


def create_app(test_config: dict | None = None) -> Flask:
    app = Flask(__name__, static_folder=None, instance_path=str(DEFAULT_INSTANCE_ROOT))
    app.config.from_object(Config)

    if test_config:
        app.config.update(test_config)

    for folder in (app.instance_path, app.config["UPLOAD_FOLDER"], app.config["AUDIO_FOLDER"]):
        Path(folder).mkdir(parents=True, exist_ok=True)

    setup_logging(app)
    _register_request_hooks(app)

    db.init_app(app)
    with _startup_lock(Path(app.instance_path) / ".startup.lock"):
        with app.app_context():
            db.create_all()

    _configure_services(app)

    app.register_blueprint(api_bp, url_prefix="/api")
    app.register_blueprint(audio_bp, url_prefix="/api")
    app.register_blueprint(agent_bp, url_prefix="/api/ai-agent")

    @app.get("/")
    def service_banner():
        return jsonify({"service": "PDF Mentor API", "status": "running", "endpoints": SERVICE_ENDPOINTS})

    _register_error_handlers(app)
    return app


def _configure_services(app: Flask) -> None:
    """Build provider-backed services unless the caller injected its own."""

    if "PROVIDER_GATEWAY" not in app.config:
        gateway = ProviderGateway(ProviderSettings.from_config(app.config))
        atexit.register(gateway.close)
        app.config["PROVIDER_GATEWAY"] = gateway
    gateway = app.config["PROVIDER_GATEWAY"]

    app.config.setdefault("AUDIO_STORE", AudioStore(app.config["AUDIO_FOLDER"]))

    if "STUDY_SERVICE" not in app.config:
        app.config["STUDY_SERVICE"] = StudyMaterialService(
            gateway,
            audio_store=app.config["AUDIO_STORE"],
            settings=GenerationSettings.from_config(app.config),
            quiz_seed=app.config.get("QUIZ_RANDOM_SEED"),
        )

    app.config.setdefault("LEARNING_ASSISTANT", LearningAssistant(gateway))
    app.logger.info("providers_configured", extra={"providers": gateway.describe()})


def _register_request_hooks(app: Flask) -> None:
    header = app.config.get("REQUEST_ID_HEADER", "X-Request-ID")

    @app.before_request
    def _assign_request_id():
        g.request_id = request.headers.get(header) or uuid4().hex
        g.request_started_at = time.perf_counter()

    @app.after_request
    def _stamp_response(response):
        response.headers.setdefault(header, getattr(g, "request_id", None) or uuid4().hex)

        started = getattr(g, "request_started_at", None)
        elapsed_ms = None if started is None else round((time.perf_counter() - started) * 1000, 3)
        if elapsed_ms is not None:
            response.headers.setdefault("X-Response-Time", f"{elapsed_ms}ms")

        app.logger.info(
            "request_completed",
            extra={"endpoint": request.endpoint, "status_code": response.status_code, "duration": elapsed_ms},
        )
        return response


def _error_response(message: str, status_code: int):
    payload = {"error": message, "status_code": status_code}
    if getattr(g, "request_id", None):
        payload["request_id"] = g.request_id
    return jsonify(payload), status_code


def _register_error_handlers(app: Flask) -> None:
    @app.errorhandler(PdfMentorError)
    def _handle_domain_error(error: PdfMentorError):
        status_code = next(
            (code for error_type, code in DOMAIN_ERROR_STATUS.items() if isinstance(error, error_type)),
            500,
        )
        details = {"error_type": type(error).__name__, "error": str(error), "status_code": status_code}
        if isinstance(error, InsufficientContent):
            details.update(operation=error.operation, minimum=error.minimum, actual=error.actual)
        app.logger.warning("study_request_rejected", extra=details)
        return _error_response(str(error), status_code)

    @app.errorhandler(404)
    def _handle_not_found(error):
        app.logger.warning("not_found", extra={"status_code": 404, "error": str(error)})
        return _error_response("This page was not found.", 404)

    @app.errorhandler(413)
    def _handle_too_large(error):
        limit_mb = int(app.config.get("MAX_CONTENT_LENGTH") or 0) // (1024 * 1024)
        app.logger.warning("upload_too_large", extra={"status_code": 413})
        return _error_response(f"File too large. Maximum size is {limit_mb}MB.", 413)

    @app.errorhandler(HTTPException)
    def _handle_http_exception(error: HTTPException):
        status_code = error.code or 500
        message = error.description or "Request failed."
        log = app.logger.warning if status_code < 500 else app.logger.error
        log("http_error", extra={"status_code": status_code, "error": message})
        return _error_response(message, status_code)

    @app.errorhandler(Exception)
    def _handle_uncaught_exception(error: Exception):
        if isinstance(error, HTTPException):
            return _handle_http_exception(error)
        app.logger.exception("unhandled_exception")
        return _error_response("An unexpected error occurred.", 500)


@contextmanager
def _startup_lock(lock_path: Path):
    """Serialize table creation so multiple gunicorn workers don't race on SQLite."""
    if fcntl is None:
        yield
        return
    with open(lock_path, "w+") as lock_file:
        fcntl.flock(lock_file, fcntl.LOCK_EX)
        try:
            yield
        finally:
            fcntl.flock(lock_file, fcntl.LOCK_UN)
