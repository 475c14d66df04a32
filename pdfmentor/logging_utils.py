from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from logging.config import dictConfig
from pathlib import Path
from typing import Any, Iterable, Mapping

from flask import g, has_request_context, request


REQUEST_FIELDS = ("request_id", "method", "path", "remote_addr", "status_code", "duration")
VERBOSITY_LEVELS = ("none", "essential", "verbose")

_STANDARD_RECORD_KEYS = frozenset(logging.makeLogRecord({}).__dict__) | {"message", "asctime", "taskName"}
_PLAIN_FORMAT = "%(asctime)s %(levelname)s [%(request_id)s] %(name)s: %(message)s"


@dataclass(frozen=True)
class LogSettings:
    level: int = logging.INFO
    verbosity: str = "essential"
    json_lines: bool = True
    to_stdout: bool = True
    log_file: Path | None = None
    max_bytes: int = 10 * 1024 * 1024
    backup_count: int = 5

    @classmethod
    def from_config(cls, config: Mapping[str, Any], instance_path: str) -> "LogSettings":
        verbosity = str(config.get("LOG_VERBOSITY", "essential")).strip().lower()
        if verbosity not in VERBOSITY_LEVELS:
            verbosity = "essential"

        log_file = None
        if config.get("LOG_TO_FILE", True):
            log_dir = Path(config.get("LOG_DIR") or Path(instance_path) / "logs")
            log_file = Path(config.get("LOG_FILE") or log_dir / "pdfmentor.log")

        return cls(
            level=resolve_log_level(config.get("LOG_LEVEL", "INFO")),
            verbosity=verbosity,
            json_lines=str(config.get("LOG_FORMAT", "json")).lower() == "json",
            to_stdout=bool(config.get("LOG_TO_STDOUT", True)),
            log_file=log_file,
            max_bytes=int(config.get("LOG_FILE_MAX_BYTES", 10 * 1024 * 1024)),
            backup_count=int(config.get("LOG_FILE_BACKUP_COUNT", 5)),
        )

    @property
    def effective_level(self) -> int:
        # "essential" keeps warnings and errors only.
        if self.verbosity == "essential":
            return max(self.level, logging.WARNING)
        return self.level


class RequestContextFilter(logging.Filter):
    """Stamps each record with the id and route of the request being served."""

    def filter(self, record: logging.LogRecord) -> bool:
        for key in REQUEST_FIELDS:
            if not hasattr(record, key):
                setattr(record, key, None)

        if not has_request_context():
            record.request_id = record.request_id or "system"
            return True

        record.request_id = getattr(g, "request_id", None) or record.request_id or "n/a"
        record.method = request.method
        record.path = request.full_path.rstrip("?")
        record.remote_addr = request.headers.get("X-Forwarded-For", request.remote_addr)
        return True


class JsonFormatter(logging.Formatter):
    """One JSON object per line; ``extra=`` fields become top-level keys."""

    default_time_format = "%Y-%m-%dT%H:%M:%S"
    default_msec_format = "%s.%03dZ"

    def __init__(self, *, excluded_keys: Iterable[str] | None = None):
        super().__init__()
        self._excluded_keys = set(excluded_keys or ())

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for key, value in record.__dict__.items():
            if key in _STANDARD_RECORD_KEYS or key.startswith("_") or key in self._excluded_keys:
                continue
            if value is None and key in REQUEST_FIELDS:
                continue
            payload.setdefault(key, _jsonable(value))

        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str, ensure_ascii=True)


def _jsonable(value: Any) -> Any:
    if isinstance(value, (str, int, float, bool)) or value is None:
        return value
    if isinstance(value, Mapping):
        return {str(key): _jsonable(item) for key, item in value.items()}
    if isinstance(value, (list, tuple, set)):
        return [_jsonable(item) for item in value]
    return str(value)


def resolve_log_level(level: Any) -> int:
    if isinstance(level, int):
        return level
    normalized = str(level or "").strip()
    if normalized.isdigit():
        return int(normalized)
    resolved = logging.getLevelName(normalized.upper())
    return resolved if isinstance(resolved, int) else logging.INFO


def _silence(app) -> None:
    for logger in (logging.getLogger(), logging.getLogger("werkzeug"), app.logger):
        for handler in list(logger.handlers):
            handler.close()
            logger.removeHandler(handler)
    logging.disable(logging.CRITICAL)
    app.logger.disabled = True


def _handlers(settings: LogSettings) -> dict[str, dict[str, Any]]:
    level = logging.getLevelName(settings.effective_level)
    common = {"level": level, "formatter": "standard", "filters": ["request_meta"]}

    handlers: dict[str, dict[str, Any]] = {}
    if settings.log_file is not None:
        settings.log_file.parent.mkdir(parents=True, exist_ok=True)
        handlers["file"] = {
            "class": "logging.handlers.RotatingFileHandler",
            "filename": str(settings.log_file),
            "maxBytes": settings.max_bytes,
            "backupCount": settings.backup_count,
            "encoding": "utf-8",
            **common,
        }
    if settings.to_stdout or not handlers:
        handlers["console"] = {"class": "logging.StreamHandler", **common}
    return handlers


def setup_logging(app) -> LogSettings:
    """Configure root, werkzeug and app loggers from the Flask config."""

    settings = LogSettings.from_config(app.config, app.instance_path)
    logging.disable(logging.NOTSET)
    if settings.verbosity == "none":
        _silence(app)
        return settings

    app.logger.disabled = False
    if settings.json_lines:
        formatter: dict[str, Any] = {"()": "pdfmentor.logging_utils.JsonFormatter"}
    else:
        formatter = {"format": _PLAIN_FORMAT, "datefmt": "%Y-%m-%d %H:%M:%S"}

    handlers = _handlers(settings)
    level = logging.getLevelName(settings.effective_level)
    dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "filters": {"request_meta": {"()": "pdfmentor.logging_utils.RequestContextFilter"}},
            "formatters": {"standard": formatter},
            "handlers": handlers,
            "root": {"level": level, "handlers": list(handlers)},
            "loggers": {
                "werkzeug": {"level": "WARNING", "handlers": list(handlers), "propagate": False},
            },
        }
    )
    return settings
