"""
Logging configuration for Go Make Your Picks

Console output plus rotating files: the application log, an error log,
a scoring audit log and a scheduler log. Every record carries the id of
the request it was emitted from.
"""

import logging
import logging.handlers
import os
import time
import uuid

from flask import g, has_request_context, request

# Marks handlers installed here so a second create_app() replaces them
HANDLER_TAG = "_picks_handler"

SCORING_LOGGERS = ("app.services.scoring_service", "app.services.season_service")


class RequestContextFilter(logging.Filter):
    """Add request context to log records"""

    def filter(self, record):
        if has_request_context():
            record.request_id = getattr(g, "request_id", "-")
            record.method = request.method
            record.path = request.path
            record.remote_addr = request.remote_addr
        else:
            record.request_id = "-"
            record.method = "-"
            record.path = "-"
            record.remote_addr = "-"
        return True


class ColoredFormatter(logging.Formatter):
    """Colored level names for the development console"""

    COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    RESET = "\033[0m"

    def format(self, record):
        formatted = super().format(record)
        color = self.COLORS.get(record.levelname)
        if color:
            formatted = formatted.replace(
                record.levelname, f"{color}{record.levelname}{self.RESET}", 1
            )
        return formatted


def _rotating_handler(path, level, fmt, max_mb=5, backups=3):
    handler = logging.handlers.RotatingFileHandler(
        path, maxBytes=max_mb * 1024 * 1024, backupCount=backups
    )
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(fmt, datefmt="%Y-%m-%d %H:%M:%S"))
    handler.addFilter(RequestContextFilter())
    setattr(handler, HANDLER_TAG, True)
    return handler


def _remove_installed_handlers(logger):
    for handler in logger.handlers[:]:
        if getattr(handler, HANDLER_TAG, False):
            logger.removeHandler(handler)
            handler.close()


def setup_logging(app):
    """
    Configure logging for the Flask application

    Args:
        app: Flask application instance
    """
    log_level = getattr(logging, app.config.get("LOG_LEVEL", "INFO").upper(), logging.INFO)

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    _remove_installed_handlers(root_logger)
    for name in SCORING_LOGGERS + ("app.services.scheduler_service",):
        _remove_installed_handlers(logging.getLogger(name))

    if app.config.get("LOG_TO_CONSOLE", True):
        console_handler = logging.StreamHandler()
        console_handler.setLevel(log_level)
        if app.debug:
            console_handler.setFormatter(
                ColoredFormatter(
                    "%(asctime)s [%(levelname)s] %(name)s: %(message)s "
                    "[%(filename)s:%(lineno)d]",
                    datefmt="%H:%M:%S",
                )
            )
        else:
            console_handler.setFormatter(
                logging.Formatter(
                    "%(asctime)s [%(levelname)s] [%(request_id)s] %(name)s: %(message)s",
                    datefmt="%Y-%m-%d %H:%M:%S",
                )
            )
        console_handler.addFilter(RequestContextFilter())
        setattr(console_handler, HANDLER_TAG, True)
        root_logger.addHandler(console_handler)

    if app.config.get("LOG_TO_FILE", True):
        log_dir = app.config.get("LOG_DIR", "logs")
        os.makedirs(log_dir, exist_ok=True)

        root_logger.addHandler(
            _rotating_handler(
                os.path.join(log_dir, "picks.log"),
                log_level,
                "%(asctime)s [%(levelname)s] [%(request_id)s] %(name)s: %(message)s "
                "[%(method)s %(path)s] [%(remote_addr)s]",
                max_mb=10,
                backups=5,
            )
        )
        root_logger.addHandler(
            _rotating_handler(
                os.path.join(log_dir, "errors.log"),
                logging.ERROR,
                "%(asctime)s [%(levelname)s] [%(request_id)s] %(name)s: %(message)s "
                "[%(pathname)s:%(lineno)d] [%(method)s %(path)s]",
            )
        )

        # Audit trail of every scoring run, season end and reopen
        scoring_handler = _rotating_handler(
            os.path.join(log_dir, "scoring.log"),
            logging.INFO,
            "%(asctime)s [%(levelname)s] [%(request_id)s] %(name)s: %(message)s",
            max_mb=5,
            backups=10,
        )
        for name in SCORING_LOGGERS:
            logging.getLogger(name).addHandler(scoring_handler)

        logging.getLogger("app.services.scheduler_service").addHandler(
            _rotating_handler(
                os.path.join(log_dir, "scheduler.log"),
                logging.INFO,
                "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
            )
        )

    logging.getLogger("werkzeug").setLevel(logging.WARNING)
    logging.getLogger("flask_limiter").setLevel(logging.WARNING)
    logging.getLogger("apscheduler").setLevel(logging.WARNING)

    register_request_logging(app)

    app.logger.info(f"Logging configured - Level: {logging.getLevelName(log_level)}")


def register_request_logging(app):
    """Tag each request with an id and log how long it took"""
    logger = logging.getLogger("app.requests")

    @app.before_request
    def start_request_timer():
        g.request_id = (request.headers.get("X-Request-ID") or uuid.uuid4().hex)[:32]
        g.request_started = time.perf_counter()

    @app.after_request
    def log_request(response):
        started = getattr(g, "request_started", None)
        if started is None:
            return response

        duration = time.perf_counter() - started
        response.headers["X-Request-ID"] = g.request_id
        message = (
            f"{request.method} {request.path} -> {response.status_code} "
            f"in {duration * 1000:.0f}ms"
        )
        if duration > app.config.get("SLOW_REQUEST_THRESHOLD", 1.0):
            logger.warning(f"Slow request: {message}")
        else:
            logger.debug(message)
        return response
