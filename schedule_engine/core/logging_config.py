import contextvars
import logging
import time
import uuid
from contextlib import contextmanager
from logging.handlers import RotatingFileHandler
from pathlib import Path

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from schedule_engine.core.config import Settings

# Request id of the request being served, "-" outside of requests
request_id_var: contextvars.ContextVar[str] = contextvars.ContextVar("request_id", default="-")
# Schedule a use case is working on, "-" when none
schedule_id_var: contextvars.ContextVar[str] = contextvars.ContextVar("schedule_id", default="-")

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s [%(request_id)s] [schedule=%(schedule_id)s] %(message)s"


class LogContextFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:  # type: ignore[override]
        record.request_id = request_id_var.get("-")
        record.schedule_id = schedule_id_var.get("-")
        return True


@contextmanager
def schedule_log_context(schedule_id):
    """Tag every record logged inside the block with ``schedule_id``."""
    token = schedule_id_var.set(str(schedule_id))
    try:
        yield
    finally:
        schedule_id_var.reset(token)


def setup_logging(*, level: str = "INFO", to_file: bool = True, file_path: str = "logs/app.log", max_bytes: int = 10 * 1024 * 1024, backup_count: int = 5) -> None:
    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")
    log_level = getattr(logging, level.upper(), logging.INFO)

    root = logging.getLogger()
    # Drop handlers installed by uvicorn or basicConfig
    for h in list(root.handlers):
        root.removeHandler(h)
    root.setLevel(log_level)

    console = logging.StreamHandler()
    console.setFormatter(formatter)
    console.addFilter(LogContextFilter())
    root.addHandler(console)

    if to_file:
        try:
            path = Path(file_path)
            path.parent.mkdir(parents=True, exist_ok=True)
            fh = RotatingFileHandler(path, maxBytes=max_bytes, backupCount=backup_count)
            fh.setFormatter(formatter)
            fh.addFilter(LogContextFilter())
            root.addHandler(fh)
        except OSError as e:
            logging.getLogger(__name__).warning("Failed to setup file logging at %s: %s", file_path, e)

    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    # Statement echo is only useful when debugging persistence
    logging.getLogger("sqlalchemy.engine").setLevel(logging.DEBUG if log_level <= logging.DEBUG else logging.WARNING)


def setup_logging_from_settings(cfg: Settings) -> None:
    setup_logging(
        level=cfg.log_level,
        to_file=cfg.log_to_file,
        file_path=cfg.log_file_path,
        max_bytes=cfg.log_max_bytes,
        backup_count=cfg.log_backup_count,
    )


class RequestIdMiddleware(BaseHTTPMiddleware):
    """Tags every request with X-Request-ID and logs method, path, status and timing."""

    def __init__(self, app: ASGIApp) -> None:
        super().__init__(app)
        self.logger = logging.getLogger("schedule_engine.request")

    async def dispatch(self, request: Request, call_next):
        start = time.perf_counter()
        rid = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        token = request_id_var.set(rid)
        try:
            self.logger.info("%s %s", request.method, request.url.path)
            response = await call_next(request)
            duration_ms = (time.perf_counter() - start) * 1000
            response.headers["X-Request-ID"] = rid
            self.logger.info("%s %s -> %s in %.1fms", request.method, request.url.path, response.status_code, duration_ms)
            return response
        except Exception:
            self.logger.exception("Unhandled error while serving %s %s", request.method, request.url.path)
            raise
        finally:
            request_id_var.reset(token)
