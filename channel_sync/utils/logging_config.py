"""
Structured Logging Configuration

JSON log lines for the webhook pipeline. Each line carries:
- the request id of the HTTP call that received the event
- the webhook event id being processed (background task or worker)
- optional entity / duration / extra data attached through StructuredLogger
"""

import logging
import json
import sys
from datetime import datetime, timezone
from typing import Optional, Any, Dict, Tuple
from contextvars import ContextVar

request_id_var: ContextVar[str] = ContextVar('request_id', default='')
event_id_var: ContextVar[str] = ContextVar('event_id', default='')

# (output key, context variable) pairs copied onto every line when set
CONTEXT_FIELDS: Tuple[Tuple[str, ContextVar], ...] = (
    ("request_id", request_id_var),
    ("event_id", event_id_var),
)

# LogRecord attributes set through `extra` and their output key
RECORD_FIELDS: Tuple[Tuple[str, str], ...] = (
    ("entity_type", "entity_type"),
    ("entity_id", "entity_id"),
    ("duration_ms", "duration_ms"),
    ("extra_data", "data"),
)

THIRD_PARTY_LOGGERS = ("httpx", "httpcore", "sqlalchemy.engine", "alembic")


class JSONFormatter(logging.Formatter):
    """One JSON object per log record"""

    def format(self, record: logging.LogRecord) -> str:
        log_data: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        for key, var in CONTEXT_FIELDS:
            value = var.get()
            if value:
                log_data[key] = value

        for attribute, key in RECORD_FIELDS:
            if hasattr(record, attribute):
                log_data[key] = getattr(record, attribute)

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, ensure_ascii=False, default=str)


class StructuredLogger(logging.LoggerAdapter):
    """
    Adapter with helpers for the events operators search for:
    webhook reception, webhook outcome, reservation status, request timing.
    """

    def process(self, msg: str, kwargs: Dict[str, Any]) -> tuple:
        kwargs['extra'] = {**self.extra, **kwargs.get('extra', {})}
        return msg, kwargs

    def log_with_context(
        self,
        level: int,
        msg: str,
        entity_type: Optional[str] = None,
        entity_id: Optional[str] = None,
        duration_ms: Optional[float] = None,
        **extra_data
    ):
        extra: Dict[str, Any] = {}
        if entity_type:
            extra['entity_type'] = entity_type
        if entity_id:
            extra['entity_id'] = entity_id
        if duration_ms is not None:
            extra['duration_ms'] = duration_ms
        if extra_data:
            extra['extra_data'] = extra_data

        self.log(level, msg, extra=extra)

    def webhook_received(self, event_id: str, event_type: str, external_booking_id: Optional[str], duplicate: bool = False):
        self.log_with_context(
            logging.INFO,
            f"Webhook {'duplicate' if duplicate else 'received'}: {event_type}",
            entity_type="webhook_event",
            entity_id=event_id,
            event_type=event_type,
            external_booking_id=external_booking_id,
            duplicate=duplicate
        )

    def webhook_processed(
        self,
        event_id: str,
        success: bool,
        action: str,
        reservation_id: Optional[str] = None,
        error: Optional[str] = None,
        duration_ms: float = None
    ):
        """Terminal outcome of an event; failures are logged at ERROR"""
        self.log_with_context(
            logging.INFO if success else logging.ERROR,
            f"Webhook {'processed' if success else 'failed'}: {action}",
            entity_type="webhook_event",
            entity_id=event_id,
            duration_ms=duration_ms,
            action=action,
            reservation_id=reservation_id,
            error=error
        )

    def reservation_status_changed(self, reservation_id: str, old_status: str, new_status: str):
        self.log_with_context(
            logging.INFO,
            f"Reservation status changed: {old_status} -> {new_status}",
            entity_type="reservation",
            entity_id=reservation_id,
            old_status=old_status,
            new_status=new_status
        )

    def api_request(self, method: str, path: str, status_code: int, duration_ms: float):
        self.log_with_context(
            logging.INFO if status_code < 500 else logging.ERROR,
            f"{method} {path} - {status_code}",
            duration_ms=duration_ms,
            method=method,
            path=path,
            status_code=status_code
        )


def setup_logging(
    level: str = "INFO",
    json_format: bool = True,
    include_uvicorn: bool = True
) -> None:
    """
    Route all logging to stdout.

    Args:
        level: DEBUG, INFO, WARNING or ERROR
        json_format: JSONFormatter when True, plain text for local runs
        include_uvicorn: also take over the uvicorn loggers (API process only)
    """
    log_level = getattr(logging, level.upper(), logging.INFO)

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(log_level)
    if json_format:
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
        ))

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    root_logger.handlers = [handler]

    logging.getLogger("channel_sync").setLevel(log_level)

    if include_uvicorn:
        for logger_name in ("uvicorn", "uvicorn.access", "uvicorn.error"):
            logging.getLogger(logger_name).handlers = [handler]

    for logger_name in THIRD_PARTY_LOGGERS:
        logging.getLogger(logger_name).setLevel(logging.WARNING)


def get_logger(name: str) -> StructuredLogger:
    return StructuredLogger(logging.getLogger(name), {})


def set_request_context(request_id: str):
    request_id_var.set(request_id)


def set_event_context(event_id: str):
    """Tag subsequent log lines with the webhook event being processed"""
    event_id_var.set(event_id)


def clear_request_context():
    for _, var in CONTEXT_FIELDS:
        var.set('')
