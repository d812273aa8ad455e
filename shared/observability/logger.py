import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, Optional, Dict
from .context import RequestContext, get_context


# Security: Keys that should never be logged
FORBIDDEN_KEYS = {
    'authorization', 'token', 'password', 'secret',
    'api_key', 'bearer', 'jwt', 'credential', 'auth'
}

_level = logging.DEBUG
_logger_names: set[str] = set()


def configure_logging(level: str) -> None:
    """Set the minimum level for every structured logger, current and future."""
    global _level
    resolved = logging.getLevelName(level.upper())
    if not isinstance(resolved, int):
        raise ValueError(f"Unknown log level: {level}")
    _level = resolved
    for name in _logger_names:
        logging.getLogger(name).setLevel(_level)


class StructuredLogger:
    """
    Structured JSON logger that injects request context.

    Context comes from the explicit ``ctx`` argument when given, otherwise
    from the contextvar set by ContextMiddleware:
    - trace_id, request_id, request_source, span_id

    Extra keyword arguments are merged into the ``data`` envelope.

    Usage:
        logger = get_logger("climblog.api.climbs")
        logger.info("Climb created", data={"climb_id": 42})
    """

    def __init__(self, service_name: str):
        self.service_name = service_name
        self.logger = logging.getLogger(service_name)
        self.logger.setLevel(_level)
        _logger_names.add(service_name)

        if not self.logger.handlers:
            handler = logging.StreamHandler(sys.stdout)
            handler.setFormatter(logging.Formatter('%(message)s'))
            self.logger.addHandler(handler)
        self.logger.propagate = False

    def _sanitize(self, values: Dict[str, Any]) -> Dict[str, Any]:
        """Remove forbidden keys for security."""
        return {
            k: v for k, v in values.items()
            if k.lower() not in FORBIDDEN_KEYS
        }

    def _log(
        self,
        level: str,
        message: str,
        ctx: Optional[RequestContext] = None,
        data: Any = None,
        **kwargs
    ):
        log_entry: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat().replace('+00:00', 'Z'),
            "level": level,
            "logger": self.service_name,
            "message": message
        }

        log_entry.update(ctx.to_dict() if ctx is not None else get_context())

        payload: Dict[str, Any] = {}
        if data is not None:
            payload.update(data if isinstance(data, dict) else {"value": data})
        payload.update(kwargs)
        payload = self._sanitize(payload)
        if payload:
            log_entry["data"] = payload

        log_line = json.dumps(log_entry, default=str)

        log_method = getattr(self.logger, level.lower())
        log_method(log_line)

    def debug(self, message: str, ctx: Optional[RequestContext] = None, **kwargs):
        self._log("DEBUG", message, ctx, **kwargs)

    def info(self, message: str, ctx: Optional[RequestContext] = None, **kwargs):
        self._log("INFO", message, ctx, **kwargs)

    def warning(self, message: str, ctx: Optional[RequestContext] = None, **kwargs):
        self._log("WARNING", message, ctx, **kwargs)

    def error(self, message: str, ctx: Optional[RequestContext] = None, **kwargs):
        self._log("ERROR", message, ctx, **kwargs)

    def critical(self, message: str, ctx: Optional[RequestContext] = None, **kwargs):
        self._log("CRITICAL", message, ctx, **kwargs)


def get_logger(service_name: str) -> StructuredLogger:
    """Get a structured logger for the given service."""
    return StructuredLogger(service_name)
