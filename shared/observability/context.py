from contextvars import ContextVar, Token
from typing import Dict, Any, Optional
from dataclasses import dataclass
import time
import secrets


def generate_trace_id() -> str:
    """
    Generate a new trace_id.

    Format: t + Unix timestamp (seconds) + 12 hexadecimal characters
    Example: t1735228800a1b2c3d4e5f6
    """
    timestamp = int(time.time())
    random_hex = secrets.token_hex(6)
    return f"t{timestamp}{random_hex}"


def generate_request_id() -> str:
    """
    Generate a new request_id.

    Format: r + Unix timestamp (seconds) + 12 hexadecimal characters
    Example: r1735228800f6e5d4c3b2a1
    """
    timestamp = int(time.time())
    random_hex = secrets.token_hex(6)
    return f"r{timestamp}{random_hex}"


def generate_span_id() -> str:
    """
    Generate a new span_id.

    Format: s + 8 hexadecimal characters
    Example: sa1b2c3d4
    """
    random_hex = secrets.token_hex(4)
    return f"s{random_hex}"


@dataclass(frozen=True)
class RequestContext:
    """
    Request context for one inbound HTTP request.

    Immutable dataclass containing tracing information for observability.

    Fields:
    - trace_id: Global trace identifier (e.g., "t1735228800a1b2c3d4e5f6")
    - request_id: Request identifier (e.g., "r1735228800f6e5d4c3b2a1")
    - request_source: Service and endpoint serving the request (e.g., "CLIMBLOG:GET/climbs")
    - span_id: Span identifier for this operation (e.g., "sa1b2c3d4")
    """
    trace_id: str
    request_id: str
    request_source: str
    span_id: str

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for logging."""
        return {
            'trace_id': self.trace_id,
            'request_id': self.request_id,
            'request_source': self.request_source,
            'span_id': self.span_id
        }


_current_context: ContextVar[Optional[RequestContext]] = ContextVar(
    "climblog_request_context", default=None
)


def set_current_context(ctx: RequestContext) -> Token:
    """Bind ctx to the running task. Returns a token for reset_current_context."""
    return _current_context.set(ctx)


def reset_current_context(token: Token) -> None:
    _current_context.reset(token)


def get_current_context() -> Optional[RequestContext]:
    return _current_context.get()


def get_context() -> Dict[str, Any]:
    """Return the current request context as a dict (empty outside a request)."""
    ctx = _current_context.get()
    return ctx.to_dict() if ctx else {}
