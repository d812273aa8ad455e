"""Database error taxonomy.

Every failure raised by the connection pool or the query executor is one of
the classes below, so callers can branch on the kind of failure without
knowing anything about the driver:

    DatabaseError (base)
    ├── PoolExhausted         no connection became available before the timeout
    ├── PoolClosed            the pool is shutting down or already closed
    ├── MalformedQuery        parameter count does not match the placeholders
    ├── ConnectionLost        the session broke; re-acquire and retry if safe
    ├── ConstraintViolation   the database rejected the data (duplicate key, FK)
    └── SyntaxOrSchemaError   the statement itself is wrong; a programming bug
"""

from typing import Any, Dict, Optional


class DatabaseError(Exception):
    """Base class for pool and executor failures.

    Attributes:
        message: Human-readable description (logged, never returned to clients)
        context: Extra debug fields for structured logs
    """

    code = "DATABASE_ERROR"
    retryable = False

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None):
        self.message = message
        self.context = context or {}
        super().__init__(message)

    def to_log_data(self) -> Dict[str, Any]:
        """Fields for the ``data`` envelope of a structured log line."""
        return {"code": self.code, "error": self.message, **self.context}


class PoolExhausted(DatabaseError):
    code = "POOL_EXHAUSTED"


class PoolClosed(DatabaseError):
    code = "POOL_CLOSED"


class MalformedQuery(DatabaseError):
    code = "MALFORMED_QUERY"


class ConnectionLost(DatabaseError):
    """The connection failed mid-call and has been invalidated.

    Only the caller knows whether re-issuing the statement is idempotent, so
    retrying (on a freshly acquired connection) is left to it.
    """

    code = "CONNECTION_LOST"
    retryable = True


class ConstraintViolation(DatabaseError):
    """An integrity constraint rejected the statement."""

    code = "CONSTRAINT_VIOLATION"

    def __init__(
        self,
        message: str,
        constraint_name: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        self.constraint_name = constraint_name
        super().__init__(message, context)


class SyntaxOrSchemaError(DatabaseError):
    code = "SYNTAX_OR_SCHEMA_ERROR"
