"""Database infrastructure."""
from .base_repository import BaseRepository
from .errors import (
    ConnectionLost,
    ConstraintViolation,
    DatabaseError,
    MalformedQuery,
    PoolClosed,
    PoolExhausted,
    SyntaxOrSchemaError,
)
from .executor import QueryRequest, QueryResult, execute
from .pool import ConnectionPool, PooledConnection, PoolStats, create_pool, close_pool

__all__ = [
    "BaseRepository",
    "ConnectionLost",
    "ConnectionPool",
    "ConstraintViolation",
    "DatabaseError",
    "MalformedQuery",
    "PoolClosed",
    "PoolExhausted",
    "PoolStats",
    "PooledConnection",
    "QueryRequest",
    "QueryResult",
    "SyntaxOrSchemaError",
    "close_pool",
    "create_pool",
    "execute",
]
