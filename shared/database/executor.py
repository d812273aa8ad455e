"""Single-statement query execution on a checked-out connection."""
import asyncio
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, TYPE_CHECKING

import asyncpg

from shared.observability.logger import get_logger
from .errors import ConnectionLost, ConstraintViolation, MalformedQuery, SyntaxOrSchemaError

if TYPE_CHECKING:
    from .pool import PooledConnection

logger = get_logger("climblog.database.executor")

# Literals (plain, E-escaped and dollar-quoted), quoted identifiers and
# comments are skipped so that a "$1" inside them is not taken for a placeholder.
_TOKEN_PATTERN = re.compile(
    r"(?<![\w$])[eE]'(?:[^'\\]|\\.|'')*'"
    r"|'(?:[^']|'')*'"
    r'|"(?:[^"]|"")*"'
    r"|\$(?P<tag>(?:[A-Za-z_]\w*)?)\$.*?\$(?P=tag)\$"
    r"|--[^\n]*"
    r"|/\*.*?\*/"
    r"|\$(?P<index>\d+)",
    re.DOTALL,
)

# Errors that leave the session unusable.
CONNECTION_ERRORS = (
    OSError,
    asyncio.TimeoutError,
    asyncpg.InterfaceError,
    asyncpg.PostgresConnectionError,
    asyncpg.exceptions.OperatorInterventionError,
)


def count_placeholders(sql: str) -> int:
    """Number of distinct ``$n`` placeholders in sql.

    Raises:
        MalformedQuery: Placeholders are not numbered $1..$n without gaps
    """
    indexes = {int(m.group("index")) for m in _TOKEN_PATTERN.finditer(sql) if m.group("index")}
    if indexes and indexes != set(range(1, max(indexes) + 1)):
        raise MalformedQuery(
            "Placeholders must be numbered $1..$n without gaps",
            context={"placeholders": sorted(indexes)},
        )
    return len(indexes)


@dataclass(frozen=True)
class QueryRequest:
    """An SQL template with ``$n`` placeholders and its bound parameters."""

    sql: str
    params: Sequence[Any] = ()

    def __post_init__(self):
        object.__setattr__(self, "params", tuple(self.params))


@dataclass(frozen=True)
class QueryResult:
    """Normalized outcome of one statement.

    rows holds the returned records (SELECT, or a write with RETURNING).
    affected_rows is parsed from the command status ("DELETE 3" -> 3).
    inserted_id is the ``id`` column of the first row returned by an INSERT.
    """

    rows: List[Dict[str, Any]] = field(default_factory=list)
    command: str = ""
    affected_rows: Optional[int] = None
    inserted_id: Any = None

    @property
    def first(self) -> Optional[Dict[str, Any]]:
        return self.rows[0] if self.rows else None


def _parse_status(status: Optional[str]) -> tuple[str, Optional[int]]:
    """Split a command tag like "INSERT 0 1" into ("INSERT", 1)."""
    if not status:
        return "", None
    parts = status.split()
    count = int(parts[-1]) if len(parts) > 1 and parts[-1].isdigit() else None
    return parts[0], count


def _translate(exc: BaseException, conn: "PooledConnection", request: QueryRequest):
    """Map a driver exception onto the error taxonomy."""
    context = {"connection_id": conn.id, "sql": request.sql}

    # A cancelled statement (statement_timeout, pg_cancel_backend) leaves the
    # session usable, unlike the other operator-intervention errors.
    if isinstance(exc, asyncpg.QueryCanceledError):
        return SyntaxOrSchemaError(
            f"Statement canceled: {exc}",
            context={**context, "sqlstate": getattr(exc, "sqlstate", None)},
        )

    if isinstance(exc, CONNECTION_ERRORS):
        conn.invalidate()
        return ConnectionLost(f"Connection lost during query: {exc}", context=context)

    if isinstance(exc, asyncpg.IntegrityConstraintViolationError):
        constraint = getattr(exc, "constraint_name", None)
        return ConstraintViolation(
            f"Constraint violation: {exc}",
            constraint_name=constraint,
            context={**context, "constraint": constraint},
        )

    if isinstance(exc, asyncpg.PostgresError):
        sqlstate = getattr(exc, "sqlstate", None)
        return SyntaxOrSchemaError(
            f"Statement rejected: {exc}",
            context={**context, "sqlstate": sqlstate},
        )

    return None


async def execute(conn: "PooledConnection", request: QueryRequest) -> QueryResult:
    """Run one statement on conn.

    Args:
        conn: Connection checked out from a ConnectionPool
        request: Statement and parameters

    Returns:
        QueryResult with rows and/or the affected row count

    Raises:
        MalformedQuery: Parameter count does not match placeholders (no I/O done)
        ConnectionLost: The session failed; conn is invalidated
        ConstraintViolation: An integrity constraint rejected the data
        SyntaxOrSchemaError: The statement is invalid for the schema
    """
    expected = count_placeholders(request.sql)
    if expected != len(request.params):
        raise MalformedQuery(
            f"Statement expects {expected} parameters, got {len(request.params)}",
            context={"sql": request.sql},
        )

    if not conn.valid:
        raise ConnectionLost(
            "Connection was invalidated and cannot be used",
            context={"connection_id": conn.id},
        )

    try:
        stmt = await conn.raw.prepare(request.sql)
        records = await stmt.fetch(*request.params)
        status = stmt.get_statusmsg()
    except Exception as exc:
        error = _translate(exc, conn, request)
        if error is None:
            raise
        logger.error("Query failed", data=error.to_log_data())
        raise error from exc

    rows = [dict(record) for record in records]
    command, affected = _parse_status(status)
    inserted_id = None
    if command == "INSERT" and rows and "id" in rows[0]:
        inserted_id = rows[0]["id"]

    logger.debug("Query executed", data={
        "connection_id": conn.id,
        "command": command,
        "affected_rows": affected
    })
    return QueryResult(rows=rows, command=command, affected_rows=affected, inserted_id=inserted_id)
