"""Base repository with connection pooling."""
from typing import Any

from .executor import QueryRequest, QueryResult, execute
from .pool import ConnectionPool, PooledConnection


class BaseRepository:
    """Base repository with connection pooling.

    All repositories MUST inherit from this class and go through run() (or
    get_connection/release_connection) so connections are always returned
    to the pool.
    """

    def __init__(self, pool: ConnectionPool):
        """Initialize repository with connection pool.

        Args:
            pool: Shared application connection pool
        """
        self.pool = pool

    async def get_connection(self) -> PooledConnection:
        """Get connection from pool."""
        return await self.pool.acquire()

    def release_connection(self, conn: PooledConnection):
        """Release connection back to pool."""
        self.pool.release(conn)

    async def run(self, sql: str, *params: Any) -> QueryResult:
        """Execute one statement on a pooled connection.

        Args:
            sql: Statement with $1..$n placeholders
            *params: Bound parameters in placeholder order

        Returns:
            QueryResult of the statement
        """
        conn = await self.get_connection()
        try:
            return await execute(conn, QueryRequest(sql, params))
        finally:
            self.release_connection(conn)
