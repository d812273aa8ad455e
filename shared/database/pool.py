"""Database connection pool management.

ConnectionPool hands asyncpg connections to concurrent request handlers:

- at most ``max_size`` connections exist at once (checked out + idle)
- connections are opened lazily, on demand
- when every slot is taken, callers queue up and are served strictly in
  arrival order; a caller that waits longer than the acquire timeout gets
  PoolExhausted
- a connection invalidated during use is terminated on release and its slot
  is passed on; it is never handed out again
- after shutdown() every acquire fails with PoolClosed

All bookkeeping happens between awaits on the event loop, so each acquire
or release updates the counters and queues as one step.
"""
import asyncio
import itertools
import time
from collections import deque
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from functools import partial
from typing import Any, AsyncIterator, Awaitable, Callable, Deque, Optional, Set

import asyncpg

from config.settings import Settings
from shared.observability.logger import get_logger
from .errors import ConnectionLost, DatabaseError, PoolClosed, PoolExhausted

logger = get_logger("climblog.database.pool")

ConnectFactory = Callable[[], Awaitable[Any]]

# Failures that mean "could not reach the server", as opposed to a bug.
CONNECT_ERRORS = (OSError, asyncio.TimeoutError, asyncpg.PostgresError, asyncpg.InterfaceError)

_connection_ids = itertools.count(1)


@dataclass(eq=False)
class PooledConnection:
    """A driver session owned by the pool or by exactly one caller."""

    raw: Any
    id: int = field(default_factory=lambda: next(_connection_ids))
    created_at: float = field(default_factory=time.monotonic)
    last_used: float = field(default_factory=time.monotonic)
    valid: bool = True

    @property
    def idle_time(self) -> float:
        return time.monotonic() - self.last_used

    def invalidate(self) -> None:
        """Mark the session broken. The pool will not reuse it."""
        self.valid = False

    def is_closed(self) -> bool:
        return self.raw.is_closed()

    def terminate(self) -> None:
        self.raw.terminate()

    async def close(self) -> None:
        await self.raw.close()


@dataclass(frozen=True)
class PoolStats:
    max_size: int
    active: int
    idle: int
    waiting: int
    closed: bool

    def to_dict(self) -> dict:
        return {
            "max_size": self.max_size,
            "active": self.active,
            "idle": self.idle,
            "waiting": self.waiting,
            "closed": self.closed,
        }


class ConnectionPool:
    """Bounded pool of database connections with a FIFO wait queue.

    Args:
        connect: Zero-argument coroutine function returning a new driver
            connection (e.g. a partial of ``asyncpg.connect``)
        max_size: Upper bound on connections alive at once
        acquire_timeout: Default seconds a caller waits for a free connection
        max_idle_time: Idle connections older than this are closed instead of
            reused; None disables the check
    """

    def __init__(
        self,
        connect: ConnectFactory,
        max_size: int = 10,
        acquire_timeout: float = 10.0,
        max_idle_time: Optional[float] = 300.0,
    ):
        if max_size < 1:
            raise ValueError("max_size must be >= 1")
        if acquire_timeout <= 0:
            raise ValueError("acquire_timeout must be positive")

        self._connect = connect
        self._max_size = max_size
        self._acquire_timeout = acquire_timeout
        self._max_idle_time = max_idle_time

        self._idle: Deque[PooledConnection] = deque()
        self._waiters: Deque[asyncio.Future] = deque()
        self._checked_out: Set[PooledConnection] = set()
        # Checked-out connections plus slots reserved for connections being opened.
        self._active = 0
        self._closed = False
        self._drained = asyncio.Event()

    @property
    def max_size(self) -> int:
        return self._max_size

    @property
    def closed(self) -> bool:
        return self._closed

    def stats(self) -> PoolStats:
        return PoolStats(
            max_size=self._max_size,
            active=self._active,
            idle=len(self._idle),
            waiting=sum(1 for w in self._waiters if not w.done()),
            closed=self._closed,
        )

    async def acquire(self, timeout: Optional[float] = None) -> PooledConnection:
        """Check out a connection.

        Args:
            timeout: Seconds to wait when the pool is full; defaults to the
                pool's acquire_timeout

        Returns:
            A connection owned by the caller until release()

        Raises:
            PoolClosed: The pool has been shut down
            PoolExhausted: No connection freed up within the timeout
            ConnectionLost: A new connection could not be opened
        """
        if self._closed:
            raise PoolClosed("Connection pool is closed")

        while self._idle:
            conn = self._idle.pop()
            if self._is_stale(conn):
                self._discard(conn)
                continue
            self._active += 1
            return self._checkout(conn)

        if self._active < self._max_size:
            self._active += 1
            return await self._open()

        return await self._wait(timeout)

    def release(self, conn: PooledConnection) -> None:
        """Return a connection. Never blocks.

        A valid connection goes straight to the longest-waiting caller if
        there is one, otherwise back to the idle set. An invalid connection
        is terminated and its slot handed on.

        Raises:
            ValueError: conn is not checked out from this pool
        """
        if conn not in self._checked_out:
            raise ValueError(f"Connection {conn.id} is not checked out from this pool")

        conn.last_used = time.monotonic()

        if not conn.valid:
            self._checked_out.discard(conn)
            self._discard(conn)
            self._release_slot()
            return

        if not self._closed and self._handoff(conn):
            return

        self._checked_out.discard(conn)
        self._idle.append(conn)
        self._active -= 1
        self._check_drained()

    @asynccontextmanager
    async def connection(self, timeout: Optional[float] = None) -> AsyncIterator[PooledConnection]:
        """Acquire a connection for the duration of an ``async with`` block."""
        conn = await self.acquire(timeout)
        try:
            yield conn
        finally:
            self.release(conn)

    async def shutdown(self, timeout: Optional[float] = None) -> None:
        """Close the pool.

        New and queued acquire calls fail with PoolClosed. Waits for every
        checked-out connection to be released (up to ``timeout`` seconds,
        after which stragglers are terminated), then closes idle connections.
        """
        if not self._closed:
            self._closed = True
            logger.info("Shutting down connection pool", data=self.stats().to_dict())
            while self._waiters:
                waiter = self._waiters.popleft()
                if not waiter.done():
                    waiter.set_exception(PoolClosed("Connection pool closed while waiting"))
            self._check_drained()

        if self._active:
            try:
                await asyncio.wait_for(self._drained.wait(), timeout)
            except asyncio.TimeoutError:
                logger.warning("Connections still in use at shutdown, terminating", data={
                    "in_use": len(self._checked_out)
                })
                for conn in list(self._checked_out):
                    conn.invalidate()
                    conn.terminate()

        while self._idle:
            conn = self._idle.popleft()
            try:
                await conn.close()
            except CONNECT_ERRORS as exc:
                logger.warning("Error closing connection", data={
                    "connection_id": conn.id,
                    "error": str(exc)
                })
                conn.terminate()

        logger.info("Connection pool closed")

    def _checkout(self, conn: PooledConnection) -> PooledConnection:
        self._checked_out.add(conn)
        conn.last_used = time.monotonic()
        return conn

    def _is_stale(self, conn: PooledConnection) -> bool:
        if not conn.valid or conn.is_closed():
            return True
        return self._max_idle_time is not None and conn.idle_time > self._max_idle_time

    def _discard(self, conn: PooledConnection) -> None:
        conn.invalidate()
        logger.debug("Discarding connection", data={"connection_id": conn.id})
        try:
            conn.terminate()
        except CONNECT_ERRORS as exc:
            logger.warning("Error terminating connection", data={
                "connection_id": conn.id,
                "error": str(exc)
            })

    async def _open(self) -> PooledConnection:
        """Open a connection into a slot already counted in _active."""
        try:
            raw = await self._connect()
        except CONNECT_ERRORS as exc:
            self._release_slot()
            logger.error("Failed to open database connection", data={"error": str(exc)})
            raise ConnectionLost(f"Could not open database connection: {exc}") from exc
        except BaseException:
            self._release_slot()
            raise

        conn = PooledConnection(raw)
        if self._closed:
            self._discard(conn)
            self._release_slot()
            raise PoolClosed("Connection pool closed while connecting")

        logger.debug("Opened database connection", data={"connection_id": conn.id})
        return self._checkout(conn)

    async def _wait(self, timeout: Optional[float]) -> PooledConnection:
        timeout = self._acquire_timeout if timeout is None else timeout
        waiter = asyncio.get_running_loop().create_future()
        self._waiters.append(waiter)

        try:
            handoff = await asyncio.wait_for(waiter, timeout)
        except asyncio.TimeoutError:
            self._abandon(waiter)
            logger.warning("Timed out waiting for a database connection", data={
                "timeout": timeout,
                **self.stats().to_dict()
            })
            raise PoolExhausted(
                f"No database connection available within {timeout}s",
                context={"max_size": self._max_size, "timeout": timeout},
            ) from None
        except asyncio.CancelledError:
            self._abandon(waiter)
            raise

        if handoff is None:
            # A slot was freed for us; open a fresh connection in it.
            return await self._open()
        return self._checkout(handoff)

    def _abandon(self, waiter: asyncio.Future) -> None:
        """Drop a waiter that gave up, passing on anything already handed to it."""
        try:
            self._waiters.remove(waiter)
            return
        except ValueError:
            pass

        if not waiter.done() or waiter.cancelled() or waiter.exception() is not None:
            return

        handoff = waiter.result()
        if handoff is None:
            self._release_slot()
        else:
            self.release(handoff)

    def _handoff(self, item: Optional[PooledConnection]) -> bool:
        """Give a connection (or a free slot, when item is None) to the oldest waiter."""
        while self._waiters:
            waiter = self._waiters.popleft()
            if not waiter.done():
                waiter.set_result(item)
                return True
        return False

    def _release_slot(self) -> None:
        if not self._closed and self._handoff(None):
            return
        self._active -= 1
        self._check_drained()

    def _check_drained(self) -> None:
        if self._closed and self._active == 0:
            self._drained.set()


async def create_pool(settings: Settings) -> ConnectionPool:
    """Create the database connection pool.

    Args:
        settings: Application settings with database configuration

    Returns:
        ConnectionPool opening TLS asyncpg connections on demand
    """
    connect = partial(
        asyncpg.connect,
        host=settings.db_host,
        port=settings.db_port,
        user=settings.db_user,
        password=settings.db_password,
        database=settings.db_name,
        ssl=settings.db_ssl_mode,
        timeout=settings.db_connect_timeout,
    )
    pool = ConnectionPool(
        connect,
        max_size=settings.db_pool_max_size,
        acquire_timeout=settings.db_pool_acquire_timeout,
        max_idle_time=settings.db_pool_max_idle_time,
    )
    await probe_pool(pool)
    return pool


async def probe_pool(pool: ConnectionPool) -> bool:
    """Open one connection and run ``SELECT 1``. Failures are logged, not raised."""
    from .executor import QueryRequest, execute

    try:
        async with pool.connection() as conn:
            await execute(conn, QueryRequest("SELECT 1"))
    except DatabaseError as exc:
        logger.error("Database connection error", data=exc.to_log_data())
        return False

    logger.info("Connected to database")
    return True


async def close_pool(pool: ConnectionPool, timeout: Optional[float] = 30.0):
    """Close database connection pool.

    Args:
        pool: Connection pool to close
        timeout: Seconds to wait for in-flight connections
    """
    await pool.shutdown(timeout)
