"""Shared fixtures: environment defaults and an in-process stand-in for asyncpg."""
import os

# Settings are read when climblog.main is imported.
for _key, _value in {
    "ENVIRONMENT": "test",
    "APP_HOST": "127.0.0.1",
    "APP_PORT": "5000",
    "LOG_LEVEL": "DEBUG",
    "DB_HOST": "localhost",
    "DB_USER": "climblog",
    "DB_PASSWORD": "secret",
    "DB_NAME": "climblog",
    "DB_SSL_MODE": "disable",
}.items():
    os.environ.setdefault(_key, _value)

from datetime import datetime, timezone
from typing import Any, Callable, Optional

import asyncpg
import pytest

from shared.database.pool import ConnectionPool
from climblog.repositories import climb_repository, tutorial_repository, user_repository


class FakeStatement:
    """Prepared statement returned by FakeConnection.prepare()."""

    def __init__(self, conn: "FakeConnection", sql: str):
        self._conn = conn
        self._sql = sql
        self._status: Optional[str] = None

    async def fetch(self, *params):
        self._conn.calls.append((self._sql, params))
        if self._conn.error is not None:
            raise self._conn.error
        rows, self._status = self._conn.handler(self._sql, params)
        return rows

    def get_statusmsg(self) -> Optional[str]:
        return self._status


class FakeConnection:
    """Mimics the slice of asyncpg.Connection the pool and executor use."""

    def __init__(self, handler: Callable[[str, tuple], tuple[list, str]]):
        self.handler = handler
        self.calls: list[tuple[str, tuple]] = []
        self.error: Optional[BaseException] = None
        self.closed = False
        self.terminated = False

    async def prepare(self, sql: str) -> FakeStatement:
        if self.error is not None and isinstance(self.error, (OSError, asyncpg.InterfaceError)):
            raise self.error
        return FakeStatement(self, sql)

    def is_closed(self) -> bool:
        return self.closed or self.terminated

    def terminate(self) -> None:
        self.terminated = True

    async def close(self) -> None:
        self.closed = True


def _empty_result(sql: str, params: tuple) -> tuple[list, str]:
    return [], "SELECT 0"


class FakeConnector:
    """Connection factory for ConnectionPool; remembers what it opened."""

    def __init__(self, handler: Callable[[str, tuple], tuple[list, str]] = _empty_result):
        self.handler = handler
        self.created: list[FakeConnection] = []
        self.error: Optional[BaseException] = None

    async def __call__(self) -> FakeConnection:
        if self.error is not None:
            raise self.error
        conn = FakeConnection(self.handler)
        self.created.append(conn)
        return conn


class InMemoryClimbDatabase:
    """Answers the statements issued by the climblog repositories."""

    def __init__(self):
        self.users: dict[int, dict] = {}
        self.climbs: dict[int, dict] = {}
        self.tutorials: list[dict] = [
            {"id": 1, "title": "Footwork basics", "url": "https://example.com/footwork"},
        ]
        self.failures: dict[str, BaseException] = {}
        self._next_user_id = 1
        self._next_climb_id = 1
        self._handlers = {
            user_repository.LIST_USERS_SQL: self._list_users,
            user_repository.GET_USER_SQL: self._get_user,
            user_repository.INSERT_USER_SQL: self._insert_user,
            user_repository.UPDATE_USER_SQL: self._update_user,
            climb_repository.LIST_CLIMBS_SQL: self._list_climbs,
            climb_repository.LIST_USER_CLIMBS_SQL: self._list_user_climbs,
            climb_repository.INSERT_CLIMB_SQL: self._insert_climb,
            climb_repository.DELETE_CLIMB_SQL: self._delete_climb,
            climb_repository.MONTHLY_AVERAGE_SQL: self._monthly_average,
            tutorial_repository.LIST_TUTORIALS_SQL: self._list_tutorials,
            "SELECT 1": lambda: ([{"?column?": 1}], "SELECT 1"),
        }

    def __call__(self, sql: str, params: tuple) -> tuple[list, str]:
        if sql in self.failures:
            raise self.failures[sql]
        return self._handlers[sql](*params)

    def add_climb(self, user_id: int, difficulty: int, uploaded: datetime) -> int:
        climb_id = self._next_climb_id
        self._next_climb_id += 1
        self.climbs[climb_id] = {
            "id": climb_id,
            "user_id": user_id,
            "difficulty": difficulty,
            "description": None,
            "flashed": False,
            "completed": True,
            "upload_date_time": uploaded,
        }
        return climb_id

    def _list_users(self):
        rows = [dict(u) for u in self.users.values()]
        return rows, f"SELECT {len(rows)}"

    def _get_user(self, user_id):
        user = self.users.get(user_id)
        return ([dict(user)] if user else []), f"SELECT {1 if user else 0}"

    def _insert_user(self, google_id, name, email, photo):
        if any(u["google_id"] == google_id for u in self.users.values()):
            exc = asyncpg.UniqueViolationError(
                'duplicate key value violates unique constraint "users_google_id_key"'
            )
            exc.constraint_name = "users_google_id_key"
            raise exc
        user_id = self._next_user_id
        self._next_user_id += 1
        self.users[user_id] = {
            "id": user_id, "google_id": google_id, "name": name, "email": email, "photo": photo
        }
        return [{"id": user_id}], "INSERT 0 1"

    def _update_user(self, google_id, name, email, photo):
        for user in self.users.values():
            if user["google_id"] == google_id:
                user.update(name=name, email=email, photo=photo)
                return [{"id": user["id"]}], "UPDATE 1"
        return [], "UPDATE 0"

    def _list_climbs(self):
        rows = [dict(c) for c in self.climbs.values()]
        return rows, f"SELECT {len(rows)}"

    def _list_user_climbs(self, user_id):
        rows = [dict(c) for c in self.climbs.values() if c["user_id"] == user_id]
        return rows, f"SELECT {len(rows)}"

    def _insert_climb(self, difficulty, description, flashed, completed, user_id):
        climb_id = self.add_climb(user_id, difficulty, datetime.now(timezone.utc))
        self.climbs[climb_id].update(description=description, flashed=flashed, completed=completed)
        return [{"id": climb_id}], "INSERT 0 1"

    def _delete_climb(self, user_id, climb_id):
        climb = self.climbs.get(climb_id)
        if climb is None or climb["user_id"] != user_id:
            return [], "DELETE 0"
        del self.climbs[climb_id]
        return [], "DELETE 1"

    def _monthly_average(self, user_id):
        months: dict[str, list[int]] = {}
        for climb in self.climbs.values():
            if climb["user_id"] == user_id:
                months.setdefault(climb["upload_date_time"].strftime("%Y-%m"), []).append(climb["difficulty"])
        rows = [
            {"month": month, "average": sum(values) / len(values)}
            for month, values in sorted(months.items())
        ]
        return rows, f"SELECT {len(rows)}"

    def _list_tutorials(self):
        return [dict(t) for t in self.tutorials], f"SELECT {len(self.tutorials)}"


@pytest.fixture
def fake_connector() -> FakeConnector:
    return FakeConnector()


@pytest.fixture
def make_pool(fake_connector) -> Callable[..., ConnectionPool]:
    """Build a ConnectionPool over fake_connector."""

    def _make(**kwargs: Any) -> ConnectionPool:
        kwargs.setdefault("max_size", 2)
        kwargs.setdefault("acquire_timeout", 1.0)
        return ConnectionPool(fake_connector, **kwargs)

    return _make


@pytest.fixture
def climb_database() -> InMemoryClimbDatabase:
    return InMemoryClimbDatabase()
