"""Shared FastAPI dependencies for climblog routers."""

from fastapi import Request
from shared.database.pool import ConnectionPool


def get_db_pool(request: Request) -> ConnectionPool:
    """Dependency to get the connection pool created in the app lifespan."""
    return request.app.state.db_pool
