"""Tutorial endpoints."""

from fastapi import APIRouter, Depends
from shared.database.pool import ConnectionPool
from shared.observability.context import RequestContext
from shared.observability.dependencies import get_request_context
from climblog.api.deps import get_db_pool
from climblog.repositories.tutorial_repository import TutorialRepository

router = APIRouter(tags=["tutorials"])


@router.get("/tutorials")
async def list_tutorials(
    ctx: RequestContext = Depends(get_request_context),
    pool: ConnectionPool = Depends(get_db_pool)
):
    return await TutorialRepository(pool).list_tutorials(ctx)
