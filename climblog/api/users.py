"""User endpoints."""

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse
from shared.database.pool import ConnectionPool
from shared.observability.context import RequestContext
from shared.observability.dependencies import get_request_context
from shared.observability.logger import get_logger
from climblog.api.deps import get_db_pool
from climblog.models.common import ErrorResponse
from climblog.models.users import UpsertUserRequest, UserIdResponse
from climblog.repositories.user_repository import UserRepository

logger = get_logger("climblog.api.users")
router = APIRouter(tags=["users"])


@router.get("/user")
async def list_users(
    ctx: RequestContext = Depends(get_request_context),
    pool: ConnectionPool = Depends(get_db_pool)
):
    return await UserRepository(pool).list_users(ctx)


@router.get("/user/{user_id}", responses={404: {"model": ErrorResponse}})
async def get_user(
    user_id: int,
    ctx: RequestContext = Depends(get_request_context),
    pool: ConnectionPool = Depends(get_db_pool)
):
    user = await UserRepository(pool).get_user(user_id, ctx)
    if user is None:
        return JSONResponse(status_code=status.HTTP_404_NOT_FOUND, content={"error": "User not found"})
    return user


@router.post("/user", response_model=UserIdResponse, status_code=status.HTTP_201_CREATED)
async def upsert_user(
    user_data: UpsertUserRequest,
    ctx: RequestContext = Depends(get_request_context),
    pool: ConnectionPool = Depends(get_db_pool)
):
    """Create the user, or refresh the profile of the one with this googleId.

    Both cases answer 201 with the internal id, so the client can call this
    on every sign-in.
    """
    logger.info("Upserting user", ctx)
    user_id = await UserRepository(pool).upsert_user(
        google_id=user_data.google_id,
        name=user_data.name,
        email=user_data.email,
        photo=user_data.photo,
        ctx=ctx
    )
    return UserIdResponse(id=user_id)
