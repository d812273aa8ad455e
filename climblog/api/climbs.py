"""Climb endpoints."""

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse
from shared.database.pool import ConnectionPool
from shared.observability.context import RequestContext
from shared.observability.dependencies import get_request_context
from climblog.api.deps import get_db_pool
from climblog.models.climbs import ClimbIdResponse, CreateClimbRequest, MonthlyAverage
from climblog.models.common import ErrorResponse, MessageResponse
from climblog.repositories.climb_repository import ClimbRepository

router = APIRouter(tags=["climbs"])


@router.get("/climbs")
async def list_climbs(
    ctx: RequestContext = Depends(get_request_context),
    pool: ConnectionPool = Depends(get_db_pool)
):
    return await ClimbRepository(pool).list_climbs(ctx)


# Registered before /climbs/{user_id} so "average" is never read as a user id.
@router.get("/climbs/average/{user_id}", response_model=list[MonthlyAverage])
async def monthly_average(
    user_id: int,
    ctx: RequestContext = Depends(get_request_context),
    pool: ConnectionPool = Depends(get_db_pool)
):
    """Average difficulty of the user's climbs, grouped by upload month."""
    return await ClimbRepository(pool).monthly_average_difficulty(user_id, ctx)


@router.get("/climbs/{user_id}")
async def list_user_climbs(
    user_id: int,
    ctx: RequestContext = Depends(get_request_context),
    pool: ConnectionPool = Depends(get_db_pool)
):
    return await ClimbRepository(pool).list_user_climbs(user_id, ctx)


@router.post("/climbs", response_model=ClimbIdResponse, status_code=status.HTTP_201_CREATED)
async def create_climb(
    climb_data: CreateClimbRequest,
    ctx: RequestContext = Depends(get_request_context),
    pool: ConnectionPool = Depends(get_db_pool)
):
    climb_id = await ClimbRepository(pool).create_climb(
        user_id=climb_data.user_id,
        difficulty=climb_data.difficulty,
        description=climb_data.description,
        flashed=climb_data.flash,
        completed=climb_data.completed,
        ctx=ctx
    )
    return ClimbIdResponse(id=climb_id)


@router.delete(
    "/climbs/{user_id}/{climb_id}",
    response_model=MessageResponse,
    responses={404: {"model": ErrorResponse}}
)
async def delete_climb(
    user_id: int,
    climb_id: int,
    ctx: RequestContext = Depends(get_request_context),
    pool: ConnectionPool = Depends(get_db_pool)
):
    deleted = await ClimbRepository(pool).delete_climb(user_id, climb_id, ctx)
    if not deleted:
        return JSONResponse(status_code=status.HTTP_404_NOT_FOUND, content={"error": "Climb not found"})
    return MessageResponse(message="Climb deleted successfully")
