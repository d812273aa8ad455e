"""Repository for climb operations."""
from typing import Optional
from shared.database.base_repository import BaseRepository
from shared.database.errors import DatabaseError
from shared.observability.context import RequestContext
from shared.observability.logger import get_logger

logger = get_logger("climblog.repositories.climb")

LIST_CLIMBS_SQL = "SELECT * FROM climbs ORDER BY id"

LIST_USER_CLIMBS_SQL = "SELECT * FROM climbs WHERE user_id = $1 ORDER BY id"

INSERT_CLIMB_SQL = """
    INSERT INTO climbs (difficulty, description, flashed, completed, user_id, upload_date_time)
    VALUES ($1, $2, $3, $4, $5, CURRENT_TIMESTAMP)
    RETURNING id
"""

DELETE_CLIMB_SQL = "DELETE FROM climbs WHERE user_id = $1 AND id = $2"

MONTHLY_AVERAGE_SQL = """
    SELECT
        to_char(date_trunc('month', upload_date_time), 'YYYY-MM') AS month,
        AVG(difficulty)::float8 AS average
    FROM climbs
    WHERE user_id = $1
    GROUP BY 1
    ORDER BY 1
"""


class ClimbRepository(BaseRepository):
    """Repository for the climbs table."""

    async def list_climbs(self, ctx: RequestContext) -> list[dict]:
        try:
            result = await self.run(LIST_CLIMBS_SQL)
        except DatabaseError as e:
            logger.error("Failed to list climbs", ctx, data=e.to_log_data())
            raise
        return result.rows

    async def list_user_climbs(self, user_id: int, ctx: RequestContext) -> list[dict]:
        try:
            result = await self.run(LIST_USER_CLIMBS_SQL, user_id)
        except DatabaseError as e:
            logger.error("Failed to list user climbs", ctx, data=e.to_log_data())
            raise
        logger.info("User climbs listed", ctx, data={
            "user_id": user_id,
            "count": len(result.rows)
        })
        return result.rows

    async def create_climb(
        self,
        user_id: int,
        difficulty: Optional[int],
        description: Optional[str],
        flashed: Optional[bool],
        completed: Optional[bool],
        ctx: RequestContext
    ) -> int:
        """Record a climb, stamped with the current time.

        Returns:
            Id of the new climb
        """
        try:
            result = await self.run(
                INSERT_CLIMB_SQL,
                difficulty,
                description,
                flashed,
                completed,
                user_id
            )
        except DatabaseError as e:
            logger.error("Failed to create climb", ctx, data=e.to_log_data())
            raise

        logger.info("Climb created", ctx, data={
            "climb_id": result.inserted_id,
            "user_id": user_id
        })
        return result.inserted_id

    async def delete_climb(self, user_id: int, climb_id: int, ctx: RequestContext) -> bool:
        """Delete one of a user's climbs.

        Returns:
            True if deleted, False if the user has no climb with that id
        """
        try:
            result = await self.run(DELETE_CLIMB_SQL, user_id, climb_id)
        except DatabaseError as e:
            logger.error("Failed to delete climb", ctx, data=e.to_log_data())
            raise

        deleted = bool(result.affected_rows)
        if deleted:
            logger.info("Climb deleted", ctx, data={"user_id": user_id, "climb_id": climb_id})
        else:
            logger.warning("Climb not found for delete", ctx, data={
                "user_id": user_id,
                "climb_id": climb_id
            })
        return deleted

    async def monthly_average_difficulty(self, user_id: int, ctx: RequestContext) -> list[dict]:
        """Mean difficulty of the user's climbs per calendar month, oldest first."""
        try:
            result = await self.run(MONTHLY_AVERAGE_SQL, user_id)
        except DatabaseError as e:
            logger.error("Failed to compute monthly average", ctx, data=e.to_log_data())
            raise
        return result.rows
