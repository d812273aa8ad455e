"""Repository for tutorial content."""
from shared.database.base_repository import BaseRepository
from shared.database.errors import DatabaseError
from shared.observability.context import RequestContext
from shared.observability.logger import get_logger

logger = get_logger("climblog.repositories.tutorial")

LIST_TUTORIALS_SQL = "SELECT * FROM tutorials ORDER BY id"


class TutorialRepository(BaseRepository):
    """Read-only access to the tutorials table."""

    async def list_tutorials(self, ctx: RequestContext) -> list[dict]:
        try:
            result = await self.run(LIST_TUTORIALS_SQL)
        except DatabaseError as e:
            logger.error("Failed to list tutorials", ctx, data=e.to_log_data())
            raise
        return result.rows
