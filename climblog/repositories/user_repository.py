"""Repository for user operations."""
from typing import Optional
from shared.database.base_repository import BaseRepository
from shared.database.errors import ConstraintViolation, DatabaseError
from shared.observability.context import RequestContext
from shared.observability.logger import get_logger

logger = get_logger("climblog.repositories.user")

LIST_USERS_SQL = "SELECT * FROM users ORDER BY id"

GET_USER_SQL = "SELECT * FROM users WHERE id = $1"

INSERT_USER_SQL = """
    INSERT INTO users (google_id, name, email, photo)
    VALUES ($1, $2, $3, $4)
    RETURNING id
"""

UPDATE_USER_SQL = """
    UPDATE users
    SET name = $2, email = $3, photo = $4
    WHERE google_id = $1
    RETURNING id
"""


class UserRepository(BaseRepository):
    """Repository for the users table.

    Users are keyed internally by ``id`` and externally by ``google_id``,
    the identity issued by the sign-in provider.
    """

    async def list_users(self, ctx: RequestContext) -> list[dict]:
        try:
            result = await self.run(LIST_USERS_SQL)
        except DatabaseError as e:
            logger.error("Failed to list users", ctx, data=e.to_log_data())
            raise
        logger.info("Users listed", ctx, data={"count": len(result.rows)})
        return result.rows

    async def get_user(self, user_id: int, ctx: RequestContext) -> Optional[dict]:
        """Get user by internal id.

        Returns:
            User record as dict, or None if not found
        """
        try:
            result = await self.run(GET_USER_SQL, user_id)
        except DatabaseError as e:
            logger.error("Failed to get user", ctx, data=e.to_log_data())
            raise

        if result.first is None:
            logger.warning("User not found", ctx, data={"user_id": user_id})
        return result.first

    async def upsert_user(
        self,
        google_id: str,
        name: Optional[str],
        email: Optional[str],
        photo: Optional[str],
        ctx: RequestContext
    ) -> int:
        """Insert a user, or update the profile of the one with this google_id.

        The insert is tried first; a constraint violation means the user
        already exists, so the profile fields are updated instead.

        Args:
            google_id: External identity key
            name: Display name
            email: Email address
            photo: Profile photo URL
            ctx: Request context

        Returns:
            Internal id of the inserted or updated user

        Raises:
            ConstraintViolation: Insert rejected for a reason other than an
                existing google_id
            DatabaseError: Any other pool or query failure
        """
        params = (google_id, name, email, photo)
        try:
            result = await self.run(INSERT_USER_SQL, *params)
            logger.info("User created", ctx, data={"user_id": result.inserted_id})
            return result.inserted_id
        except ConstraintViolation as violation:
            logger.info("User exists, updating profile", ctx, data={
                "constraint": violation.constraint_name
            })
            try:
                result = await self.run(UPDATE_USER_SQL, *params)
            except DatabaseError as e:
                logger.error("Failed to update user", ctx, data=e.to_log_data())
                raise
            if result.first is None:
                # Nothing matched google_id, so the violation was about something else.
                raise
            logger.info("User updated", ctx, data={"user_id": result.first["id"]})
            return result.first["id"]
        except DatabaseError as e:
            logger.error("Failed to create user", ctx, data=e.to_log_data())
            raise
