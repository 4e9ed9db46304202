"""
User Storage

PostgreSQL storage for users and their weekly XP tallies.
"""
import asyncpg
import logging
from datetime import date, datetime
from typing import Callable, Optional, List
from uuid import UUID

from .base import BaseStorage, DuplicateError, dump_json, load_json
from ..models.user import User

logger = logging.getLogger("studio.storage.user")

# Columns the profile endpoint may write
PROFILE_COLUMNS = (
    "display_name", "avatar_url", "height_cm", "weight_kg", "body_type",
    "gender", "fitness_goal", "date_of_birth", "body_measurements",
)


class UserStorage(BaseStorage):
    """Storage for User entities"""

    async def create(self, user: User) -> User:
        """Create a new user"""
        query = """
            INSERT INTO users (
                id, email, username, display_name, password_hash,
                is_admin, is_active, avatar_url, created_at, updated_at
            )
            VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10)
            RETURNING *
        """
        try:
            row = await self.fetchrow(
                query,
                user.id, user.email, user.username, user.display_name, user.password_hash,
                user.is_admin, user.is_active, user.avatar_url, user.created_at, user.updated_at
            )
        except asyncpg.UniqueViolationError as e:
            raise DuplicateError(str(e)) from e
        return self._row_to_user(row)

    async def get_by_id(self, user_id: UUID) -> Optional[User]:
        """Get user by ID"""
        row = await self.fetchrow("SELECT * FROM users WHERE id = $1", user_id)
        return self._row_to_user(row) if row else None

    async def get_by_email(self, email: str) -> Optional[User]:
        """Get user by email"""
        row = await self.fetchrow("SELECT * FROM users WHERE email = $1", email.lower())
        return self._row_to_user(row) if row else None

    async def list_by_ids(self, user_ids: List[UUID]) -> List[User]:
        if not user_ids:
            return []
        rows = await self.fetch("SELECT * FROM users WHERE id = ANY($1::uuid[])", user_ids)
        return [self._row_to_user(row) for row in rows]

    async def exists_by_email(self, email: str) -> bool:
        result = await self.fetchval("SELECT 1 FROM users WHERE email = $1", email.lower())
        return result is not None

    async def exists_by_username(self, username: str) -> bool:
        result = await self.fetchval("SELECT 1 FROM users WHERE username = $1", username.lower())
        return result is not None

    async def update_last_seen(self, user_id: UUID) -> None:
        """Update user's last seen timestamp"""
        await self.execute("UPDATE users SET last_seen_at = $2 WHERE id = $1", user_id, datetime.utcnow())

    async def update_profile(self, user_id: UUID, fields: dict) -> Optional[User]:
        """
        Write validated profile fields.

        Only PROFILE_COLUMNS are accepted; anything else is ignored.
        """
        columns = [name for name in PROFILE_COLUMNS if name in fields]
        if not columns:
            return await self.get_by_id(user_id)

        values = []
        assignments = []
        for index, name in enumerate(columns, start=2):
            value = fields[name]
            if name == "body_measurements":
                value = dump_json(value)
            values.append(value)
            assignments.append(f"{name} = ${index}")

        query = f"""
            UPDATE users
            SET {", ".join(assignments)}, updated_at = NOW()
            WHERE id = $1
            RETURNING *
        """
        row = await self.fetchrow(query, user_id, *values)
        return self._row_to_user(row) if row else None

    async def add_progress(
        self,
        user_id: UUID,
        xp: int,
        workouts: int = 0,
        apply: Optional[Callable[[User], None]] = None,
    ) -> Optional[User]:
        """
        Add XP and completed workouts to a user under a row lock.

        The counters are incremented in SQL. apply runs on the locked row
        (with the increments already added) to set level, current XP and
        streak fields, which are written in the same transaction.

        Returns:
            Updated user, or None if the user does not exist
        """
        async with self._pool().acquire() as conn:
            async with conn.transaction():
                row = await conn.fetchrow("SELECT * FROM users WHERE id = $1 FOR UPDATE", user_id)
                if not row:
                    return None

                user = self._row_to_user(row)
                user.total_xp += xp
                user.current_xp += xp
                user.workouts_completed += workouts
                if apply:
                    apply(user)
                user.updated_at = datetime.utcnow()

                row = await conn.fetchrow(
                    """
                    UPDATE users
                    SET total_xp = total_xp + $2, workouts_completed = workouts_completed + $3,
                        level = $4, current_xp = $5, streak_count = $6, longest_streak = $7,
                        last_workout_date = $8, updated_at = $9
                    WHERE id = $1
                    RETURNING *
                    """,
                    user_id, xp, workouts, user.level, user.current_xp, user.streak_count,
                    user.longest_streak, user.last_workout_date, user.updated_at
                )
        return self._row_to_user(row)

    async def add_weekly_xp(self, user_id: UUID, week_start: date, amount: int) -> None:
        query = """
            INSERT INTO weekly_xp (user_id, week_start, xp_earned)
            VALUES ($1, $2, $3)
            ON CONFLICT (user_id, week_start)
            DO UPDATE SET xp_earned = weekly_xp.xp_earned + EXCLUDED.xp_earned
        """
        await self.execute(query, user_id, week_start, amount)

    async def weekly_xp(self, user_ids: List[UUID], week_start: date) -> List[dict]:
        """Weekly XP rows for the given users, highest first"""
        if not user_ids:
            return []
        query = """
            SELECT user_id, xp_earned FROM weekly_xp
            WHERE user_id = ANY($1::uuid[]) AND week_start = $2
            ORDER BY xp_earned DESC
        """
        rows = await self.fetch(query, user_ids, week_start)
        return [{"user_id": row["user_id"], "xp_earned": row["xp_earned"]} for row in rows]

    def _row_to_user(self, row) -> User:
        """Convert database row to User"""
        return User(
            id=row["id"],
            email=row["email"],
            username=row["username"],
            display_name=row["display_name"],
            password_hash=row["password_hash"],
            is_admin=row["is_admin"],
            is_active=row["is_active"],
            avatar_url=row["avatar_url"],
            level=row["level"],
            current_xp=row["current_xp"],
            total_xp=row["total_xp"],
            streak_count=row["streak_count"],
            longest_streak=row["longest_streak"],
            last_workout_date=row["last_workout_date"],
            workouts_completed=row["workouts_completed"],
            height_cm=row["height_cm"],
            weight_kg=row["weight_kg"],
            body_type=row["body_type"],
            date_of_birth=row["date_of_birth"],
            gender=row["gender"],
            fitness_goal=row["fitness_goal"],
            body_measurements=load_json(row["body_measurements"], {}),
            created_at=row["created_at"],
            updated_at=row["updated_at"],
            last_seen_at=row["last_seen_at"]
        )
