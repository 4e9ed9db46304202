"""
Guild Storage

PostgreSQL storage for guilds and guild membership.
guild_members.user_id is unique: a user is in at most one guild.
"""
import asyncpg
import logging
from datetime import datetime
from typing import Optional, List, Tuple
from uuid import UUID

from .base import BaseStorage, DuplicateError
from ..models.guild import Guild, GuildMember, GuildRole

logger = logging.getLogger("studio.storage.guild")


class GuildStorage(BaseStorage):
    """Storage for Guild and GuildMember entities"""

    async def create(self, guild: Guild) -> Guild:
        query = """
            INSERT INTO guilds (
                id, name, slug, description, avatar_url, is_public, created_by,
                member_count, created_at, updated_at
            )
            VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10)
            RETURNING *
        """
        try:
            row = await self.fetchrow(
                query,
                guild.id, guild.name, guild.slug, guild.description, guild.avatar_url,
                guild.is_public, guild.created_by, guild.member_count,
                guild.created_at, guild.updated_at
            )
        except asyncpg.UniqueViolationError as e:
            raise DuplicateError(str(e)) from e
        return self._row_to_guild(row)

    async def delete(self, guild_id: UUID) -> bool:
        result = await self.execute("DELETE FROM guilds WHERE id = $1", guild_id)
        return "DELETE 1" in result

    async def get_by_id(self, guild_id: UUID) -> Optional[Guild]:
        row = await self.fetchrow("SELECT * FROM guilds WHERE id = $1", guild_id)
        return self._row_to_guild(row) if row else None

    async def get_by_slug(self, slug: str) -> Optional[Guild]:
        row = await self.fetchrow("SELECT * FROM guilds WHERE slug = $1", slug)
        return self._row_to_guild(row) if row else None

    async def search(self, search: Optional[str] = None, limit: int = 50) -> List[Guild]:
        """Guilds whose name contains the search text, biggest first"""
        query = """
            SELECT * FROM guilds
            WHERE ($1::text IS NULL OR name ILIKE '%' || $1 || '%')
            ORDER BY member_count DESC
            LIMIT $2
        """
        rows = await self.fetch(query, search or None, limit)
        return [self._row_to_guild(row) for row in rows]

    async def update(self, guild: Guild) -> Guild:
        guild.updated_at = datetime.utcnow()
        query = """
            UPDATE guilds
            SET name = $2, slug = $3, description = $4, is_public = $5,
                created_by = $6, updated_at = $7
            WHERE id = $1
            RETURNING *
        """
        try:
            row = await self.fetchrow(
                query,
                guild.id, guild.name, guild.slug, guild.description, guild.is_public,
                guild.created_by, guild.updated_at
            )
        except asyncpg.UniqueViolationError as e:
            raise DuplicateError(str(e)) from e
        return self._row_to_guild(row)

    async def adjust_member_count(self, guild_id: UUID, delta: int) -> None:
        query = """
            UPDATE guilds SET member_count = GREATEST(0, member_count + $2), updated_at = $3
            WHERE id = $1
        """
        await self.execute(query, guild_id, delta, datetime.utcnow())

    async def add_member(self, member: GuildMember) -> GuildMember:
        """Insert a membership; DuplicateError if the user is already in a guild"""
        query = """
            INSERT INTO guild_members (id, guild_id, user_id, role, joined_at)
            VALUES ($1, $2, $3, $4, $5)
            RETURNING *
        """
        try:
            row = await self.fetchrow(
                query, member.id, member.guild_id, member.user_id, member.role.value, member.joined_at
            )
        except asyncpg.UniqueViolationError as e:
            raise DuplicateError(str(e)) from e
        return self._row_to_member(row)

    async def get_member(self, guild_id: UUID, user_id: UUID) -> Optional[GuildMember]:
        query = "SELECT * FROM guild_members WHERE guild_id = $1 AND user_id = $2"
        row = await self.fetchrow(query, guild_id, user_id)
        return self._row_to_member(row) if row else None

    async def get_user_guild(self, user_id: UUID) -> Optional[Tuple[Guild, GuildMember]]:
        """The guild a user belongs to, with their membership"""
        member_row = await self.fetchrow("SELECT * FROM guild_members WHERE user_id = $1", user_id)
        if not member_row:
            return None
        guild = await self.get_by_id(member_row["guild_id"])
        if not guild:
            return None
        return guild, self._row_to_member(member_row)

    async def count_members(self, guild_id: UUID) -> int:
        return await self.fetchval("SELECT COUNT(*) FROM guild_members WHERE guild_id = $1", guild_id)

    async def list_members(self, guild_id: UUID) -> List[GuildMember]:
        """Members with their public user fields, oldest first"""
        query = """
            SELECT m.*, u.username, u.display_name, u.avatar_url, u.level
            FROM guild_members m
            LEFT JOIN users u ON u.id = m.user_id
            WHERE m.guild_id = $1
            ORDER BY m.joined_at ASC
        """
        rows = await self.fetch(query, guild_id)
        return [self._row_to_member(row, with_user=True) for row in rows]

    async def member_ids(self, guild_id: UUID) -> List[UUID]:
        rows = await self.fetch("SELECT user_id FROM guild_members WHERE guild_id = $1", guild_id)
        return [row["user_id"] for row in rows]

    async def update_member_role(self, guild_id: UUID, user_id: UUID, role: GuildRole) -> bool:
        query = "UPDATE guild_members SET role = $3 WHERE guild_id = $1 AND user_id = $2"
        result = await self.execute(query, guild_id, user_id, role.value)
        return "UPDATE 1" in result

    async def remove_member(self, guild_id: UUID, user_id: UUID) -> bool:
        query = "DELETE FROM guild_members WHERE guild_id = $1 AND user_id = $2"
        result = await self.execute(query, guild_id, user_id)
        return "DELETE 1" in result

    def _row_to_guild(self, row) -> Guild:
        return Guild(
            id=row["id"],
            name=row["name"],
            slug=row["slug"],
            description=row["description"],
            avatar_url=row["avatar_url"],
            is_public=row["is_public"],
            created_by=row["created_by"],
            member_count=row["member_count"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )

    def _row_to_member(self, row, with_user: bool = False) -> GuildMember:
        member = GuildMember(
            id=row["id"],
            guild_id=row["guild_id"],
            user_id=row["user_id"],
            role=GuildRole(row["role"]),
            joined_at=row["joined_at"],
        )
        if with_user:
            member.username = row["username"]
            member.display_name = row["display_name"]
            member.avatar_url = row["avatar_url"]
            member.level = row["level"] or 1
        return member
