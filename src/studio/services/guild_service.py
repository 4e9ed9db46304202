"""
Guild Service

Guild creation, membership, roles and leaderboards.
"""
from __future__ import annotations

import logging
from typing import List, Optional, Tuple, TYPE_CHECKING
from uuid import UUID

from ..models.guild import Guild, GuildMember, GuildRole, LeaderboardEntry, LeaderboardType
from ..security.sanitize import slugify
from ..storage.base import DuplicateError
from . import progress
from .errors import ConflictError, ForbiddenError, NotFoundError

if TYPE_CHECKING:
    from ..storage.guild_storage import GuildStorage
    from ..storage.user_storage import UserStorage

logger = logging.getLogger("studio.services.guilds")

MANAGER_ROLES = (GuildRole.ADMIN, GuildRole.MODERATOR)


def _clean_name(name: Optional[str]) -> str:
    name = (name or "").strip()
    if not 2 <= len(name) <= 50:
        raise ValueError("Guild name must be 2-50 characters")
    if not slugify(name):
        raise ValueError("Guild name must contain letters or numbers")
    return name


class GuildService:
    def __init__(self, guild_storage: GuildStorage, user_storage: UserStorage):
        self.guild_storage = guild_storage
        self.user_storage = user_storage

    async def _guild(self, slug: str) -> Guild:
        guild = await self.guild_storage.get_by_slug(slug)
        if not guild:
            raise NotFoundError("Guild not found")
        return guild

    async def _membership(self, guild: Guild, user_id: UUID) -> GuildMember:
        member = await self.guild_storage.get_member(guild.id, user_id)
        if not member:
            raise ForbiddenError("Forbidden")
        return member

    # ============================================
    # Guilds
    # ============================================

    async def create(
        self,
        user_id: UUID,
        name: str,
        description: Optional[str] = None,
        is_public: bool = True,
    ) -> Guild:
        """
        Create a guild with the caller as its admin.

        Raises:
            ValueError: Bad name
            ConflictError: Caller already in a guild, or name taken
        """
        name = _clean_name(name)
        if await self.guild_storage.get_user_guild(user_id):
            raise ConflictError("Already in a guild")

        try:
            guild = await self.guild_storage.create(Guild(
                name=name,
                slug=slugify(name),
                created_by=user_id,
                description=description,
                is_public=is_public,
            ))
        except DuplicateError as e:
            raise ConflictError("A guild with this name already exists") from e

        try:
            await self.guild_storage.add_member(GuildMember(guild_id=guild.id, user_id=user_id, role=GuildRole.ADMIN))
        except Exception:
            await self.guild_storage.delete(guild.id)
            logger.error(f"Rolled back guild {guild.slug}: admin membership insert failed")
            raise

        logger.info(f"Created guild {guild.slug} for {user_id}")
        return guild

    async def search(self, search: Optional[str] = None) -> List[Guild]:
        return await self.guild_storage.search((search or "").strip() or None, limit=50)

    async def my_guild(self, user_id: UUID) -> Optional[Tuple[Guild, GuildMember]]:
        return await self.guild_storage.get_user_guild(user_id)

    async def get_with_members(self, slug: str) -> dict:
        guild = await self._guild(slug)
        members = await self.guild_storage.list_members(guild.id)
        data = guild.to_dict()
        data["members"] = [m.to_dict() for m in members]
        return data

    async def update(self, slug: str, user_id: UUID, data: dict) -> Guild:
        """Admin-only edit of name, description and visibility; renaming re-slugs"""
        guild = await self._guild(slug)
        member = await self._membership(guild, user_id)
        if member.role != GuildRole.ADMIN:
            raise ForbiddenError("Forbidden")

        if "name" in data and data["name"] is not None:
            guild.name = _clean_name(data["name"])
            guild.slug = slugify(guild.name)
        if "description" in data:
            guild.description = data["description"]
        if "is_public" in data and data["is_public"] is not None:
            guild.is_public = bool(data["is_public"])

        try:
            return await self.guild_storage.update(guild)
        except DuplicateError as e:
            raise ConflictError("A guild with this name already exists") from e

    # ============================================
    # Membership
    # ============================================

    async def join(self, slug: str, user_id: UUID) -> GuildMember:
        guild = await self._guild(slug)
        if not guild.is_public:
            raise ForbiddenError("This guild is private")
        try:
            member = await self.guild_storage.add_member(GuildMember(guild_id=guild.id, user_id=user_id))
        except DuplicateError as e:
            raise ConflictError("Already in a guild") from e
        await self.guild_storage.adjust_member_count(guild.id, 1)
        logger.info(f"User {user_id} joined guild {guild.slug}")
        return member

    async def leave(self, slug: str, user_id: UUID) -> dict:
        """
        Leave a guild. A sole admin leaving deletes the guild.

        Returns:
            {"left": True, "guild_deleted": bool}
        """
        guild = await self._guild(slug)
        member = await self.guild_storage.get_member(guild.id, user_id)
        if not member:
            raise NotFoundError("Not a member of this guild")

        if member.role == GuildRole.ADMIN:
            if await self.guild_storage.count_members(guild.id) > 1:
                raise ValueError("Admin must transfer ownership before leaving")
            await self.guild_storage.delete(guild.id)
            logger.info(f"Deleted guild {guild.slug}: last admin left")
            return {"left": True, "guild_deleted": True}

        await self.guild_storage.remove_member(guild.id, user_id)
        await self.guild_storage.adjust_member_count(guild.id, -1)
        return {"left": True, "guild_deleted": False}

    async def set_member_role(self, slug: str, user_id: UUID, target_id: UUID, role: str) -> dict:
        """
        Admin-only role change. Promoting someone to admin hands over the guild:
        the caller becomes a member and created_by moves to the new admin.
        """
        guild = await self._guild(slug)
        caller = await self._membership(guild, user_id)
        if caller.role != GuildRole.ADMIN:
            raise ForbiddenError("Forbidden")
        try:
            new_role = GuildRole(role)
        except ValueError:
            raise ValueError("Invalid role")
        if target_id == user_id:
            raise ValueError("Cannot change your own role")
        if not await self.guild_storage.get_member(guild.id, target_id):
            raise NotFoundError("Member not found")

        await self.guild_storage.update_member_role(guild.id, target_id, new_role)
        if new_role == GuildRole.ADMIN:
            await self.guild_storage.update_member_role(guild.id, user_id, GuildRole.MEMBER)
            guild.created_by = target_id
            await self.guild_storage.update(guild)
            logger.info(f"Guild {guild.slug} admin transferred from {user_id} to {target_id}")
        return {"user_id": str(target_id), "role": new_role.value}

    async def kick(self, slug: str, user_id: UUID, target_id: UUID) -> None:
        guild = await self._guild(slug)
        caller = await self._membership(guild, user_id)
        if caller.role not in MANAGER_ROLES:
            raise ForbiddenError("Forbidden")
        if target_id == user_id:
            raise ValueError("Cannot kick yourself")

        target = await self.guild_storage.get_member(guild.id, target_id)
        if not target:
            raise NotFoundError("Member not found")
        if caller.role == GuildRole.MODERATOR and target.role != GuildRole.MEMBER:
            raise ForbiddenError("Moderators can only kick members")

        await self.guild_storage.remove_member(guild.id, target_id)
        await self.guild_storage.adjust_member_count(guild.id, -1)
        logger.info(f"User {target_id} removed from guild {guild.slug} by {user_id}")

    # ============================================
    # Leaderboards
    # ============================================

    async def leaderboard(self, slug: str, board: str = LeaderboardType.TOTAL_XP.value) -> List[LeaderboardEntry]:
        try:
            board_type = LeaderboardType(board)
        except ValueError:
            raise ValueError("type must be total_xp, weekly_xp or streak")

        guild = await self._guild(slug)
        users = await self.user_storage.list_by_ids(await self.guild_storage.member_ids(guild.id))

        if board_type == LeaderboardType.WEEKLY_XP:
            weekly = await self.user_storage.weekly_xp([u.id for u in users], progress.week_start())
            xp_by_user = {row["user_id"]: row["xp_earned"] for row in weekly}
            scored = [(u, xp_by_user.get(u.id, 0)) for u in users]
        elif board_type == LeaderboardType.STREAK:
            scored = [(u, u.streak_count) for u in users if u.streak_count > 0]
        else:
            scored = [(u, u.total_xp) for u in users]

        scored.sort(key=lambda pair: pair[1], reverse=True)
        return [
            LeaderboardEntry(
                rank=rank,
                user_id=user.id,
                username=user.username,
                display_name=user.display_name,
                value=value,
                avatar_url=user.avatar_url,
                level=user.level,
            )
            for rank, (user, value) in enumerate(scored, start=1)
        ]
