"""
Fitness Routes

Gamified fitness: profile, workouts, recovery, daily quests, guilds and
the dashboard.
"""
import logging
from typing import Any, Dict, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel

from ..models.audit import AuditAction
from ..security.sanitize import get_client_id
from ..services.engine_service import EngineService
from .auth import get_current_user
from .deps import enforce_rate_limit, get_engine, http_error

logger = logging.getLogger("studio.routes.fitness")
router = APIRouter(prefix="/fitness", tags=["fitness"])


# ============================================
# Request Models
# ============================================

class WorkoutRequest(BaseModel):
    workout_type: str
    duration_minutes: int
    title: str = ""
    notes: Optional[str] = None
    quest_id: Optional[UUID] = None


class RecoveryRequest(BaseModel):
    score: int
    source: str = "manual"
    raw_data: Optional[Dict[str, Any]] = None


class SelectQuestRequest(BaseModel):
    quest_id: Optional[UUID] = None


class CreateGuildRequest(BaseModel):
    name: str
    description: Optional[str] = None
    is_public: bool = True


class UpdateGuildRequest(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    is_public: Optional[bool] = None


class MemberRoleRequest(BaseModel):
    role: str


# ============================================
# Profile
# ============================================

@router.get("/profile")
async def get_profile(
    current_user: dict = Depends(get_current_user),
    engine: EngineService = Depends(get_engine),
):
    try:
        user = await engine.fitness_service.get_profile(current_user["user_id"])
    except ValueError as e:
        raise http_error(e)
    return user.to_dict()


@router.patch("/profile")
async def update_profile(
    body: Dict[str, Any],
    request: Request,
    current_user: dict = Depends(get_current_user),
    engine: EngineService = Depends(get_engine),
):
    await enforce_rate_limit(request, engine, f"profile:{get_client_id(request)}", "api")
    try:
        user = await engine.fitness_service.update_profile(current_user["user_id"], body)
    except ValueError as e:
        raise http_error(e)

    await engine.audit_log.log_data_access(
        current_user["user_id"], AuditAction.DATA_UPDATE, "profile", str(user.id),
        data_category="personal", details={"fields": sorted(body)},
    )
    return user.to_dict()


# ============================================
# Workouts
# ============================================

@router.post("/workouts", status_code=201)
async def log_workout(
    body: WorkoutRequest,
    request: Request,
    current_user: dict = Depends(get_current_user),
    engine: EngineService = Depends(get_engine),
):
    user_id = current_user["user_id"]
    await enforce_rate_limit(request, engine, f"workout:{user_id}", "workout")
    try:
        return await engine.fitness_service.log_workout(
            user_id, body.workout_type, body.duration_minutes, body.title, body.notes, body.quest_id
        )
    except ValueError as e:
        raise http_error(e)


@router.get("/workouts")
async def list_workouts(
    limit: int = 20,
    current_user: dict = Depends(get_current_user),
    engine: EngineService = Depends(get_engine),
):
    workouts = await engine.fitness_service.recent_workouts(current_user["user_id"], min(max(limit, 1), 100))
    return [w.to_dict() for w in workouts]


# ============================================
# Recovery
# ============================================

@router.post("/recovery", status_code=201)
async def record_recovery(
    body: RecoveryRequest,
    current_user: dict = Depends(get_current_user),
    engine: EngineService = Depends(get_engine),
):
    try:
        score = await engine.fitness_service.record_recovery(
            current_user["user_id"], body.score, body.source, body.raw_data
        )
    except ValueError as e:
        raise http_error(e)
    recommendation = await engine.fitness_service.recommendation(current_user["user_id"])
    return {"score": score.to_dict(), "recommendation": recommendation.to_dict()}


@router.get("/recovery")
async def get_recovery(
    current_user: dict = Depends(get_current_user),
    engine: EngineService = Depends(get_engine),
):
    return await engine.fitness_service.recovery_status(current_user["user_id"])


# ============================================
# Quests
# ============================================

@router.get("/quests")
async def list_quests(
    difficulty: Optional[str] = None,
    category: Optional[str] = None,
    recovery_level: Optional[str] = None,
    current_user: dict = Depends(get_current_user),
    engine: EngineService = Depends(get_engine),
):
    quests = await engine.fitness_service.list_quests(difficulty, category, recovery_level)
    return [q.to_dict() for q in quests]


@router.get("/quests/daily")
async def daily_quests(
    current_user: dict = Depends(get_current_user),
    engine: EngineService = Depends(get_engine),
):
    user_id = current_user["user_id"]
    assignments = await engine.fitness_service.daily_quests(user_id)
    recommendation = await engine.fitness_service.recommendation(user_id)
    return {
        "quests": [a.to_dict() for a in assignments],
        "recommendation": recommendation.to_dict(),
    }


@router.patch("/quests/daily")
async def select_daily_quest(
    body: SelectQuestRequest,
    current_user: dict = Depends(get_current_user),
    engine: EngineService = Depends(get_engine),
):
    try:
        await engine.fitness_service.select_quest(current_user["user_id"], body.quest_id)
    except ValueError as e:
        raise http_error(e)
    return {"success": True, "quest_id": str(body.quest_id)}


@router.post("/quests/daily/{quest_id}/complete")
async def complete_daily_quest(
    quest_id: UUID,
    current_user: dict = Depends(get_current_user),
    engine: EngineService = Depends(get_engine),
):
    try:
        return await engine.fitness_service.complete_quest(current_user["user_id"], quest_id)
    except ValueError as e:
        raise http_error(e)


# ============================================
# Dashboard
# ============================================

@router.get("/dashboard")
async def dashboard(
    current_user: dict = Depends(get_current_user),
    engine: EngineService = Depends(get_engine),
):
    try:
        return await engine.fitness_service.dashboard(current_user["user_id"])
    except ValueError as e:
        raise http_error(e)


# ============================================
# Guilds
# ============================================

@router.get("/guilds")
async def search_guilds(
    search: Optional[str] = None,
    current_user: dict = Depends(get_current_user),
    engine: EngineService = Depends(get_engine),
):
    guilds = await engine.guild_service.search(search)
    return [g.to_dict() for g in guilds]


@router.post("/guilds", status_code=201)
async def create_guild(
    body: CreateGuildRequest,
    request: Request,
    current_user: dict = Depends(get_current_user),
    engine: EngineService = Depends(get_engine),
):
    await enforce_rate_limit(request, engine, f"guild:{current_user['user_id']}", "api")
    try:
        guild = await engine.guild_service.create(
            current_user["user_id"], body.name, body.description, body.is_public
        )
    except ValueError as e:
        raise http_error(e)
    return guild.to_dict()


@router.get("/guilds/me")
async def my_guild(
    current_user: dict = Depends(get_current_user),
    engine: EngineService = Depends(get_engine),
):
    found = await engine.guild_service.my_guild(current_user["user_id"])
    if not found:
        return {"guild": None, "membership": None}
    guild, member = found
    return {"guild": guild.to_dict(), "membership": member.to_dict()}


@router.get("/guilds/{slug}")
async def get_guild(
    slug: str,
    current_user: dict = Depends(get_current_user),
    engine: EngineService = Depends(get_engine),
):
    try:
        return await engine.guild_service.get_with_members(slug)
    except ValueError as e:
        raise http_error(e)


@router.patch("/guilds/{slug}")
async def update_guild(
    slug: str,
    body: UpdateGuildRequest,
    current_user: dict = Depends(get_current_user),
    engine: EngineService = Depends(get_engine),
):
    try:
        guild = await engine.guild_service.update(slug, current_user["user_id"], body.model_dump(exclude_unset=True))
    except ValueError as e:
        raise http_error(e)
    return guild.to_dict()


@router.post("/guilds/{slug}/join")
async def join_guild(
    slug: str,
    current_user: dict = Depends(get_current_user),
    engine: EngineService = Depends(get_engine),
):
    try:
        member = await engine.guild_service.join(slug, current_user["user_id"])
    except ValueError as e:
        raise http_error(e)
    return member.to_dict()


@router.post("/guilds/{slug}/leave")
async def leave_guild(
    slug: str,
    current_user: dict = Depends(get_current_user),
    engine: EngineService = Depends(get_engine),
):
    try:
        return await engine.guild_service.leave(slug, current_user["user_id"])
    except ValueError as e:
        raise http_error(e)


@router.patch("/guilds/{slug}/members/{member_id}")
async def update_member_role(
    slug: str,
    member_id: UUID,
    body: MemberRoleRequest,
    current_user: dict = Depends(get_current_user),
    engine: EngineService = Depends(get_engine),
):
    try:
        return await engine.guild_service.set_member_role(slug, current_user["user_id"], member_id, body.role)
    except ValueError as e:
        raise http_error(e)


@router.delete("/guilds/{slug}/members/{member_id}")
async def kick_member(
    slug: str,
    member_id: UUID,
    current_user: dict = Depends(get_current_user),
    engine: EngineService = Depends(get_engine),
):
    try:
        await engine.guild_service.kick(slug, current_user["user_id"], member_id)
    except ValueError as e:
        raise http_error(e)
    return {"success": True}


@router.get("/guilds/{slug}/leaderboard")
async def guild_leaderboard(
    slug: str,
    type: str = "total_xp",
    current_user: dict = Depends(get_current_user),
    engine: EngineService = Depends(get_engine),
):
    try:
        entries = await engine.guild_service.leaderboard(slug, type)
    except ValueError as e:
        raise http_error(e)
    return {"type": type, "entries": [e.to_dict() for e in entries]}
