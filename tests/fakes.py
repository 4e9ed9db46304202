"""
In-memory stand-ins for the PostgreSQL storages, the LLM executor and
the X sender. Each fake keeps the contract of the storage it replaces:
same method names, same duplicate handling, same ordering.
"""
from datetime import date, datetime
from typing import Dict, List, Optional, Sequence, Tuple
from uuid import UUID

from studio.agents.result import AgentResult, BoardroomResult, ExecutiveResponse
from studio.models.audit import AuditEntry, EntityAuditEntry
from studio.models.bip import BIPEvaluation
from studio.models.company import Company
from studio.models.conversation import Conversation, ConversationMessage
from studio.models.executive import EXECUTIVES
from studio.models.fud import FUDAnalysis
from studio.models.guild import Guild, GuildMember, GuildRole
from studio.models.quest import DailyQuestAssignment, Quest
from studio.models.recovery import RECOVERY_TIER_ORDER, RecoveryScore
from studio.models.snapshot import RiskSnapshot
from studio.models.signal import (
    ExternalSignal,
    MonitoringRun,
    QueueStatus,
    ReEvalItem,
    ReEvalTrigger,
    RunStatus,
)
from studio.models.threat import Threat, Vulnerability, WorkflowStatus
from studio.models.user import User
from studio.models.vote import Vote, VoteSummary
from studio.models.workout import Workout
from studio.models.x_post import XPost, XPostStatus
from studio.notifications.x_sender import SendResult
from studio.storage.base import DuplicateError
from studio.storage.user_storage import PROFILE_COLUMNS

DIFFICULTY_ORDER = {"beginner": 1, "intermediate": 2, "advanced": 3}
RELATED_STATUSES = (WorkflowStatus.PUBLISHED, WorkflowStatus.UNDER_REVIEW)


class FakeStorage:
    """No-op lifecycle shared by every fake"""

    async def init(self):
        pass

    async def close(self):
        pass


# ============================================
# Users and fitness
# ============================================

class FakeUserStorage(FakeStorage):
    def __init__(self):
        self.users: Dict[UUID, User] = {}
        self.weekly: Dict[Tuple[UUID, date], int] = {}

    async def create(self, user: User) -> User:
        for existing in self.users.values():
            if existing.email == user.email or existing.username == user.username:
                raise DuplicateError("users_email_key")
        self.users[user.id] = user
        return user

    async def get_by_id(self, user_id: UUID) -> Optional[User]:
        return self.users.get(user_id)

    async def get_by_email(self, email: str) -> Optional[User]:
        return next((u for u in self.users.values() if u.email == email.lower()), None)

    async def list_by_ids(self, user_ids: List[UUID]) -> List[User]:
        return [self.users[uid] for uid in user_ids if uid in self.users]

    async def exists_by_email(self, email: str) -> bool:
        return await self.get_by_email(email) is not None

    async def exists_by_username(self, username: str) -> bool:
        return any(u.username == username.lower() for u in self.users.values())

    async def update_last_seen(self, user_id: UUID) -> None:
        if user_id in self.users:
            self.users[user_id].last_seen_at = datetime.utcnow()

    async def update_profile(self, user_id: UUID, fields: dict) -> Optional[User]:
        user = self.users.get(user_id)
        if not user:
            return None
        for name in PROFILE_COLUMNS:
            if name in fields:
                setattr(user, name, fields[name])
        user.updated_at = datetime.utcnow()
        return user

    async def add_progress(self, user_id: UUID, xp: int, workouts: int = 0, apply=None) -> Optional[User]:
        user = self.users.get(user_id)
        if not user:
            return None
        user.total_xp += xp
        user.current_xp += xp
        user.workouts_completed += workouts
        if apply:
            apply(user)
        user.updated_at = datetime.utcnow()
        return user

    async def add_weekly_xp(self, user_id: UUID, week_start: date, amount: int) -> None:
        key = (user_id, week_start)
        self.weekly[key] = self.weekly.get(key, 0) + amount

    async def weekly_xp(self, user_ids: List[UUID], week_start: date) -> List[dict]:
        rows = [
            {"user_id": uid, "xp_earned": xp}
            for (uid, week), xp in self.weekly.items()
            if uid in user_ids and week == week_start
        ]
        return sorted(rows, key=lambda row: row["xp_earned"], reverse=True)


class FakeWorkoutStorage(FakeStorage):
    def __init__(self):
        self.workouts: List[Workout] = []

    async def create(self, workout: Workout) -> Workout:
        self.workouts.append(workout)
        return workout

    async def list_recent(self, user_id: UUID, limit: int = 20) -> List[Workout]:
        mine = [w for w in self.workouts if w.user_id == user_id]
        return sorted(mine, key=lambda w: w.completed_at, reverse=True)[:limit]

    async def count_since(self, user_id: UUID, since: datetime) -> int:
        return sum(1 for w in self.workouts if w.user_id == user_id and w.completed_at >= since)


class FakeRecoveryStorage(FakeStorage):
    def __init__(self):
        self.scores: Dict[Tuple[UUID, date, str], RecoveryScore] = {}

    async def upsert(self, score: RecoveryScore) -> RecoveryScore:
        self.scores[(score.user_id, score.scored_date, score.source)] = score
        return score

    async def latest(self, user_id: UUID) -> Optional[RecoveryScore]:
        mine = [s for s in self.scores.values() if s.user_id == user_id]
        if not mine:
            return None
        return max(mine, key=lambda s: (s.scored_date, s.created_at))


class FakeSnapshotStorage(FakeStorage):
    def __init__(self):
        self.snapshots: Dict[date, RiskSnapshot] = {}

    async def upsert(self, snapshot: RiskSnapshot) -> RiskSnapshot:
        self.snapshots[snapshot.snapshot_date] = snapshot
        return snapshot

    async def get(self, snapshot_date: date) -> Optional[RiskSnapshot]:
        return self.snapshots.get(snapshot_date)

    async def list_since(self, since: date) -> List[RiskSnapshot]:
        return [self.snapshots[d] for d in sorted(self.snapshots) if d >= since]


class FakeQuestStorage(FakeStorage):
    def __init__(self):
        self.quests: Dict[UUID, Quest] = {}
        self.assignments: List[DailyQuestAssignment] = []

    async def list_active(
        self,
        difficulty: Optional[str] = None,
        category: Optional[str] = None,
        recovery_level: Optional[str] = None,
    ) -> List[Quest]:
        quests = [
            q for q in self.quests.values()
            if q.is_active
            and (difficulty is None or q.difficulty.value == difficulty)
            and (category is None or q.category.value == category)
            and (recovery_level is None or q.recovery_level.value == recovery_level)
        ]
        return sorted(quests, key=lambda q: (DIFFICULTY_ORDER.get(q.difficulty.value, 4), q.title))

    async def get_by_id(self, quest_id: UUID) -> Optional[Quest]:
        return self.quests.get(quest_id)

    async def create(self, quest: Quest) -> Quest:
        self.quests[quest.id] = quest
        return quest

    async def list_assignments(self, user_id: UUID, day: date) -> List[DailyQuestAssignment]:
        mine = [a for a in self.assignments if a.user_id == user_id and a.assigned_date == day]
        for assignment in mine:
            assignment.quest = self.quests.get(assignment.quest_id)
        return sorted(mine, key=lambda a: RECOVERY_TIER_ORDER.index(a.recovery_level))

    async def create_assignments(self, assignments: List[DailyQuestAssignment]) -> None:
        for new in assignments:
            exists = any(
                a.user_id == new.user_id and a.quest_id == new.quest_id and a.assigned_date == new.assigned_date
                for a in self.assignments
            )
            if not exists:
                self.assignments.append(new)

    def _day(self, user_id: UUID, day: date) -> List[DailyQuestAssignment]:
        return [a for a in self.assignments if a.user_id == user_id and a.assigned_date == day]

    async def select_assignment(self, user_id: UUID, day: date, quest_id: UUID) -> bool:
        todays = self._day(user_id, day)
        if not any(a.quest_id == quest_id for a in todays):
            return False
        for assignment in todays:
            assignment.selected = assignment.quest_id == quest_id
        return True

    async def complete_assignment(self, user_id: UUID, day: date, quest_id: UUID) -> bool:
        for assignment in self._day(user_id, day):
            if assignment.quest_id == quest_id and not assignment.completed:
                assignment.completed = True
                assignment.selected = True
                assignment.completed_at = datetime.utcnow()
                return True
        return False


class FakeGuildStorage(FakeStorage):
    """Guilds and members; membership rows pick up user fields from user_storage"""

    def __init__(self, user_storage: Optional[FakeUserStorage] = None):
        self.user_storage = user_storage
        self.guilds: Dict[UUID, Guild] = {}
        self.members: List[GuildMember] = []

    def _name_taken(self, guild: Guild) -> bool:
        return any(
            g.id != guild.id and (g.slug == guild.slug or g.name == guild.name)
            for g in self.guilds.values()
        )

    async def create(self, guild: Guild) -> Guild:
        if self._name_taken(guild):
            raise DuplicateError("guilds_slug_key")
        self.guilds[guild.id] = guild
        return guild

    async def delete(self, guild_id: UUID) -> bool:
        if self.guilds.pop(guild_id, None) is None:
            return False
        self.members = [m for m in self.members if m.guild_id != guild_id]
        return True

    async def get_by_id(self, guild_id: UUID) -> Optional[Guild]:
        return self.guilds.get(guild_id)

    async def get_by_slug(self, slug: str) -> Optional[Guild]:
        return next((g for g in self.guilds.values() if g.slug == slug), None)

    async def search(self, search: Optional[str] = None, limit: int = 50) -> List[Guild]:
        guilds = [g for g in self.guilds.values() if not search or search.lower() in g.name.lower()]
        return sorted(guilds, key=lambda g: g.member_count, reverse=True)[:limit]

    async def update(self, guild: Guild) -> Guild:
        if self._name_taken(guild):
            raise DuplicateError("guilds_slug_key")
        guild.updated_at = datetime.utcnow()
        self.guilds[guild.id] = guild
        return guild

    async def adjust_member_count(self, guild_id: UUID, delta: int) -> None:
        guild = self.guilds.get(guild_id)
        if guild:
            guild.member_count = max(0, guild.member_count + delta)

    async def add_member(self, member: GuildMember) -> GuildMember:
        if any(m.user_id == member.user_id for m in self.members):
            raise DuplicateError("guild_members_user_id_key")
        self.members.append(member)
        return member

    async def get_member(self, guild_id: UUID, user_id: UUID) -> Optional[GuildMember]:
        return next((m for m in self.members if m.guild_id == guild_id and m.user_id == user_id), None)

    async def get_user_guild(self, user_id: UUID) -> Optional[Tuple[Guild, GuildMember]]:
        member = next((m for m in self.members if m.user_id == user_id), None)
        if not member or member.guild_id not in self.guilds:
            return None
        return self.guilds[member.guild_id], member

    async def count_members(self, guild_id: UUID) -> int:
        return sum(1 for m in self.members if m.guild_id == guild_id)

    async def list_members(self, guild_id: UUID) -> List[GuildMember]:
        members = sorted((m for m in self.members if m.guild_id == guild_id), key=lambda m: m.joined_at)
        for member in members:
            user = self.user_storage.users.get(member.user_id) if self.user_storage else None
            if user:
                member.username = user.username
                member.display_name = user.display_name
                member.avatar_url = user.avatar_url
                member.level = user.level
        return members

    async def member_ids(self, guild_id: UUID) -> List[UUID]:
        return [m.user_id for m in self.members if m.guild_id == guild_id]

    async def update_member_role(self, guild_id: UUID, user_id: UUID, role: GuildRole) -> bool:
        member = await self.get_member(guild_id, user_id)
        if not member:
            return False
        member.role = role
        return True

    async def remove_member(self, guild_id: UUID, user_id: UUID) -> bool:
        member = await self.get_member(guild_id, user_id)
        if not member:
            return False
        self.members.remove(member)
        return True


# ============================================
# Audit and advisor
# ============================================

class FakeAuditStorage(FakeStorage):
    def __init__(self):
        self.entries: List[AuditEntry] = []
        self.fail_writes = False

    async def insert_many(self, entries: List[AuditEntry]) -> None:
        if self.fail_writes:
            raise ConnectionError("database unavailable")
        self.entries.extend(entries)

    async def query(self, user_id=None, action=None, start=None, end=None, limit: int = 100) -> List[AuditEntry]:
        found = [
            e for e in self.entries
            if (user_id is None or e.user_id == user_id)
            and (action is None or e.action.value == action)
            and (start is None or e.created_at >= start)
            and (end is None or e.created_at <= end)
        ]
        return sorted(found, key=lambda e: e.created_at, reverse=True)[:limit]


class FakeEntityAuditStorage(FakeStorage):
    def __init__(self):
        self.entries: List[EntityAuditEntry] = []

    async def append(self, entry: EntityAuditEntry) -> EntityAuditEntry:
        self.entries.append(entry)
        return entry

    async def list(self, entity_type: Optional[str] = None, limit: int = 50) -> List[EntityAuditEntry]:
        found = [e for e in reversed(self.entries) if entity_type is None or e.entity_type == entity_type]
        return found[:limit]

    async def list_for_entity(self, entity_type: str, entity_id: str) -> List[EntityAuditEntry]:
        return [e for e in reversed(self.entries) if e.entity_type == entity_type and e.entity_id == entity_id]

    def actions(self, entity_type: Optional[str] = None) -> List[str]:
        return [e.action for e in self.entries if entity_type is None or e.entity_type == entity_type]


class FakeCompanyStorage(FakeStorage):
    def __init__(self):
        self.companies: Dict[UUID, Company] = {}

    async def get_by_user(self, user_id: UUID) -> Optional[Company]:
        return self.companies.get(user_id)

    async def upsert(self, company: Company) -> Company:
        company.updated_at = datetime.utcnow()
        self.companies[company.user_id] = company
        return company


class FakeConversationStorage(FakeStorage):
    def __init__(self):
        self.conversations: Dict[UUID, Conversation] = {}
        self.messages: List[ConversationMessage] = []

    async def create(self, conversation: Conversation) -> Conversation:
        self.conversations[conversation.id] = conversation
        return conversation

    async def get_for_user(self, conversation_id: UUID, user_id: UUID) -> Optional[Conversation]:
        conversation = self.conversations.get(conversation_id)
        if conversation and conversation.user_id == user_id:
            return conversation
        return None

    async def list_by_user(self, user_id: UUID, limit: int = 50) -> List[Conversation]:
        mine = [c for c in self.conversations.values() if c.user_id == user_id]
        return sorted(mine, key=lambda c: c.updated_at, reverse=True)[:limit]

    async def delete(self, conversation_id: UUID, user_id: UUID) -> bool:
        if not await self.get_for_user(conversation_id, user_id):
            return False
        del self.conversations[conversation_id]
        self.messages = [m for m in self.messages if m.conversation_id != conversation_id]
        return True

    async def add_message(self, message: ConversationMessage) -> ConversationMessage:
        self.messages.append(message)
        self.conversations[message.conversation_id].updated_at = datetime.utcnow()
        return message

    async def list_messages(self, conversation_id: UUID) -> List[ConversationMessage]:
        return [m for m in self.messages if m.conversation_id == conversation_id]


# ============================================
# Risk register
# ============================================

_THREAT_SCORE_ATTRS = {
    "fair_tef": "threat_event_frequency",
    "fair_vulnerability": "vulnerability",
    "fair_primary_loss_usd": "primary_loss_usd",
    "fair_secondary_loss_usd": "secondary_loss_usd",
}


def _mentions(related: Sequence[str], variants: Sequence[str]) -> bool:
    return bool(set(related) & set(variants))


class FakeThreatStorage(FakeStorage):
    def __init__(self):
        self.threats: Dict[str, Threat] = {}

    async def create(self, threat: Threat) -> Threat:
        self.threats[threat.id] = threat
        return threat

    async def get_by_id(self, threat_id: str) -> Optional[Threat]:
        return self.threats.get(threat_id)

    async def list(
        self,
        statuses: Sequence[WorkflowStatus] = (WorkflowStatus.PUBLISHED,),
        stride: Optional[str] = None,
        source: Optional[str] = None,
        rmf_status: Optional[str] = None,
    ) -> List[Threat]:
        found = [
            t for t in self.threats.values()
            if t.status in statuses
            and (stride is None or t.stride_category.value == stride)
            and (source is None or t.threat_source.value == source)
            and (rmf_status is None or t.rmf_status.value == rmf_status)
        ]
        return sorted(found, key=lambda t: t.severity_score, reverse=True)

    async def list_by_submitter(self, user_id: str) -> List[Threat]:
        found = [t for t in self.threats.values() if t.submitted_by == user_id]
        return sorted(found, key=lambda t: t.date_identified, reverse=True)

    async def list_related_to_bip(self, bip_variants: List[str]) -> List[Threat]:
        found = [
            t for t in self.threats.values()
            if t.status in RELATED_STATUSES and _mentions(t.related_bips, bip_variants)
        ]
        return sorted(found, key=lambda t: t.severity_score, reverse=True)

    async def update(self, threat: Threat) -> Threat:
        threat.last_updated = datetime.utcnow()
        self.threats[threat.id] = threat
        return threat

    async def update_status(self, threat_id: str, status: WorkflowStatus) -> bool:
        threat = self.threats.get(threat_id)
        if not threat:
            return False
        threat.status = status
        return True

    async def update_score(self, threat_id: str, field: str, value: float) -> Optional[Threat]:
        threat = self.threats.get(threat_id)
        if not threat:
            return None
        if field in _THREAT_SCORE_ATTRS:
            setattr(threat.fair, _THREAT_SCORE_ATTRS[field], value)
        else:
            setattr(threat, field, value)
        return threat

    async def delete(self, threat_id: str) -> bool:
        return self.threats.pop(threat_id, None) is not None


class FakeVulnerabilityStorage(FakeStorage):
    def __init__(self):
        self.vulns: Dict[str, Vulnerability] = {}

    async def create(self, vuln: Vulnerability) -> Vulnerability:
        self.vulns[vuln.id] = vuln
        return vuln

    async def get_by_id(self, vuln_id: str) -> Optional[Vulnerability]:
        return self.vulns.get(vuln_id)

    async def list(
        self,
        statuses: Sequence[WorkflowStatus] = (WorkflowStatus.PUBLISHED,),
        vuln_status: Optional[str] = None,
    ) -> List[Vulnerability]:
        found = [
            v for v in self.vulns.values()
            if v.status in statuses and (vuln_status is None or v.vuln_status.value == vuln_status)
        ]
        return sorted(found, key=lambda v: v.vulnerability_score, reverse=True)

    async def list_by_ids(self, vuln_ids: List[str]) -> List[Vulnerability]:
        return [self.vulns[vid] for vid in vuln_ids if vid in self.vulns]

    async def list_related_to_bip(self, bip_variants: List[str]) -> List[Vulnerability]:
        return [
            v for v in self.vulns.values()
            if v.status in RELATED_STATUSES and _mentions(v.related_bips, bip_variants)
        ]

    async def update(self, vuln: Vulnerability) -> Vulnerability:
        vuln.last_updated = datetime.utcnow()
        self.vulns[vuln.id] = vuln
        return vuln

    async def delete(self, vuln_id: str) -> bool:
        return self.vulns.pop(vuln_id, None) is not None


class FakeBIPStorage(FakeStorage):
    def __init__(self):
        self.bips: Dict[str, BIPEvaluation] = {}
        self.fail_updates = False

    async def create(self, bip: BIPEvaluation) -> BIPEvaluation:
        self.bips[bip.id] = bip
        return bip

    async def get_by_id(self, bip_id: str) -> Optional[BIPEvaluation]:
        return self.bips.get(bip_id)

    async def list(self, status: Optional[WorkflowStatus] = WorkflowStatus.PUBLISHED) -> List[BIPEvaluation]:
        found = [b for b in self.bips.values() if status is None or b.status == status]
        return sorted(found, key=lambda b: b.bip_number)

    async def find_by_numbers(self, bip_numbers: List[str]) -> List[BIPEvaluation]:
        return [b for b in self.bips.values() if b.bip_number in bip_numbers]

    async def update(self, bip: BIPEvaluation) -> BIPEvaluation:
        if self.fail_updates:
            raise ConnectionError("database unavailable")
        bip.last_updated = datetime.utcnow()
        self.bips[bip.id] = bip
        return bip


class FakeFUDStorage(FakeStorage):
    def __init__(self):
        self.items: Dict[str, FUDAnalysis] = {}

    async def create(self, fud: FUDAnalysis) -> FUDAnalysis:
        self.items[fud.id] = fud
        return fud

    async def get_by_id(self, fud_id: str) -> Optional[FUDAnalysis]:
        return self.items.get(fud_id)

    async def list(
        self,
        statuses: Sequence[WorkflowStatus] = (WorkflowStatus.PUBLISHED,),
        category: Optional[str] = None,
    ) -> List[FUDAnalysis]:
        found = [
            f for f in self.items.values()
            if f.status in statuses and (category is None or f.category.value == category)
        ]
        return sorted(found, key=lambda f: f.last_seen, reverse=True)

    async def list_by_submitter(self, user_id: str) -> List[FUDAnalysis]:
        found = [f for f in self.items.values() if f.submitted_by == user_id]
        return sorted(found, key=lambda f: f.last_seen, reverse=True)

    async def update(self, fud: FUDAnalysis) -> FUDAnalysis:
        fud.last_updated = datetime.utcnow()
        self.items[fud.id] = fud
        return fud

    async def update_status(self, fud_id: str, status: WorkflowStatus) -> bool:
        fud = self.items.get(fud_id)
        if not fud:
            return False
        fud.status = status
        return True


class FakeVoteStorage(FakeStorage):
    def __init__(self):
        self.votes: Dict[Tuple[str, str, UUID], Vote] = {}

    async def upsert(self, vote: Vote) -> None:
        self.votes[(vote.target_type.value, vote.target_id, vote.user_id)] = vote

    async def delete(self, target_type: str, target_id: str, user_id: UUID) -> bool:
        return self.votes.pop((target_type, target_id, user_id), None) is not None

    async def summary(self, target_type: str, target_id: str, user_id: Optional[UUID] = None) -> VoteSummary:
        values = {
            uid: vote.vote_value
            for (kind, tid, uid), vote in self.votes.items()
            if kind == target_type and tid == target_id
        }
        return VoteSummary(
            approvals=sum(1 for v in values.values() if v > 0),
            rejections=sum(1 for v in values.values() if v < 0),
            user_vote=values.get(user_id) if user_id else None,
        )


# ============================================
# Monitoring pipeline
# ============================================

class FakeSignalStorage(FakeStorage):
    def __init__(self):
        self.signals: Dict[Tuple[str, str], ExternalSignal] = {}

    async def insert(self, signal: ExternalSignal) -> Optional[ExternalSignal]:
        key = (signal.source.value, signal.external_id)
        if key in self.signals:
            return None
        self.signals[key] = signal
        return signal

    async def list_recent(self, limit: int = 50) -> List[ExternalSignal]:
        return sorted(self.signals.values(), key=lambda s: s.created_at, reverse=True)[:limit]


class FakeMonitoringStorage(FakeStorage):
    def __init__(self):
        self.runs: List[MonitoringRun] = []

    def _run(self, run_id: UUID) -> MonitoringRun:
        return next(r for r in self.runs if r.id == run_id)

    async def start(self, run_type: str) -> MonitoringRun:
        run = MonitoringRun(run_type=run_type)
        self.runs.append(run)
        return run

    async def complete(self, run_id: UUID, result: dict) -> None:
        run = self._run(run_id)
        run.status = RunStatus.COMPLETED
        run.result = result
        run.completed_at = datetime.utcnow()

    async def fail(self, run_id: UUID, error: str) -> None:
        run = self._run(run_id)
        run.status = RunStatus.FAILED
        run.error = error
        run.completed_at = datetime.utcnow()

    async def last_completed(self, run_type: str) -> Optional[MonitoringRun]:
        done = [r for r in self.runs if r.run_type == run_type and r.status == RunStatus.COMPLETED]
        return max(done, key=lambda r: r.started_at) if done else None

    async def list_recent(self, limit: int = 20) -> List[MonitoringRun]:
        return sorted(self.runs, key=lambda r: r.started_at, reverse=True)[:limit]


class FakeReEvalStorage(FakeStorage):
    def __init__(self):
        self.items: List[ReEvalItem] = []

    def _item(self, item_id: UUID) -> ReEvalItem:
        return next(i for i in self.items if i.id == item_id)

    async def enqueue(self, trigger: ReEvalTrigger) -> bool:
        if any(i.bip_id == trigger.bip_id and i.status == QueueStatus.PENDING for i in self.items):
            return False
        self.items.append(ReEvalItem(
            bip_id=trigger.bip_id,
            reason=trigger.reason,
            priority=trigger.priority,
            source_id=trigger.source_id,
        ))
        return True

    async def count_completed_since(self, since: date) -> int:
        start = datetime.combine(since, datetime.min.time())
        return sum(
            1 for i in self.items
            if i.status == QueueStatus.COMPLETED and i.completed_at and i.completed_at >= start
        )

    async def next_pending(self, limit: int) -> List[ReEvalItem]:
        pending = [i for i in self.items if i.status == QueueStatus.PENDING]
        return sorted(pending, key=lambda i: (-i.priority, i.created_at))[:limit]

    async def mark_processing(self, item_id: UUID, attempts: int) -> None:
        item = self._item(item_id)
        item.status = QueueStatus.PROCESSING
        item.attempts = attempts

    async def mark_completed(self, item_id: UUID) -> None:
        item = self._item(item_id)
        item.status = QueueStatus.COMPLETED
        item.completed_at = datetime.utcnow()
        item.last_error = None

    async def mark_pending(self, item_id: UUID, error: str) -> None:
        item = self._item(item_id)
        item.status = QueueStatus.PENDING
        item.last_error = error

    async def mark_failed(self, item_id: UUID, error: Optional[str]) -> None:
        item = self._item(item_id)
        item.status = QueueStatus.FAILED
        item.last_error = error or item.last_error
        item.completed_at = datetime.utcnow()

    async def list_recent(self, limit: int = 50) -> List[ReEvalItem]:
        return sorted(self.items, key=lambda i: i.created_at, reverse=True)[:limit]


class FakeXPostStorage(FakeStorage):
    def __init__(self):
        self.posts: List[XPost] = []

    def _post(self, post_id: UUID) -> XPost:
        return next(p for p in self.posts if p.id == post_id)

    async def create(self, post: XPost) -> XPost:
        self.posts.append(post)
        return post

    async def mark_posted(self, post_id: UUID, x_post_id: str) -> None:
        post = self._post(post_id)
        post.status = XPostStatus.POSTED
        post.post_id = x_post_id
        post.posted_at = datetime.utcnow()

    async def mark_failed(self, post_id: UUID, error: str) -> None:
        post = self._post(post_id)
        post.status = XPostStatus.FAILED
        post.error_message = error

    async def posted_since(self, entity_type: str, entity_id: str, since: datetime) -> bool:
        return any(
            p.entity_type == entity_type and p.entity_id == entity_id
            and p.status == XPostStatus.POSTED and p.created_at >= since
            for p in self.posts
        )

    async def count_posted_since(self, since: datetime) -> int:
        return sum(1 for p in self.posts if p.status == XPostStatus.POSTED and p.created_at >= since)

    async def list_recent(self, limit: int = 50) -> List[XPost]:
        return sorted(self.posts, key=lambda p: p.created_at, reverse=True)[:limit]


# ============================================
# LLM and X
# ============================================

class StubExecutor:
    """
    AgentExecutor stand-in.

    execute() hands out `replies` in order, then repeats `content`.
    Every call is recorded in `calls`.
    """

    def __init__(self, content: str = "Stub answer", configured: bool = True, error: Optional[str] = None):
        self.content = content
        self.configured = configured
        self.error = error
        self.replies: List[str] = []
        self.calls: List[dict] = []

    @property
    def is_configured(self) -> bool:
        return self.configured

    async def execute(self, system_prompt: str, messages: List[dict], max_tokens: int = 4096,
                      temperature: float = 0.7) -> AgentResult:
        self.calls.append({"system_prompt": system_prompt, "messages": messages, "max_tokens": max_tokens})
        if self.error:
            return AgentResult(content=f"[Error: {self.error}]", finish_reason="error", error=self.error)
        content = self.replies.pop(0) if self.replies else self.content
        return AgentResult(content=content, model="stub", input_tokens=10, output_tokens=20)

    async def stream(self, system_prompt: str, messages: List[dict], max_tokens: int = 4096,
                     temperature: float = 0.7):
        self.calls.append({"system_prompt": system_prompt, "messages": messages, "max_tokens": max_tokens})
        for word in self.content.split(" "):
            yield word + " "

    async def boardroom(self, prompts, messages: List[dict], max_tokens: int = 300) -> BoardroomResult:
        self.calls.append({"prompts": prompts, "messages": messages, "max_tokens": max_tokens})
        return BoardroomResult(responses=[
            ExecutiveResponse(
                executive=role.value,
                name=EXECUTIVES[role].name,
                response=f"{role.value} view",
                tokens_used=5,
            )
            for role in prompts
        ])


class StubSender:
    """XSender stand-in that records what it was asked to post"""

    def __init__(self, access_token: str = "token", fail_with: Optional[str] = None):
        self.access_token = access_token
        self.fail_with = fail_with
        self.sent: List[str] = []

    async def send(self, content: str) -> SendResult:
        if self.fail_with:
            return SendResult(success=False, error=self.fail_with)
        self.sent.append(content)
        return SendResult(success=True, post_id=f"x-{len(self.sent)}")

    async def close(self):
        pass
