"""
Shared fixtures.

FakeEngine wires the real services over the in-memory storages in
tests/fakes.py; the API client swaps it in through get_engine.
"""
from typing import Dict

import httpx
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from studio.app import app
from studio.config import Config
from studio.models.user import User
from studio.routes.auth import create_token
from studio.routes.deps import get_engine
from studio.security.rate_limiter import RateLimiter
from studio.services.advisor_service import AdvisorService
from studio.services.audit_log import AuditLogBuffer
from studio.services.bitcoin_metrics import BitcoinMetricsService
from studio.services.document_service import DocumentService
from studio.services.file_service import FileService
from studio.services.fitness_service import FitnessService
from studio.services.guild_service import GuildService
from studio.services.pipeline_scheduler import PipelineScheduler
from studio.services.prompt_cache import PromptCache
from studio.services.reeval import ReEvalService
from studio.services.risk_analysis import RiskAnalysisService
from studio.services.risk_service import RiskService
from studio.services.signal_ingestion import SignalIngestionService
from studio.services.skill_service import SkillService
from studio.services.users_service import UsersService
from studio.services.vote_service import VoteService
from studio.services.x_posting import XPostingService
from tests.fakes import (
    FakeAuditStorage,
    FakeBIPStorage,
    FakeCompanyStorage,
    FakeConversationStorage,
    FakeEntityAuditStorage,
    FakeFUDStorage,
    FakeGuildStorage,
    FakeMonitoringStorage,
    FakeQuestStorage,
    FakeRecoveryStorage,
    FakeReEvalStorage,
    FakeSignalStorage,
    FakeSnapshotStorage,
    FakeThreatStorage,
    FakeUserStorage,
    FakeVoteStorage,
    FakeVulnerabilityStorage,
    FakeWorkoutStorage,
    FakeXPostStorage,
    StubExecutor,
    StubSender,
)


def bip_transport(documents: Dict[str, str]) -> httpx.MockTransport:
    """Serve raw BIP files by URL; anything else is a 404"""

    def handler(request: httpx.Request) -> httpx.Response:
        text = documents.get(str(request.url))
        if text is None:
            return httpx.Response(404, text="Not Found")
        return httpx.Response(200, text=text)

    return httpx.MockTransport(handler)


def json_transport(payloads: Dict[str, object]) -> httpx.MockTransport:
    """Serve JSON payloads by URL; anything else is a 503"""

    def handler(request: httpx.Request) -> httpx.Response:
        payload = payloads.get(str(request.url))
        if payload is None:
            return httpx.Response(503, text="Service Unavailable")
        return httpx.Response(200, json=payload)

    return httpx.MockTransport(handler)


class FakeEngine:
    """EngineService with in-memory storages and stubbed LLM and X clients"""

    def __init__(self, upload_dir: str):
        self.user_storage = FakeUserStorage()
        self.audit_storage = FakeAuditStorage()
        self.entity_audit_storage = FakeEntityAuditStorage()
        self.company_storage = FakeCompanyStorage()
        self.conversation_storage = FakeConversationStorage()
        self.threat_storage = FakeThreatStorage()
        self.vulnerability_storage = FakeVulnerabilityStorage()
        self.bip_storage = FakeBIPStorage()
        self.fud_storage = FakeFUDStorage()
        self.vote_storage = FakeVoteStorage()
        self.signal_storage = FakeSignalStorage()
        self.monitoring_storage = FakeMonitoringStorage()
        self.reeval_storage = FakeReEvalStorage()
        self.x_post_storage = FakeXPostStorage()
        self.workout_storage = FakeWorkoutStorage()
        self.recovery_storage = FakeRecoveryStorage()
        self.quest_storage = FakeQuestStorage()
        self.guild_storage = FakeGuildStorage(self.user_storage)
        self.snapshot_storage = FakeSnapshotStorage()

        self.rate_limiter = RateLimiter()
        self.audit_log = AuditLogBuffer(self.audit_storage, flush_size=100, flush_interval=60)
        self.prompt_cache = PromptCache(str(Config.PROMPTS_DIR))
        self.agent_executor = StubExecutor()

        self.x_sender = StubSender()
        self.x_posting = XPostingService(
            self.x_post_storage, self.entity_audit_storage, sender=self.x_sender, enabled=True
        )

        self.users_service = UsersService(self.user_storage, salt_rounds=4)
        self.advisor_service = AdvisorService(
            self.agent_executor, self.prompt_cache, self.company_storage, self.conversation_storage
        )
        self.skill_service = SkillService(self.agent_executor, self.prompt_cache)
        self.document_service = DocumentService(self.agent_executor, self.prompt_cache)
        self.file_service = FileService(upload_dir)

        self.risk_service = RiskService(
            self.threat_storage,
            self.vulnerability_storage,
            self.bip_storage,
            self.fud_storage,
            self.entity_audit_storage,
            x_posting=self.x_posting,
            snapshot_storage=self.snapshot_storage,
        )
        self.risk_analysis = RiskAnalysisService(self.agent_executor, self.prompt_cache)
        self.metrics_payloads: Dict[str, object] = {}
        self.bitcoin_metrics = BitcoinMetricsService(
            client=httpx.AsyncClient(transport=json_transport(self.metrics_payloads))
        )
        self.vote_service = VoteService(
            self.vote_storage, self.threat_storage, self.fud_storage, self.entity_audit_storage
        )
        self.bip_documents: Dict[str, str] = {}
        self.reeval_service = ReEvalService(
            self.reeval_storage,
            self.bip_storage,
            self.threat_storage,
            self.vulnerability_storage,
            self.entity_audit_storage,
            self.agent_executor,
            self.prompt_cache,
            x_posting=self.x_posting,
            client=httpx.AsyncClient(transport=bip_transport(self.bip_documents)),
        )
        self.fetchers = []
        self.signal_ingestion = SignalIngestionService(
            self.fetchers, self.signal_storage, self.monitoring_storage, self.bip_storage, self.reeval_service
        )
        self.pipeline_scheduler = PipelineScheduler(
            ingestion=self.signal_ingestion,
            reeval=self.reeval_service,
            monitoring_storage=self.monitoring_storage,
            risk_service=self.risk_service,
        )

        self.fitness_service = FitnessService(
            self.user_storage, self.workout_storage, self.recovery_storage, self.quest_storage
        )
        self.guild_service = GuildService(self.guild_storage, self.user_storage)
        self.is_initialized = True

    async def add_user(self, username: str = "alice", is_admin: bool = False, **fields) -> User:
        user = User(
            email=f"{username}@example.com",
            username=username,
            display_name=fields.pop("display_name", username.title()),
            password_hash="x",
            is_admin=is_admin,
            **fields,
        )
        return await self.user_storage.create(user)

    async def close(self):
        await self.reeval_service.close()
        await self.bitcoin_metrics.close()


def auth_headers(user: User) -> dict:
    token = create_token(user.id, user.email, user.display_name, user.is_admin)
    return {"Authorization": f"Bearer {token}"}


@pytest_asyncio.fixture
async def engine(tmp_path):
    fake = FakeEngine(str(tmp_path / "uploads"))
    yield fake
    await fake.close()


@pytest_asyncio.fixture
async def client(engine):
    app.dependency_overrides[get_engine] = lambda: engine
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def user(engine):
    return await engine.add_user("alice")


@pytest_asyncio.fixture
async def admin(engine):
    return await engine.add_user("root", is_admin=True)


@pytest.fixture
def headers(user):
    return auth_headers(user)


@pytest.fixture
def admin_headers(admin):
    return auth_headers(admin)
