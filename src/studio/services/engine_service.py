"""
Engine Service

Main composite service that manages all storages and services.
Singleton pattern - one instance per process.
"""
import logging
from typing import List, Optional

from ..config import Config
from ..agents.executor import AgentExecutor
from ..feeds import GitHubBitcoinFetcher, NVDFetcher, OptechFetcher
from ..notifications.x_sender import XSender
from ..security.rate_limiter import RateLimiter
from ..storage.base import BaseStorage
from ..storage.user_storage import UserStorage
from ..storage.audit_storage import AuditStorage
from ..storage.entity_audit_storage import EntityAuditStorage
from ..storage.company_storage import CompanyStorage
from ..storage.conversation_storage import ConversationStorage
from ..storage.threat_storage import ThreatStorage
from ..storage.vulnerability_storage import VulnerabilityStorage
from ..storage.bip_storage import BIPStorage
from ..storage.fud_storage import FUDStorage
from ..storage.vote_storage import VoteStorage
from ..storage.signal_storage import SignalStorage, MonitoringStorage
from ..storage.reeval_storage import ReEvalStorage
from ..storage.x_post_storage import XPostStorage
from ..storage.workout_storage import WorkoutStorage
from ..storage.recovery_storage import RecoveryStorage
from ..storage.quest_storage import QuestStorage
from ..storage.guild_storage import GuildStorage
from ..storage.snapshot_storage import SnapshotStorage
from .advisor_service import AdvisorService
from .audit_log import AuditLogBuffer
from .bitcoin_metrics import BitcoinMetricsService
from .document_service import DocumentService
from .file_service import FileService
from .fitness_service import FitnessService
from .guild_service import GuildService
from .pipeline_scheduler import PipelineScheduler
from .prompt_cache import PromptCache
from .reeval import ReEvalService
from .risk_analysis import RiskAnalysisService
from .risk_service import RiskService
from .signal_ingestion import SignalIngestionService
from .skill_service import SkillService
from .users_service import UsersService
from .vote_service import VoteService
from .x_posting import XPostingService

logger = logging.getLogger("studio.services.engine")

# Singleton instance
_engine_service: Optional["EngineService"] = None


class EngineService:
    """
    Composite engine service.

    Manages:
    - All storage connections (PostgreSQL)
    - Advisor, risk and fitness services
    - Background tasks (audit flusher, pipeline scheduler)
    - Graceful shutdown
    """

    def __init__(self):
        """Initialize engine service with all storages"""
        self.postgres_dsn = Config.get_postgres_dsn()

        # Initialize storages
        self.user_storage = UserStorage(self.postgres_dsn)
        self.audit_storage = AuditStorage(self.postgres_dsn)
        self.entity_audit_storage = EntityAuditStorage(self.postgres_dsn)
        self.company_storage = CompanyStorage(self.postgres_dsn)
        self.conversation_storage = ConversationStorage(self.postgres_dsn)
        self.threat_storage = ThreatStorage(self.postgres_dsn)
        self.vulnerability_storage = VulnerabilityStorage(self.postgres_dsn)
        self.bip_storage = BIPStorage(self.postgres_dsn)
        self.fud_storage = FUDStorage(self.postgres_dsn)
        self.vote_storage = VoteStorage(self.postgres_dsn)
        self.signal_storage = SignalStorage(self.postgres_dsn)
        self.monitoring_storage = MonitoringStorage(self.postgres_dsn)
        self.reeval_storage = ReEvalStorage(self.postgres_dsn)
        self.x_post_storage = XPostStorage(self.postgres_dsn)
        self.workout_storage = WorkoutStorage(self.postgres_dsn)
        self.recovery_storage = RecoveryStorage(self.postgres_dsn)
        self.quest_storage = QuestStorage(self.postgres_dsn)
        self.guild_storage = GuildStorage(self.postgres_dsn)
        self.snapshot_storage = SnapshotStorage(self.postgres_dsn)

        # Security
        self.rate_limiter = RateLimiter()
        self.audit_log = AuditLogBuffer(
            self.audit_storage,
            flush_size=Config.AUDIT_FLUSH_SIZE,
            flush_interval=Config.AUDIT_FLUSH_INTERVAL,
        )

        # Prompts and LLM
        self.prompt_cache = PromptCache(str(Config.PROMPTS_DIR))
        self.agent_executor = AgentExecutor(
            api_key=Config.ANTHROPIC_API_KEY,
            default_model=Config.ANTHROPIC_MODEL,
            timeout=Config.LLM_TIMEOUT,
        )

        # X posting
        if Config.X_ACCESS_TOKEN:
            self.x_sender = XSender(Config.X_ACCESS_TOKEN)
        else:
            self.x_sender = None
            logger.info("X sender disabled (no X_ACCESS_TOKEN)")
        self.x_posting = XPostingService(
            self.x_post_storage,
            self.entity_audit_storage,
            sender=self.x_sender,
            enabled=Config.X_POST_ENABLED,
            max_per_hour=Config.X_MAX_POSTS_PER_HOUR,
        )

        # Users
        self.users_service = UsersService(self.user_storage, salt_rounds=Config.PASSWORD_SALT_ROUNDS)

        # Advisor
        self.advisor_service = AdvisorService(
            self.agent_executor, self.prompt_cache, self.company_storage, self.conversation_storage
        )
        self.skill_service = SkillService(self.agent_executor, self.prompt_cache)
        self.document_service = DocumentService(self.agent_executor, self.prompt_cache)
        self.file_service = FileService(str(Config.UPLOAD_DIR))

        # Risk
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
        self.bitcoin_metrics = BitcoinMetricsService()
        self.vote_service = VoteService(
            self.vote_storage, self.threat_storage, self.fud_storage, self.entity_audit_storage
        )
        self.reeval_service = ReEvalService(
            self.reeval_storage,
            self.bip_storage,
            self.threat_storage,
            self.vulnerability_storage,
            self.entity_audit_storage,
            self.agent_executor,
            self.prompt_cache,
            x_posting=self.x_posting,
            batch_size=Config.REEVAL_BATCH_SIZE,
            max_daily=Config.REEVAL_MAX_DAILY,
        )
        self.fetchers = [
            NVDFetcher(api_key=Config.NVD_API_KEY),
            GitHubBitcoinFetcher(token=Config.GITHUB_TOKEN),
            OptechFetcher(),
        ]
        self.signal_ingestion = SignalIngestionService(
            self.fetchers,
            self.signal_storage,
            self.monitoring_storage,
            self.bip_storage,
            self.reeval_service,
        )

        # Initialize scheduler (started in initialize(), stopped in close())
        self.pipeline_scheduler = PipelineScheduler(
            ingestion=self.signal_ingestion,
            reeval=self.reeval_service,
            monitoring_storage=self.monitoring_storage,
            threat_scan_cron=Config.THREAT_SCAN_CRON,
            reeval_cron=Config.REEVAL_CRON,
            poll_interval=Config.PIPELINE_POLL_INTERVAL,
            enabled=Config.PIPELINE_SCHEDULER_ENABLED,
            risk_service=self.risk_service,
            snapshot_cron=Config.SNAPSHOT_CRON,
        )

        # Fitness
        self.fitness_service = FitnessService(
            self.user_storage, self.workout_storage, self.recovery_storage, self.quest_storage
        )
        self.guild_service = GuildService(self.guild_storage, self.user_storage)

        self._initialized = False
        logger.info("EngineService created")

    @property
    def storages(self) -> List[BaseStorage]:
        return [
            self.user_storage,
            self.audit_storage,
            self.entity_audit_storage,
            self.company_storage,
            self.conversation_storage,
            self.threat_storage,
            self.vulnerability_storage,
            self.bip_storage,
            self.fud_storage,
            self.vote_storage,
            self.signal_storage,
            self.monitoring_storage,
            self.reeval_storage,
            self.x_post_storage,
            self.workout_storage,
            self.recovery_storage,
            self.quest_storage,
            self.guild_storage,
            self.snapshot_storage,
        ]

    async def initialize(self):
        """Initialize all storages"""
        if self._initialized:
            logger.info("EngineService already initialized")
            return

        logger.info("Initializing EngineService...")

        for storage in self.storages:
            await storage.init()

        # Start background tasks
        await self.audit_log.start()
        await self.pipeline_scheduler.start()

        self._initialized = True
        logger.info("EngineService initialized successfully")

    async def close(self):
        """Close all connections"""
        logger.info("Closing EngineService...")

        await self.pipeline_scheduler.stop()
        await self.audit_log.stop()

        for fetcher in self.fetchers:
            await fetcher.close()
        await self.reeval_service.close()
        await self.bitcoin_metrics.close()
        if self.x_sender:
            await self.x_sender.close()

        for storage in self.storages:
            await storage.close()

        self._initialized = False
        logger.info("EngineService closed")

    @property
    def is_initialized(self) -> bool:
        """Check if service is initialized"""
        return self._initialized

    @classmethod
    def get_instance(cls) -> "EngineService":
        """Get singleton instance"""
        return get_engine_service()


def get_engine_service() -> EngineService:
    """Get or create engine service singleton"""
    global _engine_service
    if _engine_service is None:
        _engine_service = EngineService()
    return _engine_service


async def init_engine_service() -> EngineService:
    """Initialize and return engine service"""
    service = get_engine_service()
    await service.initialize()
    return service
