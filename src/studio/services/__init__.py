"""
Studio Services

Business logic services for the advisor, risk and fitness apps.
"""
from .engine_service import EngineService
from .errors import ConflictError, ForbiddenError, NotFoundError
from .users_service import UsersService
from .prompt_cache import PromptCache
from .audit_log import AuditLogBuffer
from .advisor_service import AdvisorService
from .skill_service import SkillService
from .document_service import DocumentService
from .file_service import FileService
from .risk_service import RiskService
from .risk_analysis import RiskAnalysisService
from .bitcoin_metrics import BitcoinMetricsService
from .vote_service import VoteService
from .x_posting import XPostingService
from .signal_ingestion import SignalIngestionService
from .reeval import ReEvalService
from .pipeline_scheduler import PipelineScheduler
from .fitness_service import FitnessService
from .guild_service import GuildService

__all__ = [
    'EngineService',
    'ConflictError',
    'ForbiddenError',
    'NotFoundError',
    'UsersService',
    'PromptCache',
    'AuditLogBuffer',
    'AdvisorService',
    'SkillService',
    'DocumentService',
    'FileService',
    'RiskService',
    'RiskAnalysisService',
    'BitcoinMetricsService',
    'VoteService',
    'XPostingService',
    'SignalIngestionService',
    'ReEvalService',
    'PipelineScheduler',
    'FitnessService',
    'GuildService',
]
