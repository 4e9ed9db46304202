"""
Studio Storage Layer

PostgreSQL storage implementations for Studio entities.
"""
from .base import BaseStorage, DuplicateError, StorageUnavailable
from .user_storage import UserStorage
from .audit_storage import AuditStorage
from .entity_audit_storage import EntityAuditStorage
from .company_storage import CompanyStorage
from .conversation_storage import ConversationStorage
from .threat_storage import ThreatStorage
from .vulnerability_storage import VulnerabilityStorage
from .bip_storage import BIPStorage
from .fud_storage import FUDStorage
from .vote_storage import VoteStorage
from .signal_storage import SignalStorage, MonitoringStorage
from .reeval_storage import ReEvalStorage
from .x_post_storage import XPostStorage
from .workout_storage import WorkoutStorage
from .recovery_storage import RecoveryStorage
from .quest_storage import QuestStorage
from .guild_storage import GuildStorage
from .snapshot_storage import SnapshotStorage

__all__ = [
    'BaseStorage',
    'DuplicateError',
    'StorageUnavailable',
    'UserStorage',
    'AuditStorage',
    'EntityAuditStorage',
    'CompanyStorage',
    'ConversationStorage',
    'ThreatStorage',
    'VulnerabilityStorage',
    'BIPStorage',
    'FUDStorage',
    'VoteStorage',
    'SignalStorage',
    'MonitoringStorage',
    'ReEvalStorage',
    'XPostStorage',
    'WorkoutStorage',
    'RecoveryStorage',
    'QuestStorage',
    'GuildStorage',
    'SnapshotStorage',
]
