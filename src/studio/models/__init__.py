"""
Studio Data Models

Domain models for the advisor, risk and fitness apps.
"""
from .user import User
from .audit import AuditAction, AuditEntry, EntityAuditEntry
from .executive import Executive, ExecutiveRole, EXECUTIVES, get_executive
from .company import Company
from .conversation import Conversation, ConversationMessage, MessageRole
from .threat import (
    Threat,
    Vulnerability,
    FairEstimates,
    RiskRating,
    WorkflowStatus,
    rating_for_score,
)
from .bip import BIPEvaluation, BIPRecommendation, BIPStatus
from .fud import FUDAnalysis, FUDCategory, FUDStatus
from .signal import ExternalSignal, MonitoringRun, ReEvalItem, ReEvalTrigger, SignalSeverity, SignalSource
from .vote import Vote, VoteSummary, VoteTargetType, VOTE_THRESHOLD
from .x_post import XPost, XPostStatus
from .workout import Workout
from .recovery import RecoveryLevel, RecoveryRecommendation, RecoveryScore
from .quest import Quest, DailyQuestAssignment
from .guild import Guild, GuildMember, GuildRole, LeaderboardEntry
from .snapshot import RiskSnapshot

__all__ = [
    'User',
    'AuditAction',
    'AuditEntry',
    'EntityAuditEntry',
    'Executive',
    'ExecutiveRole',
    'EXECUTIVES',
    'get_executive',
    'Company',
    'Conversation',
    'ConversationMessage',
    'MessageRole',
    'Threat',
    'Vulnerability',
    'FairEstimates',
    'RiskRating',
    'WorkflowStatus',
    'rating_for_score',
    'BIPEvaluation',
    'BIPRecommendation',
    'BIPStatus',
    'FUDAnalysis',
    'FUDCategory',
    'FUDStatus',
    'ExternalSignal',
    'MonitoringRun',
    'ReEvalItem',
    'ReEvalTrigger',
    'SignalSeverity',
    'SignalSource',
    'Vote',
    'VoteSummary',
    'VoteTargetType',
    'VOTE_THRESHOLD',
    'XPost',
    'XPostStatus',
    'Workout',
    'RecoveryLevel',
    'RecoveryRecommendation',
    'RecoveryScore',
    'Quest',
    'DailyQuestAssignment',
    'Guild',
    'GuildMember',
    'GuildRole',
    'LeaderboardEntry',
    'RiskSnapshot',
]
