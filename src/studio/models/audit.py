"""
Audit Models

Two audit trails:
- AuditEntry: security/compliance events buffered and flushed in bulk
- EntityAuditEntry: per-record change history for risk content
"""
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional
from uuid import UUID, uuid4


class AuditAction(str, Enum):
    """Actions recorded in the audit_logs table"""
    # Authentication
    AUTH_LOGIN = "auth.login"
    AUTH_LOGOUT = "auth.logout"
    AUTH_LOGIN_FAILED = "auth.login_failed"
    AUTH_REGISTER = "auth.register"
    AUTH_TOKEN_REFRESH = "auth.token_refresh"
    # Data access
    DATA_VIEW = "data.view"
    DATA_CREATE = "data.create"
    DATA_UPDATE = "data.update"
    DATA_DELETE = "data.delete"
    DATA_EXPORT = "data.export"
    # Files
    FILE_UPLOAD = "file.upload"
    FILE_DOWNLOAD = "file.download"
    FILE_DELETE = "file.delete"
    # AI
    AI_CHAT = "ai.chat"
    AI_INSIGHT_GENERATED = "ai.insight_generated"
    AI_DOCUMENT_GENERATED = "ai.document_generated"
    AI_SKILL_RUN = "ai.skill_run"
    # Admin
    ADMIN_SETTINGS_CHANGE = "admin.settings_change"
    ADMIN_USER_MODIFY = "admin.user_modify"
    # Security
    SECURITY_RATE_LIMIT = "security.rate_limit"
    SECURITY_UNAUTHORIZED = "security.unauthorized"
    SECURITY_SUSPICIOUS = "security.suspicious_activity"
    # Compliance
    COMPLIANCE_DATA_EXPORT = "compliance.data_export"
    COMPLIANCE_DATA_DELETION = "compliance.data_deletion"
    COMPLIANCE_CONSENT_UPDATE = "compliance.consent_update"


@dataclass
class AuditEntry:
    """Single row in audit_logs"""
    action: AuditAction
    user_id: Optional[UUID] = None
    resource: Optional[str] = None
    resource_id: Optional[str] = None
    details: dict = field(default_factory=dict)
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    success: bool = True
    error_message: Optional[str] = None
    data_category: Optional[str] = None          # e.g. "financial", "personal"
    id: UUID = field(default_factory=uuid4)
    created_at: datetime = field(default_factory=datetime.utcnow)

    def to_dict(self) -> dict:
        return {
            "id": str(self.id),
            "user_id": str(self.user_id) if self.user_id else None,
            "action": self.action.value,
            "resource": self.resource,
            "resource_id": self.resource_id,
            "details": self.details,
            "ip_address": self.ip_address,
            "user_agent": self.user_agent,
            "success": self.success,
            "error_message": self.error_message,
            "data_category": self.data_category,
            "created_at": self.created_at.isoformat(),
        }


@dataclass
class EntityAuditEntry:
    """Change history row in audit_log (risk content)"""
    entity_type: str                # threat, vulnerability, bip, fud
    entity_id: str
    action: str                     # create, update, delete, vote_publish, auto_reeval, posted...
    user_id: str                    # user id or a system actor like "system:pipeline"
    user_name: str = ""
    diff: Optional[dict] = None
    id: UUID = field(default_factory=uuid4)
    created_at: datetime = field(default_factory=datetime.utcnow)

    def to_dict(self) -> dict:
        return {
            "id": str(self.id),
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "action": self.action,
            "user_id": self.user_id,
            "user_name": self.user_name,
            "diff": self.diff,
            "created_at": self.created_at.isoformat(),
        }
