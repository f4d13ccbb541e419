"""Database models."""

from app.models.user import User, UserRole, AccountState
from app.models.refresh_token import RefreshToken
from app.models.audit_log import AuditLog, AuditAction

__all__ = [
    "User",
    "UserRole",
    "AccountState",
    "RefreshToken",
    "AuditLog",
    "AuditAction",
]
