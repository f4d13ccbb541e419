"""Services for business logic."""

from app.services.auth_service import AuthService
from app.services.audit_service import AuditService
from app.services.otp_delivery import DeliveryMethod, OtpDispatcher, get_otp_dispatcher
from app.services.refresh_token_store import RefreshTokenStore

__all__ = [
    "AuthService",
    "AuditService",
    "DeliveryMethod",
    "OtpDispatcher",
    "get_otp_dispatcher",
    "RefreshTokenStore",
]
