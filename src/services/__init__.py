"""Services package exports."""

from src.services.activation_service import ActivationService
from src.services.auth_service import AuthService
from src.services.email_service import EmailService
from src.services.identity_service import IdentityService
from src.services.logging_service import configure_logging, get_logger
from src.services.session_service import SessionService
from src.services.token_service import TokenSigner

__all__ = [
    "ActivationService",
    "AuthService",
    "EmailService",
    "IdentityService",
    "SessionService",
    "TokenSigner",
    "configure_logging",
    "get_logger",
]
