"""Services package exports."""

from authcore.services.auth_service import AuthService
from authcore.services.logging_service import configure_logging, get_logger
from authcore.services.password_hasher import PasswordHasher
from authcore.services.refresh_token_manager import RefreshTokenManager
from authcore.services.token_signer import TokenSigner

__all__ = [
    "AuthService",
    "PasswordHasher",
    "RefreshTokenManager",
    "TokenSigner",
    "configure_logging",
    "get_logger",
]
