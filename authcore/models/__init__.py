"""Models package exports."""

from authcore.models.auth import (
    AccessTokenPrincipal,
    AuthResponse,
    LoginRequest,
    RefreshRequest,
    RegisterRequest,
)
from authcore.models.user import (
    RefreshToken,
    RefreshTokenGrant,
    Role,
    RoleName,
    User,
    UserAccount,
    UserRole,
)

__all__ = [
    "AccessTokenPrincipal",
    "AuthResponse",
    "LoginRequest",
    "RefreshRequest",
    "RefreshToken",
    "RefreshTokenGrant",
    "RegisterRequest",
    "Role",
    "RoleName",
    "User",
    "UserAccount",
    "UserRole",
]
