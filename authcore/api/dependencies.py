"""FastAPI dependencies for authentication."""

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from authcore.exceptions import InvalidTokenError
from authcore.models.auth import AccessTokenPrincipal
from authcore.services.auth_service import AuthService

bearer_scheme = HTTPBearer()


def get_auth_service(request: Request) -> AuthService:
    """Return the AuthService built during application startup."""
    return request.app.state.auth_service


def get_client_ip(request: Request) -> str:
    """Best-effort client address; empty when the transport does not expose one."""
    return request.client.host if request.client else ""


async def get_current_principal(
    credentials: HTTPAuthorizationCredentials = Depends(bearer_scheme),
    auth_service: AuthService = Depends(get_auth_service),
) -> AccessTokenPrincipal:
    """Extract and verify the caller's JWT Bearer access token.

    Args:
        credentials: Bearer token from Authorization header
        auth_service: Service holding the token signer

    Returns:
        Verified principal

    Raises:
        HTTPException 401: If the token is invalid or expired
    """
    try:
        return auth_service.authenticate(credentials.credentials)
    except InvalidTokenError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired access token",
            headers={"WWW-Authenticate": "Bearer"},
        )
