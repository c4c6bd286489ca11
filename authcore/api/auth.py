"""Authentication API endpoints.

Routes only shape requests and responses; every decision is made by
AuthService. AuthError subclasses are mapped to HTTP responses by the
exception handler registered in authcore.main.
"""

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Request, status

from authcore.api.dependencies import get_auth_service, get_client_ip, get_current_principal
from authcore.models.auth import (
    AccessTokenPrincipal,
    AuthResponse,
    LoginRequest,
    RefreshRequest,
    RegisterRequest,
)
from authcore.services.auth_service import AuthService

router = APIRouter(prefix="/auth", tags=["Auth"])


@router.post("/register", status_code=status.HTTP_201_CREATED)
async def register(
    request: Request,
    body: RegisterRequest,
    auth_service: AuthService = Depends(get_auth_service),
) -> AuthResponse:
    """Register a new account and return its first token pair.

    Raises:
        DuplicateUserError (409): If the email or username is taken
    """
    return await auth_service.register(
        email=body.email,
        username=body.username,
        password=body.password,
        first_name=body.first_name,
        last_name=body.last_name,
        client_ip=get_client_ip(request),
    )


@router.post("/login")
async def login(
    request: Request,
    body: LoginRequest,
    auth_service: AuthService = Depends(get_auth_service),
) -> AuthResponse:
    """Login with email and password.

    Raises:
        InvalidCredentialsError (401): If the credentials do not match
    """
    return await auth_service.login(
        email=body.email,
        password=body.password,
        client_ip=get_client_ip(request),
    )


@router.post("/refresh")
async def refresh(
    request: Request,
    body: RefreshRequest,
    auth_service: AuthService = Depends(get_auth_service),
) -> AuthResponse:
    """Exchange a refresh token for a new token pair.

    The presented refresh token is revoked; reusing it later fails.

    Raises:
        InvalidOrExpiredTokenError (401): If the refresh token is not active
    """
    return await auth_service.refresh(body.refresh_token, client_ip=get_client_ip(request))


@router.post("/logout")
async def logout(
    request: Request,
    principal: AccessTokenPrincipal = Depends(get_current_principal),
    auth_service: AuthService = Depends(get_auth_service),
) -> dict:
    """Revoke every active refresh token of the authenticated user."""
    try:
        user_id = UUID(principal.user_id)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token payload",
            headers={"WWW-Authenticate": "Bearer"},
        )

    await auth_service.logout(user_id, client_ip=get_client_ip(request))
    return {"message": "Logged out successfully"}


@router.get("/me")
async def get_me(
    principal: AccessTokenPrincipal = Depends(get_current_principal),
) -> AccessTokenPrincipal:
    """Return the identity carried by the caller's access token."""
    return principal
