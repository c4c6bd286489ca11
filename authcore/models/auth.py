"""Auth request and response models with validation."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field, field_validator


USERNAME_MIN_LENGTH = 3


class RegisterRequest(BaseModel):
    """New account registration.

    Attributes:
        email: Unique email address
        username: Unique username (3-100 chars)
        password: Plain-text password
        first_name: Given name
        last_name: Family name
    """

    email: str = Field(..., min_length=3, max_length=255)
    username: str = Field(..., min_length=USERNAME_MIN_LENGTH, max_length=100)
    password: str = Field(..., min_length=1)
    first_name: str = Field(default="", max_length=100)
    last_name: str = Field(default="", max_length=100)

    @field_validator("email")
    @classmethod
    def email_has_at_sign(cls, v: str) -> str:
        """Reject values that cannot be an email address."""
        stripped = v.strip()
        if "@" not in stripped:
            raise ValueError("Email must contain '@'")
        return stripped

    @field_validator("username")
    @classmethod
    def username_not_blank(cls, v: str) -> str:
        stripped = v.strip()
        if not stripped:
            raise ValueError("Username cannot be empty or whitespace only")
        # Length limits apply to the stored value, not the padded input.
        if len(stripped) < USERNAME_MIN_LENGTH:
            raise ValueError(f"Username must be at least {USERNAME_MIN_LENGTH} characters")
        return stripped


class LoginRequest(BaseModel):
    """Login credentials for authentication.

    Surrounding whitespace is stripped from the email, as at registration.
    """

    email: str = Field(..., min_length=1, max_length=255)
    password: str

    @field_validator("email")
    @classmethod
    def email_stripped(cls, v: str) -> str:
        return v.strip()


class RefreshRequest(BaseModel):
    """Request to exchange a refresh token for a new token pair.

    Attributes:
        refresh_token: The refresh token to exchange
    """

    refresh_token: str = Field(..., min_length=1)


class AuthResponse(BaseModel):
    """Successful authentication response with token pair.

    Attributes:
        user_id: Authenticated user's id
        username: Authenticated user's username
        email: Authenticated user's email
        access_token: Short-lived JWT for API access
        refresh_token: Long-lived opaque token for obtaining new tokens
        roles: Role names assigned to the user
        token_type: Always "bearer"
        expires_in: Access token lifetime in seconds
    """

    user_id: UUID
    username: str
    email: str
    access_token: str
    refresh_token: str
    roles: list[str]
    token_type: str = "bearer"
    expires_in: int = Field(ge=1, description="Access token lifetime in seconds")


class AccessTokenPrincipal(BaseModel):
    """Identity recovered from a verified access token."""

    user_id: str
    email: str
    username: str
    client_id: str
    token_id: str
    roles: list[str]
    issued_at: datetime
    expires_at: datetime
