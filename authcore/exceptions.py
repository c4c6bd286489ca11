"""Error taxonomy for the credential service.

Exception Hierarchy:
    AuthError (base)
    ├── DuplicateUserError          caller-fixable, 409
    ├── InvalidCredentialsError     caller-fixable, 401
    ├── InvalidOrExpiredTokenError  caller-fixable, 401 (refresh tokens)
    ├── InvalidTokenError           caller-fixable, 401 (access tokens)
    └── ConfigurationError          deployment error, 500

Every error carries a stable ``code`` so the HTTP layer can map it to a
response without string matching. Messages are safe to show to clients;
internal detail (e.g. why a JWT failed validation) lives on attributes
that are only ever logged.
"""

from typing import Optional


class AuthError(Exception):
    """Base exception for all credential-service errors.

    Attributes:
        message: Human-readable, client-safe description
        code: Stable machine-readable error kind
        status_code: HTTP status the boundary layer should use
    """

    code: str = "auth_error"
    status_code: int = 400

    def __init__(self, message: str):
        self.message = message
        super().__init__(self.message)

    @property
    def is_client_error(self) -> bool:
        """True when the caller can fix the request and retry."""
        return self.status_code < 500

    def to_dict(self) -> dict:
        """Convert to a dictionary for API responses."""
        return {"error": self.code, "detail": self.message}


class DuplicateUserError(AuthError):
    """Raised when registering an email or username that already exists."""

    code = "duplicate_user"
    status_code = 409

    def __init__(self, message: str = "User with this email or username already exists"):
        super().__init__(message)


class InvalidCredentialsError(AuthError):
    """Raised when login fails.

    Unknown email and wrong password produce the same error so callers
    cannot enumerate accounts.
    """

    code = "invalid_credentials"
    status_code = 401

    def __init__(self, message: str = "Invalid email or password"):
        super().__init__(message)


class InvalidOrExpiredTokenError(AuthError):
    """Raised when a presented refresh token is unknown, revoked, or expired."""

    code = "invalid_refresh_token"
    status_code = 401

    def __init__(self, message: str = "Invalid or expired refresh token"):
        super().__init__(message)


class InvalidTokenError(AuthError):
    """Raised when an access token fails verification.

    The message is always generic. ``reason`` names the failed check
    (``expired``, ``invalid_signature``, ...) for logs only; the
    underlying PyJWT exception is chained as ``__cause__``.
    """

    code = "invalid_token"
    status_code = 401

    def __init__(self, reason: str, message: str = "Invalid token"):
        self.reason = reason
        super().__init__(message)


class ConfigurationError(AuthError):
    """Raised when a deployment precondition is missing.

    Examples: no JWT signing secret, or the default ``User`` role is not
    seeded. Never shown to clients in detail.
    """

    code = "configuration_error"
    status_code = 500

    def __init__(self, message: str, setting: Optional[str] = None):
        self.setting = setting
        super().__init__(message)

    def to_dict(self) -> dict:
        return {"error": "internal_error", "detail": "Internal server error"}
