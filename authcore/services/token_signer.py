"""JWT access token issuance and verification."""

import base64
from datetime import datetime, timedelta, timezone
from typing import Iterable, Optional
from uuid import UUID, uuid4

import jwt
import structlog

from authcore.clock import Clock, RandomSource, secure_random_bytes, utc_now
from authcore.config import Settings
from authcore.exceptions import ConfigurationError, InvalidTokenError
from authcore.models.auth import AccessTokenPrincipal

logger = structlog.get_logger(__name__)

# Constants
JWT_ALGORITHM = "HS256"
ACCESS_TOKEN_EXPIRE_MINUTES = 15
REFRESH_SECRET_BYTES = 64
# Duplicate of the subject read by downstream services for log correlation.
CLIENT_ID_CLAIM = "clientId"

_REQUIRED_CLAIMS = ["sub", "email", "username", "jti", "iss", "aud", "iat", "exp"]


class TokenSigner:
    """Signs and verifies short-lived HS256 access tokens.

    Lifetime checks run against the injected clock with zero leeway: a
    token is accepted only while ``iat <= now < exp``.
    """

    def __init__(
        self,
        secret_key: str,
        issuer: str,
        audience: str,
        access_token_expire_minutes: int = ACCESS_TOKEN_EXPIRE_MINUTES,
        clock: Clock = utc_now,
        random_source: RandomSource = secure_random_bytes,
    ):
        if not secret_key:
            raise ConfigurationError("JWT secret key not configured", setting="jwt_secret_key")
        self._secret_key = secret_key
        self.issuer = issuer
        self.audience = audience
        self.access_token_expire_minutes = access_token_expire_minutes
        self._clock = clock
        self._random_source = random_source

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        clock: Clock = utc_now,
        random_source: RandomSource = secure_random_bytes,
    ) -> "TokenSigner":
        return cls(
            secret_key=settings.jwt_secret_key,
            issuer=settings.jwt_issuer,
            audience=settings.jwt_audience,
            access_token_expire_minutes=settings.access_token_expire_minutes,
            clock=clock,
            random_source=random_source,
        )

    @property
    def expires_in_seconds(self) -> int:
        return self.access_token_expire_minutes * 60

    def issue(
        self,
        user_id: UUID | str,
        email: str,
        username: str,
        roles: Iterable[str],
    ) -> str:
        """Create a signed JWT access token.

        Args:
            user_id: User id (placed in 'sub' and duplicated in 'clientId')
            email: User email claim
            username: Username claim
            roles: Role names, one 'roles' entry each

        Returns:
            Encoded JWT string
        """
        now = self._clock()
        subject = str(user_id)
        payload = {
            "sub": subject,
            "email": email,
            "jti": str(uuid4()),
            "username": username,
            CLIENT_ID_CLAIM: subject,
            "roles": list(roles),
            "iss": self.issuer,
            "aud": self.audience,
            "iat": now,
            "nbf": now,
            "exp": now + timedelta(minutes=self.access_token_expire_minutes),
        }
        token = jwt.encode(payload, self._secret_key, algorithm=JWT_ALGORITHM)
        logger.debug(
            "access_token_issued",
            user_id=subject,
            token_id=payload["jti"],
            expires_minutes=self.access_token_expire_minutes,
        )
        return token

    def verify(self, token: str) -> AccessTokenPrincipal:
        """Decode and validate a JWT access token.

        Args:
            token: Encoded JWT string

        Returns:
            Principal with the subject, email, username, and roles

        Raises:
            InvalidTokenError: On bad signature, issuer, audience, or lifetime
        """
        try:
            payload = jwt.decode(
                token,
                self._secret_key,
                algorithms=[JWT_ALGORITHM],
                audience=self.audience,
                issuer=self.issuer,
                options={
                    "require": _REQUIRED_CLAIMS,
                    "verify_exp": False,
                    "verify_iat": False,
                    "verify_nbf": False,
                },
            )
        except jwt.InvalidSignatureError as e:
            raise self._rejected("invalid_signature") from e
        except jwt.InvalidIssuerError as e:
            raise self._rejected("invalid_issuer") from e
        except jwt.InvalidAudienceError as e:
            raise self._rejected("invalid_audience") from e
        except jwt.InvalidTokenError as e:
            raise self._rejected("malformed") from e

        try:
            issued_at = _timestamp(payload["iat"])
            not_before = _timestamp(payload.get("nbf", payload["iat"]))
            expires_at = _timestamp(payload["exp"])
        except (TypeError, ValueError, OverflowError) as e:
            raise self._rejected("malformed") from e

        now = self._clock()
        if now < issued_at or now < not_before:
            raise self._rejected("not_yet_valid")
        if now >= expires_at:
            raise self._rejected("expired")

        return AccessTokenPrincipal(
            user_id=payload["sub"],
            email=payload["email"],
            username=payload["username"],
            client_id=payload.get(CLIENT_ID_CLAIM, payload["sub"]),
            token_id=payload["jti"],
            roles=_roles(payload.get("roles")),
            issued_at=issued_at,
            expires_at=expires_at,
        )

    def generate_refresh_secret(self) -> str:
        """Return an opaque refresh token value (64 random bytes, base64)."""
        return base64.b64encode(self._random_source(REFRESH_SECRET_BYTES)).decode("ascii")

    def _rejected(self, reason: str) -> InvalidTokenError:
        logger.warning("access_token_rejected", reason=reason)
        return InvalidTokenError(reason)


def _timestamp(value) -> datetime:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise TypeError("Timestamp claim must be numeric")
    return datetime.fromtimestamp(value, tz=timezone.utc)


def _roles(value: Optional[object]) -> list[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    return [str(role) for role in value]
