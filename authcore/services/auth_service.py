"""Authentication use cases: register, login, refresh, logout."""

from typing import Optional
from uuid import UUID

import structlog

from authcore.clock import Clock, utc_now
from authcore.config import Settings
from authcore.exceptions import ConfigurationError, DuplicateUserError, InvalidCredentialsError
from authcore.models.auth import AccessTokenPrincipal, AuthResponse
from authcore.models.user import RefreshToken, RoleName, User, UserAccount
from authcore.services.password_hasher import PasswordHasher
from authcore.services.refresh_token_manager import RefreshTokenManager
from authcore.services.token_signer import TokenSigner
from authcore.stores.base import CredentialStore

logger = structlog.get_logger(__name__)


class AuthService:
    """Coordinates the credential use cases.

    These are the only operations the HTTP layer calls. Each one runs in a
    single unit of work on the credential store and returns an
    :class:`AuthResponse` or raises a typed :class:`AuthError`.
    """

    def __init__(
        self,
        store: CredentialStore,
        signer: TokenSigner,
        hasher: Optional[PasswordHasher] = None,
        refresh_tokens: Optional[RefreshTokenManager] = None,
        clock: Clock = utc_now,
    ):
        self.store = store
        self.signer = signer
        self.hasher = hasher or PasswordHasher()
        self.refresh_tokens = refresh_tokens or RefreshTokenManager(store, signer, clock=clock)
        self._clock = clock

    @classmethod
    def from_settings(
        cls, settings: Settings, store: CredentialStore, clock: Clock = utc_now
    ) -> "AuthService":
        """Build the service graph from application settings."""
        signer = TokenSigner.from_settings(settings, clock=clock)
        refresh_tokens = RefreshTokenManager(
            store,
            signer,
            clock=clock,
            refresh_token_expire_days=settings.refresh_token_expire_days,
        )
        return cls(store, signer, refresh_tokens=refresh_tokens, clock=clock)

    def _session_result(self, account: UserAccount, refresh_token: RefreshToken) -> AuthResponse:
        user = account.user
        return AuthResponse(
            user_id=user.id,
            username=user.username,
            email=user.email,
            access_token=self.signer.issue(user.id, user.email, user.username, account.roles),
            refresh_token=refresh_token.token,
            roles=list(account.roles),
            token_type="bearer",
            expires_in=self.signer.expires_in_seconds,
        )

    async def register(
        self,
        email: str,
        username: str,
        password: str,
        first_name: str = "",
        last_name: str = "",
        client_ip: str = "",
    ) -> AuthResponse:
        """Create an account with the default role and sign it in.

        Args:
            email: Unique email address
            username: Unique username
            password: Plain-text password (will be hashed)
            first_name: Given name
            last_name: Family name
            client_ip: Address of the caller

        Returns:
            AuthResponse with access and refresh tokens and roles ["User"]

        Raises:
            DuplicateUserError: If the email or username is taken
            ConfigurationError: If the "User" role was never seeded
            ValueError: If email, username, or the password hash is empty
        """
        async with self.store.unit_of_work() as session:
            existing = await session.find_user(email=email, username=username)
            if existing is not None:
                logger.info("registration_rejected_duplicate", username=username)
                raise DuplicateUserError()

            user = User.create(
                email=email,
                username=username,
                password_hash=self.hasher.hash(password),
                first_name=first_name,
                last_name=last_name,
                now=self._clock(),
            )
            await session.insert_user(user)

            default_role = await session.find_role_by_name(RoleName.USER)
            if default_role is None:
                logger.error("default_role_missing", role=RoleName.USER)
                raise ConfigurationError(f"Default role '{RoleName.USER}' not found")
            await session.insert_user_role(user.id, default_role.id)

            refresh_token = await self.refresh_tokens.issue(user.id, client_ip, session=session)

        logger.info("user_registered", user_id=str(user.id), username=user.username)
        return self._session_result(UserAccount(user=user, roles=[default_role.name]), refresh_token)

    async def login(self, email: str, password: str, client_ip: str = "") -> AuthResponse:
        """Authenticate with email and password.

        Raises:
            InvalidCredentialsError: If the email is unknown, the password is
                wrong, or the account is deactivated
        """
        async with self.store.unit_of_work() as session:
            account = await session.find_user(email=email)

            if account is None or not self.hasher.verify(password, account.user.password_hash):
                logger.warning("login_failed", reason="bad_credentials")
                raise InvalidCredentialsError()

            if not account.user.is_active:
                logger.warning("login_failed", reason="inactive", user_id=str(account.user.id))
                raise InvalidCredentialsError()

            now = self._clock()
            await session.update_last_login(account.user.id, now)
            account = account.model_copy(update={"user": account.user.record_login(now)})

            refresh_token = await self.refresh_tokens.issue(account.user.id, client_ip, session=session)

        logger.info("user_logged_in", user_id=str(account.user.id), username=account.user.username)
        return self._session_result(account, refresh_token)

    async def refresh(self, presented_refresh_token: str, client_ip: str = "") -> AuthResponse:
        """Rotate a refresh token and issue a new access token.

        Raises:
            InvalidOrExpiredTokenError: If the refresh token is not active
        """
        async with self.store.unit_of_work() as session:
            account, refresh_token = await self.refresh_tokens.rotate(
                presented_refresh_token, client_ip, session=session
            )

        return self._session_result(account, refresh_token)

    async def logout(self, user_id: UUID, client_ip: str = "") -> None:
        """Revoke all of a user's active refresh tokens. Never fails on an empty set."""
        async with self.store.unit_of_work() as session:
            await self.refresh_tokens.revoke_all_active_for_user(user_id, client_ip, session=session)

        logger.info("user_logged_out", user_id=str(user_id))

    def authenticate(self, access_token: str) -> AccessTokenPrincipal:
        """Verify an access token and return its principal.

        Raises:
            InvalidTokenError: If verification fails
        """
        return self.signer.verify(access_token)
