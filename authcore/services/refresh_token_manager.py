"""Refresh token lifecycle: issue, rotate, revoke."""

from contextlib import asynccontextmanager
from datetime import timedelta
from typing import AsyncIterator, Optional
from uuid import UUID

import structlog

from authcore.clock import Clock, utc_now
from authcore.exceptions import InvalidOrExpiredTokenError
from authcore.models.user import RefreshToken, UserAccount
from authcore.services.token_signer import TokenSigner
from authcore.stores.base import CredentialSession, CredentialStore

logger = structlog.get_logger(__name__)

REFRESH_TOKEN_EXPIRE_DAYS = 7


class RefreshTokenManager:
    """Service for the refresh token state machine.

    A token moves from active to revoked exactly once, or silently becomes
    expired once ``now >= expires_at``. Neither state ever returns to
    active. Rotation revokes the presented token, links it to its successor
    through ``replaced_by_token``, and inserts the successor in the same
    unit of work, so a replayed token always fails the active check.

    Every operation accepts an optional ``session`` so callers can fold it
    into a larger unit of work; without one, the manager opens its own.
    """

    def __init__(
        self,
        store: CredentialStore,
        signer: TokenSigner,
        clock: Clock = utc_now,
        refresh_token_expire_days: int = REFRESH_TOKEN_EXPIRE_DAYS,
    ):
        self._store = store
        self._signer = signer
        self._clock = clock
        self.refresh_token_expire_days = refresh_token_expire_days

    @asynccontextmanager
    async def _scope(
        self, session: Optional[CredentialSession]
    ) -> AsyncIterator[CredentialSession]:
        if session is not None:
            yield session
            return
        async with self._store.unit_of_work() as own_session:
            yield own_session

    async def issue(
        self,
        user_id: UUID,
        client_ip: str = "",
        session: Optional[CredentialSession] = None,
    ) -> RefreshToken:
        """Create and store a new refresh token for a user.

        Args:
            user_id: Owner of the token
            client_ip: Address the token is issued to
            session: Unit of work to join, if any

        Returns:
            The stored RefreshToken
        """
        now = self._clock()
        token = RefreshToken.create(
            user_id=user_id,
            token=self._signer.generate_refresh_secret(),
            expires_at=now + timedelta(days=self.refresh_token_expire_days),
            created_by_ip=client_ip,
            now=now,
        )
        async with self._scope(session) as s:
            await s.insert_refresh_token(token)

        logger.info(
            "refresh_token_issued",
            user_id=str(user_id),
            token_id=str(token.id),
            expires_at=token.expires_at.isoformat(),
        )
        return token

    async def rotate(
        self,
        presented_token: str,
        client_ip: str = "",
        session: Optional[CredentialSession] = None,
    ) -> tuple[UserAccount, RefreshToken]:
        """Exchange an active refresh token for its successor.

        Args:
            presented_token: Raw refresh token value supplied by the client
            client_ip: Address of the caller
            session: Unit of work to join, if any

        Returns:
            Tuple of (owning account, new refresh token)

        Raises:
            InvalidOrExpiredTokenError: If the token is unknown, revoked,
                expired, owned by a deactivated user, or was rotated by a
                concurrent caller first
        """
        async with self._scope(session) as s:
            grant = await s.find_refresh_token(presented_token)
            now = self._clock()

            if grant is None:
                logger.warning("refresh_token_not_found")
                raise InvalidOrExpiredTokenError()

            user_id = str(grant.owner.user.id)
            if grant.token.is_revoked:
                # Reuse of a rotated token: possible replay.
                logger.warning(
                    "refresh_token_reuse_detected",
                    user_id=user_id,
                    token_id=str(grant.token.id),
                )
                raise InvalidOrExpiredTokenError()
            if grant.token.is_expired(now):
                logger.warning("refresh_token_expired", user_id=user_id, token_id=str(grant.token.id))
                raise InvalidOrExpiredTokenError()
            if not grant.owner.user.is_active:
                logger.warning("refresh_token_owner_inactive", user_id=user_id)
                raise InvalidOrExpiredTokenError()

            successor = RefreshToken.create(
                user_id=grant.token.user_id,
                token=self._signer.generate_refresh_secret(),
                expires_at=now + timedelta(days=self.refresh_token_expire_days),
                created_by_ip=client_ip,
                now=now,
            )
            revoked = grant.token.revoke(now, client_ip, replaced_by_token=successor.token)

            if not await s.revoke_refresh_token(revoked):
                logger.warning(
                    "refresh_token_rotation_lost_race",
                    user_id=user_id,
                    token_id=str(grant.token.id),
                )
                raise InvalidOrExpiredTokenError()

            await s.insert_refresh_token(successor)

        logger.info(
            "refresh_token_rotated",
            user_id=user_id,
            revoked_token_id=str(grant.token.id),
            token_id=str(successor.id),
        )
        return grant.owner, successor

    async def revoke_all_active_for_user(
        self,
        user_id: UUID,
        client_ip: str = "",
        session: Optional[CredentialSession] = None,
    ) -> int:
        """Revoke every active refresh token a user holds.

        Tokens already revoked or expired are left untouched, so calling
        this repeatedly is safe.

        Returns:
            Number of tokens revoked by this call
        """
        revoked_count = 0
        async with self._scope(session) as s:
            now = self._clock()
            for token in await s.find_active_refresh_tokens(user_id, now):
                if await s.revoke_refresh_token(token.revoke(now, client_ip)):
                    revoked_count += 1

        logger.info(
            "all_refresh_tokens_revoked",
            user_id=str(user_id),
            revoked_count=revoked_count,
        )
        return revoked_count
