"""Storage contract for users, roles, and refresh tokens."""

from datetime import datetime
from typing import AsyncContextManager, Optional, Protocol
from uuid import UUID

from authcore.models.user import RefreshToken, RefreshTokenGrant, Role, User, UserAccount


class CredentialSession(Protocol):
    """Operations available inside one unit of work.

    Every read returns fully populated models; nothing is loaded lazily.
    """

    async def find_user(
        self, email: Optional[str] = None, username: Optional[str] = None
    ) -> Optional[UserAccount]:
        """Return the account whose email or username matches, if any."""
        ...

    async def insert_user(self, user: User) -> None: ...

    async def update_last_login(self, user_id: UUID, at: datetime) -> None: ...

    async def find_role_by_name(self, name: str) -> Optional[Role]: ...

    async def insert_user_role(self, user_id: UUID, role_id: UUID) -> None: ...

    async def insert_refresh_token(self, token: RefreshToken) -> None: ...

    async def find_refresh_token(self, token: str) -> Optional[RefreshTokenGrant]:
        """Look up a refresh token by value with its owner and owner's roles."""
        ...

    async def revoke_refresh_token(self, token: RefreshToken) -> bool:
        """Persist the revocation fields of ``token``.

        The write only applies while the stored row is still unrevoked.

        Returns:
            True if this call revoked the token, False if it was already revoked
        """
        ...

    async def find_active_refresh_tokens(
        self, user_id: UUID, now: datetime
    ) -> list[RefreshToken]:
        """Return the user's tokens that are neither revoked nor expired at ``now``."""
        ...


class CredentialStore(Protocol):
    """Factory for units of work.

    ``unit_of_work()`` yields a :class:`CredentialSession`. Changes are
    committed atomically when the block exits normally and discarded when
    it raises.
    """

    def unit_of_work(self) -> AsyncContextManager[CredentialSession]: ...
