"""In-process credential store for local development and tests."""

import asyncio
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import datetime
from typing import AsyncIterator, Optional
from uuid import UUID

import structlog

from authcore.exceptions import DuplicateUserError
from authcore.models.user import (
    DEFAULT_ROLE_DESCRIPTIONS,
    RefreshToken,
    RefreshTokenGrant,
    Role,
    User,
    UserAccount,
)

logger = structlog.get_logger(__name__)


@dataclass
class _Tables:
    users: dict[UUID, User] = field(default_factory=dict)
    roles: dict[UUID, Role] = field(default_factory=dict)
    user_roles: set[tuple[UUID, UUID]] = field(default_factory=set)
    refresh_tokens: dict[UUID, RefreshToken] = field(default_factory=dict)

    def copy(self) -> "_Tables":
        # Entities are frozen, so copying the containers is enough.
        return _Tables(
            users=dict(self.users),
            roles=dict(self.roles),
            user_roles=set(self.user_roles),
            refresh_tokens=dict(self.refresh_tokens),
        )


class InMemoryCredentialSession:
    """Credential operations over a staged copy of the tables."""

    def __init__(self, tables: _Tables):
        self._tables = tables

    def _account(self, user: User) -> UserAccount:
        roles = sorted(
            self._tables.roles[role_id].name
            for user_id, role_id in self._tables.user_roles
            if user_id == user.id
        )
        return UserAccount(user=user, roles=roles)

    async def find_user(
        self, email: Optional[str] = None, username: Optional[str] = None
    ) -> Optional[UserAccount]:
        for user in self._tables.users.values():
            if (email is not None and user.email == email) or (
                username is not None and user.username == username
            ):
                return self._account(user)
        return None

    async def insert_user(self, user: User) -> None:
        for existing in self._tables.users.values():
            if existing.email == user.email or existing.username == user.username:
                raise DuplicateUserError()
        self._tables.users[user.id] = user

    async def update_last_login(self, user_id: UUID, at: datetime) -> None:
        user = self._tables.users.get(user_id)
        if user is not None:
            self._tables.users[user_id] = user.record_login(at)

    async def find_role_by_name(self, name: str) -> Optional[Role]:
        for role in self._tables.roles.values():
            if role.name == name:
                return role
        return None

    async def insert_user_role(self, user_id: UUID, role_id: UUID) -> None:
        if user_id not in self._tables.users or role_id not in self._tables.roles:
            raise KeyError("user_roles references a missing user or role")
        self._tables.user_roles.add((user_id, role_id))

    async def insert_refresh_token(self, token: RefreshToken) -> None:
        if token.user_id not in self._tables.users:
            raise KeyError("refresh_tokens references a missing user")
        if any(stored.token == token.token for stored in self._tables.refresh_tokens.values()):
            raise ValueError("refresh_tokens.token must be unique")
        self._tables.refresh_tokens[token.id] = token

    async def find_refresh_token(self, token: str) -> Optional[RefreshTokenGrant]:
        for stored in self._tables.refresh_tokens.values():
            if stored.token == token:
                owner = self._tables.users[stored.user_id]
                return RefreshTokenGrant(token=stored, owner=self._account(owner))
        return None

    async def revoke_refresh_token(self, token: RefreshToken) -> bool:
        stored = self._tables.refresh_tokens.get(token.id)
        if stored is None or stored.is_revoked:
            return False
        self._tables.refresh_tokens[token.id] = stored.model_copy(
            update={
                "revoked_at": token.revoked_at,
                "revoked_by_ip": token.revoked_by_ip,
                "replaced_by_token": token.replaced_by_token,
            }
        )
        return True

    async def find_active_refresh_tokens(
        self, user_id: UUID, now: datetime
    ) -> list[RefreshToken]:
        tokens = [
            token
            for token in self._tables.refresh_tokens.values()
            if token.user_id == user_id and token.is_active(now)
        ]
        return sorted(tokens, key=lambda token: token.created_at)


class InMemoryCredentialStore:
    """Credential store kept in process memory.

    Units of work run one at a time under an ``asyncio.Lock`` against a
    copy of the tables; the copy replaces the live tables only when the
    block exits without raising.
    """

    def __init__(self, seed_roles: bool = True):
        self._tables = _Tables()
        self._lock = asyncio.Lock()
        if seed_roles:
            for name, description in DEFAULT_ROLE_DESCRIPTIONS.items():
                role = Role.create(name, description)
                self._tables.roles[role.id] = role

    @asynccontextmanager
    async def unit_of_work(self) -> AsyncIterator[InMemoryCredentialSession]:
        async with self._lock:
            staged = self._tables.copy()
            yield InMemoryCredentialSession(staged)
            self._tables = staged
