"""asyncpg-backed credential store."""

from contextlib import asynccontextmanager
from datetime import datetime
from typing import AsyncIterator, Optional
from uuid import UUID

import asyncpg
import structlog

from authcore.exceptions import DuplicateUserError
from authcore.models.user import RefreshToken, RefreshTokenGrant, Role, User, UserAccount

logger = structlog.get_logger(__name__)

_USER_COLUMNS = """
    u.id, u.email, u.username, u.password_hash, u.first_name, u.last_name,
    u.is_active, u.created_at, u.last_login_at
"""


def _user_from_row(row) -> User:
    return User(
        id=row["id"],
        email=row["email"],
        username=row["username"],
        password_hash=row["password_hash"],
        first_name=row["first_name"],
        last_name=row["last_name"],
        is_active=row["is_active"],
        created_at=row["created_at"],
        last_login_at=row["last_login_at"],
    )


def _token_from_row(row) -> RefreshToken:
    return RefreshToken(
        id=row["token_id"],
        user_id=row["user_id"],
        token=row["token"],
        expires_at=row["expires_at"],
        created_at=row["token_created_at"],
        created_by_ip=row["created_by_ip"],
        revoked_at=row["revoked_at"],
        revoked_by_ip=row["revoked_by_ip"],
        replaced_by_token=row["replaced_by_token"],
    )


class PostgresCredentialSession:
    """Credential operations bound to one connection and open transaction."""

    def __init__(self, conn: asyncpg.Connection):
        self._conn = conn

    async def _role_names(self, user_id: UUID) -> list[str]:
        rows = await self._conn.fetch(
            """
            SELECT r.name
            FROM user_roles ur
            JOIN roles r ON r.id = ur.role_id
            WHERE ur.user_id = $1
            ORDER BY r.name
            """,
            user_id,
        )
        return [row["name"] for row in rows]

    async def find_user(
        self, email: Optional[str] = None, username: Optional[str] = None
    ) -> Optional[UserAccount]:
        row = await self._conn.fetchrow(
            f"""
            SELECT {_USER_COLUMNS}
            FROM users u
            WHERE u.email = $1 OR u.username = $2
            LIMIT 1
            """,
            email,
            username,
        )
        if row is None:
            return None

        user = _user_from_row(row)
        return UserAccount(user=user, roles=await self._role_names(user.id))

    async def insert_user(self, user: User) -> None:
        """Insert a user row.

        Raises:
            DuplicateUserError: If the email or username unique index is hit
        """
        try:
            await self._conn.execute(
                """
                INSERT INTO users (id, email, username, password_hash, first_name, last_name,
                                   is_active, created_at, last_login_at)
                VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9)
                """,
                user.id,
                user.email,
                user.username,
                user.password_hash,
                user.first_name,
                user.last_name,
                user.is_active,
                user.created_at,
                user.last_login_at,
            )
        except asyncpg.UniqueViolationError as e:
            logger.warning("user_insert_conflict", constraint=getattr(e, "constraint_name", None))
            raise DuplicateUserError() from e

    async def update_last_login(self, user_id: UUID, at: datetime) -> None:
        await self._conn.execute(
            "UPDATE users SET last_login_at = $1 WHERE id = $2",
            at,
            user_id,
        )

    async def find_role_by_name(self, name: str) -> Optional[Role]:
        row = await self._conn.fetchrow(
            "SELECT id, name, description FROM roles WHERE name = $1",
            name,
        )
        if row is None:
            return None
        return Role(id=row["id"], name=row["name"], description=row["description"])

    async def insert_user_role(self, user_id: UUID, role_id: UUID) -> None:
        await self._conn.execute(
            """
            INSERT INTO user_roles (user_id, role_id)
            VALUES ($1, $2)
            ON CONFLICT (user_id, role_id) DO NOTHING
            """,
            user_id,
            role_id,
        )

    async def insert_refresh_token(self, token: RefreshToken) -> None:
        await self._conn.execute(
            """
            INSERT INTO refresh_tokens (id, user_id, token, expires_at, created_at, created_by_ip,
                                        revoked_at, revoked_by_ip, replaced_by_token)
            VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9)
            """,
            token.id,
            token.user_id,
            token.token,
            token.expires_at,
            token.created_at,
            token.created_by_ip,
            token.revoked_at,
            token.revoked_by_ip,
            token.replaced_by_token,
        )

    async def find_refresh_token(self, token: str) -> Optional[RefreshTokenGrant]:
        row = await self._conn.fetchrow(
            f"""
            SELECT rt.id AS token_id, rt.user_id, rt.token, rt.expires_at,
                   rt.created_at AS token_created_at, rt.created_by_ip,
                   rt.revoked_at, rt.revoked_by_ip, rt.replaced_by_token,
                   {_USER_COLUMNS}
            FROM refresh_tokens rt
            JOIN users u ON u.id = rt.user_id
            WHERE rt.token = $1
            """,
            token,
        )
        if row is None:
            return None

        user = _user_from_row(row)
        return RefreshTokenGrant(
            token=_token_from_row(row),
            owner=UserAccount(user=user, roles=await self._role_names(user.id)),
        )

    async def revoke_refresh_token(self, token: RefreshToken) -> bool:
        # Concurrent revokers block on the row lock; the loser re-reads
        # revoked_at and updates nothing.
        result = await self._conn.execute(
            """
            UPDATE refresh_tokens
            SET revoked_at = $1, revoked_by_ip = $2, replaced_by_token = $3
            WHERE id = $4 AND revoked_at IS NULL
            """,
            token.revoked_at,
            token.revoked_by_ip,
            token.replaced_by_token,
            token.id,
        )
        return result == "UPDATE 1"

    async def find_active_refresh_tokens(
        self, user_id: UUID, now: datetime
    ) -> list[RefreshToken]:
        rows = await self._conn.fetch(
            """
            SELECT rt.id AS token_id, rt.user_id, rt.token, rt.expires_at,
                   rt.created_at AS token_created_at, rt.created_by_ip,
                   rt.revoked_at, rt.revoked_by_ip, rt.replaced_by_token
            FROM refresh_tokens rt
            WHERE rt.user_id = $1 AND rt.revoked_at IS NULL AND rt.expires_at > $2
            ORDER BY rt.created_at ASC
            """,
            user_id,
            now,
        )
        return [_token_from_row(row) for row in rows]


class PostgresCredentialStore:
    """Credential store over an asyncpg pool.

    Each unit of work holds one pooled connection inside a transaction.
    """

    def __init__(self, pool: asyncpg.Pool):
        self._pool = pool

    @asynccontextmanager
    async def unit_of_work(self) -> AsyncIterator[PostgresCredentialSession]:
        async with self._pool.acquire() as conn:
            async with conn.transaction():
                yield PostgresCredentialSession(conn)
