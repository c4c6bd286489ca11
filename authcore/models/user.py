"""User, role, and refresh token domain models.

Entities are immutable. They are built through validating ``create``
factories and change state only through explicit transition methods that
return an updated copy.
"""

from datetime import datetime
from typing import Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict


class RoleName:
    """Fixed role catalog seeded at startup."""

    ADMIN = "Admin"
    USER = "User"


DEFAULT_ROLE_DESCRIPTIONS = {
    RoleName.ADMIN: "Administrator with full access",
    RoleName.USER: "Standard user with basic access",
}


def _require(value: str, field: str) -> None:
    if value is None or not value.strip():
        raise ValueError(f"{field} cannot be empty")


class User(BaseModel):
    """A registered user of the platform."""

    model_config = ConfigDict(frozen=True)

    id: UUID
    email: str
    username: str
    password_hash: str
    first_name: str = ""
    last_name: str = ""
    is_active: bool = True
    created_at: datetime
    last_login_at: Optional[datetime] = None

    @classmethod
    def create(
        cls,
        email: str,
        username: str,
        password_hash: str,
        first_name: str,
        last_name: str,
        now: datetime,
    ) -> "User":
        """Create a new active user.

        Raises:
            ValueError: If email, username, or password_hash is empty
        """
        _require(email, "Email")
        _require(username, "Username")
        _require(password_hash, "Password hash")
        return cls(
            id=uuid4(),
            email=email,
            username=username,
            password_hash=password_hash,
            first_name=first_name or "",
            last_name=last_name or "",
            is_active=True,
            created_at=now,
        )

    def record_login(self, at: datetime) -> "User":
        return self.model_copy(update={"last_login_at": at})

    def deactivate(self) -> "User":
        return self.model_copy(update={"is_active": False})

    def activate(self) -> "User":
        return self.model_copy(update={"is_active": True})


class Role(BaseModel):
    """A named role from the fixed catalog."""

    model_config = ConfigDict(frozen=True)

    id: UUID
    name: str
    description: str = ""

    @classmethod
    def create(cls, name: str, description: str) -> "Role":
        _require(name, "Role name")
        return cls(id=uuid4(), name=name, description=description)


class UserRole(BaseModel):
    """Link between a user and a role, keyed on (user_id, role_id)."""

    model_config = ConfigDict(frozen=True)

    user_id: UUID
    role_id: UUID


class RefreshToken(BaseModel):
    """A long-lived opaque refresh token.

    Revocation is terminal: once ``revoked_at`` is set the token never
    becomes active again. ``replaced_by_token`` points forward to the token
    issued when this one was rotated, forming an append-only chain.
    """

    model_config = ConfigDict(frozen=True)

    id: UUID
    user_id: UUID
    token: str
    expires_at: datetime
    created_at: datetime
    created_by_ip: str = ""
    revoked_at: Optional[datetime] = None
    revoked_by_ip: Optional[str] = None
    replaced_by_token: Optional[str] = None

    @classmethod
    def create(
        cls,
        user_id: UUID,
        token: str,
        expires_at: datetime,
        created_by_ip: str,
        now: datetime,
    ) -> "RefreshToken":
        _require(token, "Token")
        return cls(
            id=uuid4(),
            user_id=user_id,
            token=token,
            expires_at=expires_at,
            created_at=now,
            created_by_ip=created_by_ip or "",
        )

    @property
    def is_revoked(self) -> bool:
        return self.revoked_at is not None

    def is_expired(self, now: datetime) -> bool:
        # A token whose expiry equals now is already expired.
        return now >= self.expires_at

    def is_active(self, now: datetime) -> bool:
        return not self.is_revoked and not self.is_expired(now)

    def revoke(
        self,
        at: datetime,
        revoked_by_ip: str = "",
        replaced_by_token: Optional[str] = None,
    ) -> "RefreshToken":
        """Return a revoked copy of this token.

        Args:
            at: Revocation instant
            revoked_by_ip: Address of the caller triggering revocation
            replaced_by_token: Value of the successor token when rotating

        Raises:
            ValueError: If the token is already revoked
        """
        if self.is_revoked:
            raise ValueError("Refresh token is already revoked")
        return self.model_copy(
            update={
                "revoked_at": at,
                "revoked_by_ip": revoked_by_ip or "",
                "replaced_by_token": replaced_by_token,
            }
        )


class UserAccount(BaseModel):
    """A user together with the names of its assigned roles."""

    model_config = ConfigDict(frozen=True)

    user: User
    roles: list[str] = []


class RefreshTokenGrant(BaseModel):
    """A stored refresh token with its owning account loaded up front."""

    model_config = ConfigDict(frozen=True)

    token: RefreshToken
    owner: UserAccount
