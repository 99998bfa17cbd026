"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, near-zero logic). Stores and the
session manager do the work; these classes own domain shape.

Layer rule: no imports from api/, web/, or core/.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class Role(str, Enum):
    """The three roles of the learning platform.

    Values are the wire/DB representation and are compared case-sensitively.
    """

    ADMIN = "ADMIN"
    GURU = "GURU"  # teacher
    SISWA = "SISWA"  # student


@dataclass
class User:
    """A record in the credential store.

    password_hash is a bcrypt hash and must never leave the auth package --
    handler code receives an AuthenticatedPrincipal instead.
    """

    username: str
    password_hash: str
    role: Role
    full_name: str | None = None
    id: int | None = None
    created_at: str | None = None


@dataclass
class Session:
    """A row in the session store.

    token_hash is HMAC-SHA256(SECRET_KEY, raw_token). The raw token only ever
    exists in the client's cookie and in the create_session() return value.
    expires_at is absolute from creation (no sliding window).
    """

    token_hash: str
    user_id: int
    created_at: str
    expires_at: str
    id: int | None = None


@dataclass(frozen=True)
class AuthenticatedPrincipal:
    """The projection of a User that handler code may trust for authorization.

    Deliberately carries no password hash and no session metadata.
    """

    id: int
    username: str
    full_name: str | None
    role: Role

    @classmethod
    def from_user(cls, user: User) -> AuthenticatedPrincipal:
        return cls(id=user.id, username=user.username, full_name=user.full_name, role=user.role)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "username": self.username,
            "full_name": self.full_name,
            "role": self.role.value,
        }
