"""
auth/guards.py -- RoleGuard: the authoritative, per-handler authorization stage.

Where auth/edge.py only asks "is there a cookie?", RoleGuard resolves the
token through SessionManager.validate_session() and compares the principal's
role with what the endpoint declares. It returns a tagged GuardResult instead
of raising, so it can be exercised without an HTTP stack; the FastAPI
dependencies in auth/dependencies.py and the page router in web/routes.py
translate results into responses.

Status policy (uniform across every endpoint):
  UNAUTHENTICATED -> 401  no token, unknown, revoked, expired, orphaned
  FORBIDDEN       -> 403  valid session, role not in the endpoint's set
  ALLOWED               principal handed to business logic

Store failures propagate as StoreError; they are not an auth outcome.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Optional

from auth.models import AuthenticatedPrincipal, Role

if TYPE_CHECKING:
    from auth.sessions import SessionManager


class GuardStatus(str, Enum):
    ALLOWED = "allowed"
    FORBIDDEN = "forbidden"
    UNAUTHENTICATED = "unauthenticated"

    @property
    def http_status(self) -> int:
        return _HTTP_STATUS[self]


_HTTP_STATUS = {
    GuardStatus.ALLOWED: 200,
    GuardStatus.FORBIDDEN: 403,
    GuardStatus.UNAUTHENTICATED: 401,
}


@dataclass(frozen=True)
class GuardResult:
    status: GuardStatus
    principal: Optional[AuthenticatedPrincipal] = None

    @property
    def allowed(self) -> bool:
        return self.status is GuardStatus.ALLOWED


class RoleGuard:
    """Check a session token against an optional set of permitted roles.

    RoleGuard() with no roles admits any authenticated principal.
    """

    def __init__(self, roles: Iterable[Role] = ()) -> None:
        self.roles: frozenset[Role] = frozenset(Role(r) for r in roles)

    def check(self, manager: SessionManager, token: Optional[str]) -> GuardResult:
        if not token:
            return GuardResult(GuardStatus.UNAUTHENTICATED)
        principal = manager.validate_session(token)
        if principal is None:
            return GuardResult(GuardStatus.UNAUTHENTICATED)
        if self.roles and principal.role not in self.roles:
            return GuardResult(GuardStatus.FORBIDDEN, principal)
        return GuardResult(GuardStatus.ALLOWED, principal)

    def __repr__(self) -> str:
        names = ",".join(sorted(r.value for r in self.roles)) or "*"
        return f"RoleGuard({names})"
