"""
auth/dependencies.py -- FastAPI Depends() helpers for authentication.

One auth method: the opaque "session_token" cookie set by POST
/api/auth/login. There are no bearer tokens and no claims in the cookie;
every call resolves it through the SessionManager on app.state.

get_current_principal() raises HTTP 401 if unauthenticated.
require_roles(*roles) builds a dependency that raises 401, or 403 when the
principal's role is not permitted.

Layer rule: no imports from web/ or core/.
  auth/dependencies.py may import from fastapi (for Depends/HTTPException/Request)
  because this module is part of the FastAPI dependency injection system.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Optional

from fastapi import HTTPException, Request

from auth.guards import GuardResult, GuardStatus, RoleGuard
from auth.models import AuthenticatedPrincipal, Role
from auth.sessions import SessionManager
from auth.tokens import SESSION_COOKIE

_ERROR_TEXT = {
    GuardStatus.UNAUTHENTICATED: "Unauthorized",
    GuardStatus.FORBIDDEN: "Forbidden",
}


def get_session_manager(request: Request) -> SessionManager:
    return request.app.state.session_manager


def read_session_token(request: Request) -> Optional[str]:
    """Return the session cookie value, or None when absent or empty."""
    return request.cookies.get(SESSION_COOKIE) or None


def check_request(request: Request, guard: RoleGuard) -> GuardResult:
    """Run a RoleGuard against the request's cookie."""
    return guard.check(get_session_manager(request), read_session_token(request))


def raise_for_result(result: GuardResult) -> AuthenticatedPrincipal:
    """Return the principal on ALLOWED, raise the matching HTTPException otherwise."""
    if result.allowed:
        return result.principal
    raise HTTPException(status_code=result.status.http_status, detail=_ERROR_TEXT[result.status])


def get_current_principal(request: Request) -> AuthenticatedPrincipal:
    """Require authentication. Raises HTTP 401 if the request is not authenticated.

    Use as a FastAPI dependency:
        @router.get("/protected")
        async def route(principal: AuthenticatedPrincipal = Depends(get_current_principal)): ...
    """
    return raise_for_result(check_request(request, RoleGuard()))


def require_roles(*roles: Role) -> Callable[[Request], AuthenticatedPrincipal]:
    """Build a dependency admitting only the given roles.

    Raises HTTP 401 if unauthenticated, HTTP 403 if the role does not match.

        @router.get("/users")
        def route(principal: AuthenticatedPrincipal = Depends(require_roles(Role.ADMIN))): ...
    """
    guard = RoleGuard(roles)

    def dependency(request: Request) -> AuthenticatedPrincipal:
        return raise_for_result(check_request(request, guard))

    dependency.__name__ = f"require_{'_'.join(sorted(r.value.lower() for r in guard.roles))}"
    return dependency


require_admin = require_roles(Role.ADMIN)
