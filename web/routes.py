"""
web/routes.py -- Page routes for the ClassHub web front end.

These routes serve page descriptors (JSON) for the browser front end; the
front end owns all rendering. They share app.state with the API routes
(same SessionManager) but answer auth failures the way a browser expects:
a redirect to the login page instead of a JSON 401.

Page authorization is structural, not per-handler. Every route on `router`
runs enforce_page_access() as a router-level dependency, which:
  1. resolves the session cookie through RoleGuard (any role), and
  2. applies the PAGE_ROLES table from auth/edge.py (longest prefix wins).
A page added to `router` cannot forget its check. `public_router` holds the
pages that must stay reachable without a session.

Outcomes:
  UNAUTHENTICATED -> PageRedirect -> 302 /login?redirect=<path>, stale cookie cleared
  FORBIDDEN       -> HTTP 403 {"error": "Forbidden"}
  ALLOWED         -> principal stored on request.state.principal

Routes:
  GET /                  -- redirect to /dashboard
  GET /dashboard         -- redirect to the role's own dashboard
  GET /dashboard/admin   -- ADMIN
  GET /dashboard/guru    -- GURU
  GET /dashboard/siswa   -- SISWA
  GET /login             -- login page (public)
"""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import RedirectResponse

from auth.dependencies import check_request, read_session_token
from auth.edge import ROLE_HOME, login_redirect_location, required_roles_for, safe_return_target
from auth.guards import GuardStatus, RoleGuard
from auth.models import AuthenticatedPrincipal
from auth.tokens import clear_session_cookie

logger = logging.getLogger("classhub.web")


# ---------------------------------------------------------------------------
# Central page guard
# ---------------------------------------------------------------------------


class PageRedirect(Exception):
    """Raised by the page guard to send the browser to the login page."""

    def __init__(self, location: str, clear_cookie: bool = False) -> None:
        super().__init__(location)
        self.location = location
        self.clear_cookie = clear_cookie


async def page_redirect_handler(request: Request, exc: PageRedirect) -> RedirectResponse:
    """Turn PageRedirect into a 302. Registered on the app by asgi.py."""
    resp = RedirectResponse(exc.location, status_code=302)
    if exc.clear_cookie:
        # A cookie that failed validation would otherwise keep bouncing the
        # user between /login (edge: token present) and the page guard.
        clear_session_cookie(resp)
    return resp


def enforce_page_access(request: Request) -> AuthenticatedPrincipal:
    """Router-level dependency: authenticate, then apply PAGE_ROLES."""
    path = request.url.path
    result = check_request(request, RoleGuard(required_roles_for(path) or ()))
    if result.status is GuardStatus.UNAUTHENTICATED:
        stale = read_session_token(request) is not None
        raise PageRedirect(login_redirect_location(path), clear_cookie=stale)
    if result.status is GuardStatus.FORBIDDEN:
        logger.info(
            "Page access denied: user_id=%s role=%s path=%s",
            result.principal.id,
            result.principal.role.value,
            path,
        )
        raise HTTPException(status_code=403, detail="Forbidden")
    request.state.principal = result.principal
    return result.principal


router = APIRouter(dependencies=[Depends(enforce_page_access)])
public_router = APIRouter()


def _page(name: str, principal: AuthenticatedPrincipal) -> dict:
    return {"page": name, "user": principal.to_dict()}


# ---------------------------------------------------------------------------
# Guarded pages
# ---------------------------------------------------------------------------


@router.get("/")
def root(request: Request) -> RedirectResponse:
    return RedirectResponse("/dashboard", status_code=302)


@router.get("/dashboard")
def dashboard(request: Request) -> RedirectResponse:
    """Send the principal to the dashboard for their role."""
    principal: AuthenticatedPrincipal = request.state.principal
    return RedirectResponse(ROLE_HOME[principal.role], status_code=302)


@router.get("/dashboard/admin")
def admin_dashboard(request: Request) -> dict:
    return _page("dashboard/admin", request.state.principal)


@router.get("/dashboard/guru")
def guru_dashboard(request: Request) -> dict:
    return _page("dashboard/guru", request.state.principal)


@router.get("/dashboard/siswa")
def siswa_dashboard(request: Request) -> dict:
    return _page("dashboard/siswa", request.state.principal)


# ---------------------------------------------------------------------------
# Public pages
# ---------------------------------------------------------------------------


@public_router.get("/login")
def login_page(request: Request, redirect: Optional[str] = None) -> dict:
    """Describe the login page and the validated post-login target. [C2]

    The raw query parameter is never echoed; only a relative path survives
    safe_return_target().
    """
    return {"page": "login", "redirect": safe_return_target(redirect)}
