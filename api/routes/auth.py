"""
api/routes/auth.py -- Login, logout and session introspection endpoints.

Routes:
  POST /api/auth/login   -- password login; sets session_token cookie
  POST /api/auth/logout  -- revokes the session (if any), clears cookie; always 200
  GET  /api/auth/me      -- current principal (requires auth)

Security:
  [H2] POST /login is rate-limited per client IP (LOGIN_RATE_LIMIT).
  [C1] SessionManager.authenticate() equalizes timing -- never inline the
       lookup + bcrypt check here.
  [M5] Cache-Control: no-store on login responses.
  Unknown username and wrong password produce the same 401 body.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from api.limiter import limiter, login_rate_limit
from api.models import LoginRequest, LoginResponse, LogoutResponse, MeResponse, PrincipalResponse
from auth.dependencies import get_current_principal, get_session_manager, read_session_token
from auth.errors import StoreError
from auth.models import AuthenticatedPrincipal
from auth.sessions import SessionManager
from auth.tokens import clear_session_cookie, set_session_cookie

logger = logging.getLogger("classhub.api")

# Auth policy:
# - POST /api/auth/login:   public -- login endpoint must be unauthenticated
# - POST /api/auth/logout:  public -- clearing a cookie needs no prior auth
# - GET  /api/auth/me:      requires auth (get_current_principal)
router = APIRouter()


def _error(status_code: int, message: str) -> JSONResponse:
    resp = JSONResponse(status_code=status_code, content={"error": message})
    resp.headers["Cache-Control"] = "no-store"  # [M5]
    return resp


@limiter.limit(login_rate_limit)  # [H2] must be ABOVE @router to preserve FastAPI introspection
@router.post("/auth/login", response_model=LoginResponse)
def login(request: Request, body: LoginRequest) -> JSONResponse:
    """Authenticate with username and password; issue a session cookie.

    400 when either field is missing or empty, 401 on bad credentials,
    500 when the session row cannot be written (the client should retry
    login; it is authenticated but holds no session).
    """
    if not body.username or not body.password:
        return _error(400, "Username and password are required.")

    manager: SessionManager = get_session_manager(request)
    user = manager.authenticate(body.username, body.password)
    if user is None:
        logger.info("Login failed for a submitted username")
        return _error(401, "Invalid username or password.")

    token = manager.create_session(user.id)
    if token is None:
        return _error(500, "Could not create session.")

    principal = AuthenticatedPrincipal.from_user(user)
    resp = JSONResponse(
        status_code=200,
        content=LoginResponse(user=PrincipalResponse.from_principal(principal)).model_dump(mode="json"),
    )
    set_session_cookie(resp, token)
    resp.headers["Cache-Control"] = "no-store"  # [M5]
    logger.info("Login succeeded for user_id=%s role=%s", user.id, user.role.value)
    return resp


@router.post("/auth/logout", response_model=LogoutResponse)
def logout(request: Request) -> JSONResponse:
    """Revoke the current session and clear the cookie.

    Succeeds whether or not a session existed (expired, revoked, never
    issued, or no cookie at all). A store failure is logged and the cookie is
    still cleared: the browser must not keep a session the user gave up.
    """
    manager: SessionManager = get_session_manager(request)
    try:
        manager.delete_session(read_session_token(request))
    except StoreError:
        logger.warning("Logout could not revoke the session row; clearing cookie anyway")
    resp = JSONResponse(content=LogoutResponse().model_dump())
    clear_session_cookie(resp)
    return resp


@router.get("/auth/me", response_model=MeResponse)
def me(principal: AuthenticatedPrincipal = Depends(get_current_principal)) -> MeResponse:
    """Return identity information for the currently authenticated user."""
    return MeResponse(user=PrincipalResponse.from_principal(principal))
