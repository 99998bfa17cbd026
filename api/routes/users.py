"""
api/routes/users.py -- Role-gated read endpoints over the credential store.

Routes:
  GET /api/users     -- all users (ADMIN)
  GET /api/students  -- SISWA users (ADMIN, GURU)

Both return principal projections only -- password hashes never leave the
auth package. These are the reference consumers of require_roles(): an
unauthenticated caller gets 401, an authenticated caller with the wrong role
gets 403 and no data.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request

from api.models import PrincipalResponse
from auth.dependencies import get_session_manager, require_admin, require_roles
from auth.models import AuthenticatedPrincipal, Role

# Auth policy:
# - GET /api/users:     requires ADMIN (require_admin)
# - GET /api/students:  requires ADMIN or GURU (require_roles)
router = APIRouter()


@router.get("/users", response_model=list[PrincipalResponse])
def list_users(
    request: Request,
    principal: AuthenticatedPrincipal = Depends(require_admin),
) -> list[PrincipalResponse]:
    """List all user accounts. Admin only."""
    users = get_session_manager(request).users.list_users()
    return [PrincipalResponse.from_principal(AuthenticatedPrincipal.from_user(u)) for u in users]


@router.get("/students", response_model=list[PrincipalResponse])
def list_students(
    request: Request,
    principal: AuthenticatedPrincipal = Depends(require_roles(Role.ADMIN, Role.GURU)),
) -> list[PrincipalResponse]:
    """List student accounts. Admins and teachers."""
    users = get_session_manager(request).users.list_users(roles=(Role.SISWA,))
    return [PrincipalResponse.from_principal(AuthenticatedPrincipal.from_user(u)) for u in users]
