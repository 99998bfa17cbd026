"""
API request and response models for ClassHub REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in auth/models.py, which
own the internal domain representation. Route handlers map between the two.

Separation of concerns: auth/ models = domain truth; api/ models = API contract.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from auth.models import AuthenticatedPrincipal, Role

# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class LoginRequest(BaseModel):
    """Request body for POST /api/auth/login.

    Both fields are optional at the schema level so a missing field reaches
    the handler and gets the documented 400 "fields required" answer instead
    of a generic validation error.
    """

    username: Optional[str] = Field(default=None, max_length=255)
    password: Optional[str] = Field(default=None, max_length=255)


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class PrincipalResponse(BaseModel):
    """The public projection of a user: exactly id, username, full_name, role."""

    model_config = ConfigDict(frozen=True)

    id: int
    username: str
    full_name: Optional[str]
    role: Role

    @classmethod
    def from_principal(cls, principal: AuthenticatedPrincipal) -> "PrincipalResponse":
        return cls(
            id=principal.id,
            username=principal.username,
            full_name=principal.full_name,
            role=principal.role,
        )


class LoginResponse(BaseModel):
    """Response for a successful POST /api/auth/login."""

    model_config = ConfigDict(frozen=True)

    success: bool = True
    user: PrincipalResponse


class LogoutResponse(BaseModel):
    """Response for POST /api/auth/logout -- always success."""

    model_config = ConfigDict(frozen=True)

    success: bool = True


class MeResponse(BaseModel):
    """Response for GET /api/auth/me."""

    model_config = ConfigDict(frozen=True)

    user: PrincipalResponse


class ErrorResponse(BaseModel):
    """Error envelope returned on every 4xx/5xx response: {"error": "<message>"}."""

    model_config = ConfigDict(frozen=True)

    error: str


class HealthResponse(BaseModel):
    """Response for GET /api/health."""

    model_config = ConfigDict(frozen=True)

    status: str = "ok"
    version: str
