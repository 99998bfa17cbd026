"""
auth/edge.py -- Edge path policy: the cheap first stage of request authorization.

PathPolicy.evaluate() is a pure function of (path, token presence). It never
touches a store and never looks at the token's value, so it cannot tell a
valid session from an expired or forged one, nor an ADMIN from a SISWA. That
is intentional: the edge stage only keeps obviously anonymous browsers away
from pages. Every authoritative decision is made afterwards by RoleGuard
(auth/guards.py) inside the handler.

Decision table (first match wins):
  bypass prefix                    -> allow (not inspected at all)
  public prefix, token, /login     -> redirect /dashboard (optimistic)
  public prefix                    -> allow
  API prefix                       -> allow (handler answers 401 JSON)
  no token                         -> redirect /login?redirect=<path>
  token                            -> allow

PAGE_ROLES is the role-to-path table. It is declared here, next to the path
rules, but is enforced by the page router (web/routes.py), never by the edge.

Layer rule: stdlib only. No imports from api/, web/, or core/.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional
from urllib.parse import urlencode

from auth.models import Role

LOGIN_PATH = "/login"
DASHBOARD_PATH = "/dashboard"
REDIRECT_PARAM = "redirect"

PUBLIC_PREFIXES: tuple[str, ...] = ("/login", "/api/auth/login", "/api/health")
# Paths the edge never inspects: static assets and logout (which must work
# with a stale or missing cookie).
BYPASS_PREFIXES: tuple[str, ...] = ("/static/", "/favicon.ico", "/api/auth/logout")
API_PREFIX = "/api/"

# Role-to-page table. Longest matching prefix decides.
PAGE_ROLES: dict[str, frozenset[Role]] = {
    "/dashboard/admin": frozenset({Role.ADMIN}),
    "/dashboard/guru": frozenset({Role.GURU}),
    "/dashboard/siswa": frozenset({Role.SISWA}),
}

# Where GET /dashboard sends each role.
ROLE_HOME: dict[Role, str] = {
    Role.ADMIN: "/dashboard/admin",
    Role.GURU: "/dashboard/guru",
    Role.SISWA: "/dashboard/siswa",
}


@dataclass(frozen=True)
class EdgeDecision:
    """Outcome of the edge stage: pass through, or redirect to location."""

    allow: bool
    location: Optional[str] = None

    @classmethod
    def pass_through(cls) -> EdgeDecision:
        return cls(allow=True)

    @classmethod
    def redirect(cls, location: str) -> EdgeDecision:
        return cls(allow=False, location=location)


def _matches(path: str, prefix: str) -> bool:
    """Segment-aware prefix match: /login matches /login and /login/x, not /loginx."""
    if prefix.endswith("/"):
        return path.startswith(prefix)
    return path == prefix or path.startswith(prefix + "/")


def login_redirect_location(path: str) -> str:
    """Build /login?redirect=<path>. Only the path is echoed, never a full URL."""
    return f"{LOGIN_PATH}?{urlencode({REDIRECT_PARAM: path}, safe='/')}"


def safe_return_target(target: Optional[str]) -> str:
    """Validate a post-login return target. Only accept relative paths. [C2]

    Rejects absolute URLs and protocol-relative ("//host") targets so the
    redirect parameter cannot be used to bounce users off-site.
    """
    if target and target.startswith("/") and not target.startswith("//") and "\\" not in target:
        return target
    return DASHBOARD_PATH


def required_roles_for(path: str) -> Optional[frozenset[Role]]:
    """Return the roles PAGE_ROLES demands for path, or None if unrestricted."""
    best: Optional[str] = None
    for prefix in PAGE_ROLES:
        if _matches(path, prefix) and (best is None or len(prefix) > len(best)):
            best = prefix
    return PAGE_ROLES[best] if best is not None else None


@dataclass(frozen=True)
class PathPolicy:
    """Configurable edge rules. The module-level defaults describe the app."""

    public_prefixes: tuple[str, ...] = PUBLIC_PREFIXES
    bypass_prefixes: tuple[str, ...] = BYPASS_PREFIXES
    api_prefix: Optional[str] = API_PREFIX
    login_path: str = LOGIN_PATH
    dashboard_path: str = DASHBOARD_PATH

    def evaluate(self, path: str, has_token: bool) -> EdgeDecision:
        if any(_matches(path, p) for p in self.bypass_prefixes):
            return EdgeDecision.pass_through()

        if any(_matches(path, p) for p in self.public_prefixes):
            if has_token and path == self.login_path:
                # Optimistic: a stale token bounces back here via /dashboard.
                return EdgeDecision.redirect(self.dashboard_path)
            return EdgeDecision.pass_through()

        if self.api_prefix and path.startswith(self.api_prefix):
            return EdgeDecision.pass_through()

        if not has_token:
            return EdgeDecision.redirect(login_redirect_location(path))

        return EdgeDecision.pass_through()
