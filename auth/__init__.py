"""auth/ -- Session authentication and role authorization for ClassHub.

Two-stage request authorization:
  edge.py   -- PathPolicy: pure (path, token presence) filter, no I/O.
  guards.py -- RoleGuard: token -> principal via SessionManager, role compare.

Layer rule: auth/ imports only stdlib, third-party libraries, and core/.
It does NOT import from api/ or web/.
api/ and web/ import from auth/, not the other way around.
"""
