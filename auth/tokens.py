"""
auth/tokens.py -- Password hashing, session token, and cookie utilities.

Security design decisions:
  Passwords: bcrypt, used directly. Bcrypt is the right choice for
       low-entropy secrets (passwords) because its cost factor makes brute-force
       expensive, and bcrypt.checkpw compares in constant time. The DUMMY_HASH
       constant enables timing equalization in SessionManager.authenticate() so
       response time does not reveal whether a username exists [C1].

  Session tokens: secrets.token_hex(32) gives 256 bits of entropy -- guessing
       is computationally infeasible. The token is opaque: it carries no
       claims, every request resolves it against the session store.

  Token at rest: we store HMAC-SHA256(SECRET_KEY, raw_token) so a copy of the
       sessions table cannot be replayed as cookies. The hash is deterministic,
       enabling O(1) lookup by the UNIQUE index. bcrypt's intentional slowness
       is unnecessary for 256-bit random values.

  Cookie: HttpOnly, SameSite=Lax, Secure per Settings.secure_cookies,
       Max-Age = session lifetime on issue and 0 on logout, Path=/.

Layer rule: no imports from api/ or web/. Import from core/ is allowed --
core/ is the kernel and has no reverse dependencies.
"""

from __future__ import annotations

import hashlib
import hmac
import logging
import secrets

import bcrypt

from core.config import get_settings

logger = logging.getLogger("classhub.auth")

# ---------------------------------------------------------------------------
# Config -- read once at module load via the lru_cache singleton [M6]
# ---------------------------------------------------------------------------

_settings = get_settings()

SESSION_COOKIE = "session_token"
SESSION_TOKEN_BYTES = 32

# ---------------------------------------------------------------------------
# Password hashing (bcrypt -- direct usage, no passlib wrapper)
# ---------------------------------------------------------------------------


MAX_PASSWORD_BYTES = 72


def password_too_long(plain: str) -> bool:
    """Return True if plain exceeds bcrypt's 72-byte input limit once UTF-8 encoded."""
    return len(plain.encode("utf-8")) > MAX_PASSWORD_BYTES


def hash_password(plain: str) -> str:
    """Return a bcrypt hash of the given plaintext password.

    Raises ValueError for passwords over MAX_PASSWORD_BYTES. Callers that
    provision accounts (manage.py) check password_too_long() first.
    """
    if password_too_long(plain):
        raise ValueError(f"password cannot be longer than {MAX_PASSWORD_BYTES} bytes")
    return bcrypt.hashpw(plain.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    """Return True if the plaintext password matches the bcrypt hash.

    A malformed stored hash is treated as a mismatch, not an error. So is a
    password over MAX_PASSWORD_BYTES: no stored hash can have been made from it.
    """
    if password_too_long(plain):
        return False
    try:
        return bcrypt.checkpw(plain.encode("utf-8"), hashed.encode("utf-8"))
    except ValueError:
        return False


# Timing equalization dummy hash [C1].
# Computed once at module load so the first login attempt is not measurably
# slower than subsequent ones.
DUMMY_HASH: str = hash_password("classhub_timing_dummy")


# ---------------------------------------------------------------------------
# Session tokens
# ---------------------------------------------------------------------------


def generate_session_token() -> str:
    """Return a new opaque session token: 32 random bytes as 64 hex characters."""
    return secrets.token_hex(SESSION_TOKEN_BYTES)


def hash_session_token(raw_token: str, secret_key: str) -> str:
    """Return HMAC-SHA256(secret_key, raw_token) as a hex string."""
    return hmac.new(
        secret_key.encode(),
        raw_token.encode(),
        hashlib.sha256,
    ).hexdigest()


# ---------------------------------------------------------------------------
# Cookie helpers
# ---------------------------------------------------------------------------


def set_session_cookie(response, token: str) -> None:
    """Write the session token as an httpOnly cookie on the response.

    max_age matches the session row's lifetime so both expire together.
    """
    response.set_cookie(
        SESSION_COOKIE,
        value=token,
        max_age=_settings.session_max_age,
        path="/",
        httponly=True,
        samesite="lax",
        secure=_settings.secure_cookies,
    )


def clear_session_cookie(response) -> None:
    """Expire the session cookie immediately (Max-Age=0), keeping the same attributes."""
    response.set_cookie(
        SESSION_COOKIE,
        value="",
        max_age=0,
        path="/",
        httponly=True,
        samesite="lax",
        secure=_settings.secure_cookies,
    )
