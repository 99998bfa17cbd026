"""
auth/sessions.py -- SessionManager: authentication and opaque-session lifecycle.

This is the single place that turns credentials into sessions and sessions
into principals. Every request-time authorization decision goes through
validate_session(); nothing caches its result in-process, so the session
store stays the only source of truth.

Contract with callers:
  - Auth *failures* are None, never exceptions. authenticate() does not
    distinguish "no such user" from "wrong password".
  - Store *failures* are StoreError (validate/delete/purge/authenticate) or
    None from create_session(), logged here with full detail.
  - validate_session() never writes. Expiry is absolute from creation.

Construction is explicit: the app lifespan builds the stores around one
engine and passes them in, along with the HMAC key and lifetime.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime, timedelta, timezone

from sqlalchemy.exc import SQLAlchemyError

from auth.errors import StoreError
from auth.models import AuthenticatedPrincipal, Session, User
from auth.store import SessionStore, UserStore, to_iso
from auth.tokens import DUMMY_HASH, generate_session_token, hash_session_token, verify_password

logger = logging.getLogger("classhub.auth")

DEFAULT_SESSION_TTL = timedelta(days=7)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SessionManager:
    """Create, validate and revoke session tokens against the session store.

    Usage:
        manager = SessionManager(user_store, session_store, secret_key=settings.secret_key)
        user = manager.authenticate("admin1", "correct")
        token = manager.create_session(user.id)
        principal = manager.validate_session(token)
        manager.delete_session(token)
    """

    def __init__(
        self,
        users: UserStore,
        sessions: SessionStore,
        secret_key: str,
        ttl: timedelta = DEFAULT_SESSION_TTL,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.users = users
        self.sessions = sessions
        self.ttl = ttl
        self._secret_key = secret_key
        self._clock = clock

    # ------------------------------------------------------------------
    # Credentials
    # ------------------------------------------------------------------

    def authenticate(self, username: str, password: str) -> User | None:
        """Check a username/password pair. Returns the User or None.

        Always runs bcrypt whether or not the user exists [C1]:
        - Unknown username: bcrypt runs against DUMMY_HASH
        - Wrong password: bcrypt runs against the real hash
        """
        try:
            user = self.users.get_by_username(username)
        except SQLAlchemyError as exc:
            logger.exception("Credential store lookup failed")
            raise StoreError("credential store unavailable") from exc

        if user is None:
            # Equalize timing -- do NOT return early before running bcrypt [C1]
            verify_password(password, DUMMY_HASH)
            return None
        if not verify_password(password, user.password_hash):
            return None
        return user

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    def create_session(self, user_id: int) -> str | None:
        """Issue a new session for user_id and return the raw token.

        Returns None when the row cannot be persisted. The caller must treat
        that as a server error: the user authenticated but holds no session.
        """
        token = generate_session_token()
        now = self._clock()
        session = Session(
            token_hash=hash_session_token(token, self._secret_key),
            user_id=user_id,
            created_at=to_iso(now),
            expires_at=to_iso(now + self.ttl),
        )
        try:
            self.sessions.create(session)
        except SQLAlchemyError:
            logger.exception("Failed to persist session for user_id=%s", user_id)
            return None
        logger.info("Session issued for user_id=%s (expires %s)", user_id, session.expires_at)
        return token

    def validate_session(self, token: str | None) -> AuthenticatedPrincipal | None:
        """Resolve a raw token to a principal, or None if it is not valid now.

        None covers: empty token, never issued, deleted, expired
        (now >= expires_at), unreadable expiry, and orphaned (user deleted).
        Raises StoreError only when the store itself fails.
        """
        if not token:
            return None
        try:
            session = self.sessions.get_by_hash(hash_session_token(token, self._secret_key))
            if session is None:
                return None
            if not self._is_live(session):
                return None
            user = self.users.get_by_id(session.user_id)
        except SQLAlchemyError as exc:
            logger.exception("Session store lookup failed")
            raise StoreError("session store unavailable") from exc

        if user is None:
            logger.warning("Session references missing user_id=%s", session.user_id)
            return None
        return AuthenticatedPrincipal.from_user(user)

    def delete_session(self, token: str | None) -> None:
        """Revoke a token. Unknown or empty tokens are not an error."""
        if not token:
            return
        try:
            self.sessions.delete_by_hash(hash_session_token(token, self._secret_key))
        except SQLAlchemyError as exc:
            logger.exception("Session delete failed")
            raise StoreError("session store unavailable") from exc

    def purge_expired(self) -> int:
        """Delete every expired session row. Returns the number removed."""
        try:
            removed = self.sessions.delete_expired(to_iso(self._clock()))
        except SQLAlchemyError as exc:
            logger.exception("Expired session purge failed")
            raise StoreError("session store unavailable") from exc
        if removed:
            logger.info("Purged %d expired session(s)", removed)
        return removed

    def _is_live(self, session: Session) -> bool:
        try:
            expires_at = datetime.fromisoformat(session.expires_at)
        except ValueError:
            logger.warning("Session id=%s has unreadable expires_at %r", session.id, session.expires_at)
            return False
        if expires_at.tzinfo is None:
            expires_at = expires_at.replace(tzinfo=timezone.utc)
        return self._clock() < expires_at
