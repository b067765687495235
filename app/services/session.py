# app/services/session.py
#
# Cookie-backed sessions
# The session lives entirely in an encrypted cookie ({userId, expiresAt}).
# The refresh token cookie carries only the opaque token, encrypted with the same key.

from __future__ import annotations

import base64
import hashlib
import http.cookies
import json
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Mapping, Optional

from cryptography.fernet import Fernet, InvalidToken

from config import (
    COOKIE_SECURE,
    REFRESH_COOKIE_NAME,
    SESSION_COOKIE_NAME,
    SESSION_MAX_AGE,
    SESSION_SECRET,
)

logger = logging.getLogger(__name__)


def _derive_fernet_key(secret: str) -> bytes:
    digest = hashlib.sha256(secret.encode("utf-8")).digest()
    return base64.urlsafe_b64encode(digest)


def _now() -> datetime:
    return datetime.now(timezone.utc)


def serialize_cookie(
    name: str,
    value: str,
    max_age: Optional[int] = None,
    secure: bool = False,
) -> str:
    """
    Build a Set-Cookie header value (without the "Set-Cookie:" prefix).

    All app cookies are HttpOnly, SameSite=Lax and scoped to "/".
    """
    cookie: http.cookies.BaseCookie = http.cookies.SimpleCookie()
    cookie[name] = value
    if max_age is not None:
        cookie[name]["max-age"] = max_age
    cookie[name]["path"] = "/"
    cookie[name]["httponly"] = True
    cookie[name]["samesite"] = "lax"
    if secure:
        cookie[name]["secure"] = True
    return cookie.output(header="").strip()


@dataclass
class Session:
    """Identity claim stored in the session cookie."""

    user_id: Optional[str] = None
    expires_at: Optional[datetime] = None


class SessionStore:
    """
    Reads and writes the encrypted session cookie.

    Nothing is kept server-side: `read` decrypts whatever the client sent,
    `commit` produces the header value that stores a session on the client.
    """

    def __init__(
        self,
        secret: str = SESSION_SECRET,
        cookie_name: str = SESSION_COOKIE_NAME,
        secure: bool = COOKIE_SECURE,
    ):
        self.cookie_name = cookie_name
        self.secure = secure
        self.fernet = Fernet(_derive_fernet_key(secret))

    def read(self, cookies: Mapping[str, str]) -> Optional[Session]:
        raw = cookies.get(self.cookie_name)
        if not raw:
            return None

        try:
            payload = json.loads(self.fernet.decrypt(raw.encode("utf-8")).decode("utf-8"))
            user_id = payload.get("userId")
            expires_raw = payload.get("expiresAt")
            expires_at = datetime.fromisoformat(expires_raw) if expires_raw else None
        except (InvalidToken, ValueError, TypeError, AttributeError):
            logger.debug("Ignoring unreadable session cookie")
            return None

        if expires_at is not None and expires_at.tzinfo is None:
            expires_at = expires_at.replace(tzinfo=timezone.utc)

        return Session(user_id=user_id, expires_at=expires_at)

    def is_expired(self, session: Session, now: Optional[datetime] = None) -> bool:
        # A session without an expiry is never trusted
        if session.expires_at is None:
            return True
        return session.expires_at < (now or _now())

    def new_session(self, user_id: str, now: Optional[datetime] = None) -> Session:
        return Session(
            user_id=user_id,
            expires_at=(now or _now()) + timedelta(seconds=SESSION_MAX_AGE),
        )

    def commit(self, session: Session, max_age: Optional[int] = None) -> str:
        payload = {
            "userId": session.user_id,
            "expiresAt": session.expires_at.isoformat() if session.expires_at else None,
        }
        token = self.fernet.encrypt(json.dumps(payload).encode("utf-8")).decode("utf-8")
        return serialize_cookie(self.cookie_name, token, max_age=max_age, secure=self.secure)

    def destroy(self) -> str:
        return serialize_cookie(self.cookie_name, "", max_age=0, secure=self.secure)


class RefreshTokenCookie:
    """Encrypted cookie holding the opaque refresh token string."""

    def __init__(
        self,
        secret: str = SESSION_SECRET,
        cookie_name: str = REFRESH_COOKIE_NAME,
        secure: bool = COOKIE_SECURE,
    ):
        self.cookie_name = cookie_name
        self.secure = secure
        self.fernet = Fernet(_derive_fernet_key(secret))

    def parse(self, cookies: Mapping[str, str]) -> Optional[str]:
        raw = cookies.get(self.cookie_name)
        if not raw:
            return None
        try:
            return self.fernet.decrypt(raw.encode("utf-8")).decode("utf-8") or None
        except (InvalidToken, ValueError, TypeError):
            logger.debug("Ignoring unreadable refresh token cookie")
            return None

    def serialize(self, token: str, max_age: Optional[int] = None) -> str:
        value = self.fernet.encrypt(token.encode("utf-8")).decode("utf-8")
        return serialize_cookie(self.cookie_name, value, max_age=max_age, secure=self.secure)

    def destroy(self) -> str:
        return serialize_cookie(self.cookie_name, "", max_age=0, secure=self.secure)
