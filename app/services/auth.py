# app/services/auth.py
"""
Account registration, login and logout.

Passwords are hashed with bcrypt. Failed logins are counted per user and the
account is locked for LOCKOUT_MINUTES after MAX_LOGIN_ATTEMPTS consecutive
failures. Every attempt on a known account is recorded in login_attempts.

Errors are raised as AuthError with a message that is safe to show the user.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import List, Optional

import bcrypt
from pydantic import BaseModel, ValidationError, field_validator, model_validator
from sqlalchemy.orm import Session

from config import (
    DEMO_USER_EMAIL,
    DEMO_USER_ID,
    LOCKOUT_MINUTES,
    MAX_LOGIN_ATTEMPTS,
    REFRESH_TOKEN_MAX_AGE,
    REQUIRE_EMAIL_VERIFICATION,
    SESSION_MAX_AGE,
)
from models import Balance, LoginAttempt, User, utcnow
from app.services.refresh_tokens import RefreshTokenStore, generate_secure_token
from app.services.session import RefreshTokenCookie, SessionStore

logger = logging.getLogger(__name__)

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")

INVALID_CREDENTIALS = "Invalid email or password"


class AuthError(Exception):
    """Authentication/registration failure with a user-facing message."""


# ---- Forms ----

class LoginForm(BaseModel):
    email: str
    password: str
    remember: bool = False

    @field_validator("email")
    @classmethod
    def _email_shape(cls, v: str) -> str:
        v = v.strip().lower()
        if not _EMAIL_RE.match(v):
            raise ValueError("Please enter a valid email address")
        return v

    @field_validator("password")
    @classmethod
    def _password_length(cls, v: str) -> str:
        if len(v) < 8:
            raise ValueError("Password must be at least 8 characters")
        return v


class RegisterForm(BaseModel):
    email: str
    password: str
    confirm_password: str
    full_name: str

    @field_validator("email")
    @classmethod
    def _email_shape(cls, v: str) -> str:
        v = v.strip().lower()
        if not _EMAIL_RE.match(v):
            raise ValueError("Please enter a valid email address")
        return v

    @field_validator("full_name")
    @classmethod
    def _name_length(cls, v: str) -> str:
        v = v.strip()
        if len(v) < 2:
            raise ValueError("Name must be at least 2 characters")
        return v

    @field_validator("password")
    @classmethod
    def _password_strength(cls, v: str) -> str:
        if len(v) < 8:
            raise ValueError("Password must be at least 8 characters")
        if not (
            re.search(r"[a-z]", v)
            and re.search(r"[A-Z]", v)
            and re.search(r"\d", v)
            and re.search(r"[^A-Za-z0-9]", v)
        ):
            raise ValueError(
                "Password must include uppercase, lowercase, number and special character"
            )
        return v

    @model_validator(mode="after")
    def _passwords_match(self) -> "RegisterForm":
        if self.password != self.confirm_password:
            raise ValueError("Passwords do not match")
        return self


def first_error_message(exc: ValidationError) -> str:
    """Message of the first validation error, without pydantic's "Value error, " prefix."""
    msg = exc.errors()[0].get("msg", "Invalid form data")
    return msg.removeprefix("Value error, ")


# ---- Passwords ----

def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(rounds=12)).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        # Malformed hash (e.g. the demo user's placeholder)
        return False


# ---- Registration ----

def register(db: Session, form: RegisterForm) -> User:
    existing = db.query(User).filter(User.email == form.email).first()
    if existing:
        raise AuthError("A user with this email already exists")

    user = User(
        email=form.email,
        full_name=form.full_name,
        password_hash=hash_password(form.password),
        email_verified=False,
        verification_token=generate_secure_token(),
        failed_login_attempts=0,
    )
    db.add(user)
    db.flush()

    # Every account starts with an empty balance row
    db.add(Balance(user_id=user.id, current=0, income=0, expenses=0))
    db.commit()
    db.refresh(user)

    # TODO: send the verification link by email once a mail backend exists
    logger.info("Registered user %s", user.id)
    return user


def verify_email(db: Session, token: str) -> User:
    if not token:
        raise AuthError("Invalid verification link")

    user = db.query(User).filter(User.verification_token == token).first()
    if user is None:
        raise AuthError("Invalid verification link")

    user.email_verified = True
    user.verification_token = None
    db.commit()
    return user


# ---- Login ----

def _record_attempt(
    db: Session,
    user: User,
    success: bool,
    ip_address: str,
    user_agent: Optional[str],
    failure_reason: Optional[str] = None,
) -> None:
    db.add(
        LoginAttempt(
            user_id=user.id,
            ip_address=ip_address,
            user_agent=user_agent,
            success=success,
            failure_reason=failure_reason,
        )
    )


def authenticate(
    db: Session,
    form: LoginForm,
    ip_address: str = "unknown",
    user_agent: Optional[str] = None,
    now: Optional[datetime] = None,
) -> User:
    """
    Check credentials and return the user.

    Unknown email and wrong password produce the same message so accounts
    cannot be enumerated.
    """
    now = now or utcnow()
    user = db.query(User).filter(User.email == form.email).first()

    if user is None:
        logger.info("Login failed for unknown email")
        raise AuthError(INVALID_CREDENTIALS)

    if user.lockout_until and user.lockout_until > now:
        _record_attempt(db, user, False, ip_address, user_agent, "Account locked")
        db.commit()
        raise AuthError(
            "Your account is temporarily locked due to too many failed login attempts. "
            "Please try again later."
        )

    if REQUIRE_EMAIL_VERIFICATION and not user.email_verified:
        _record_attempt(db, user, False, ip_address, user_agent, "Email not verified")
        db.commit()
        raise AuthError("Please verify your email address before logging in")

    if not verify_password(form.password, user.password_hash):
        user.failed_login_attempts = (user.failed_login_attempts or 0) + 1
        if user.failed_login_attempts >= MAX_LOGIN_ATTEMPTS:
            user.lockout_until = now + timedelta(minutes=LOCKOUT_MINUTES)
            logger.warning("Locking user %s after %s failed logins", user.id, user.failed_login_attempts)
        _record_attempt(db, user, False, ip_address, user_agent, "Invalid password")
        db.commit()
        raise AuthError(INVALID_CREDENTIALS)

    user.failed_login_attempts = 0
    user.lockout_until = None
    user.last_login_at = now
    user.last_ip_address = ip_address
    _record_attempt(db, user, True, ip_address, user_agent)
    db.commit()
    return user


# ---- Sessions ----

@dataclass
class IssuedCookies:
    """Set-Cookie header values produced by login/logout."""

    headers: List[str]


def start_session(
    db: Session,
    user_id: str,
    sessions: SessionStore,
    refresh_cookie: RefreshTokenCookie,
    device_info: Optional[str] = None,
    remember: bool = False,
) -> IssuedCookies:
    """
    Create the session cookie and a fresh refresh token for `user_id`.

    Without "remember me" both cookies last only for the browser session.
    """
    record = RefreshTokenStore(db).create(user_id, device_info)
    db.commit()

    session = sessions.new_session(user_id)
    return IssuedCookies(
        headers=[
            sessions.commit(session, max_age=SESSION_MAX_AGE if remember else None),
            refresh_cookie.serialize(record.token, max_age=REFRESH_TOKEN_MAX_AGE if remember else None),
        ]
    )


def logout(
    db: Session,
    user_id: Optional[str],
    sessions: SessionStore,
    refresh_cookie: RefreshTokenCookie,
) -> IssuedCookies:
    if user_id:
        revoked = RefreshTokenStore(db).revoke_all_for_user(user_id)
        db.commit()
        logger.info("Logged out user %s (%s refresh tokens revoked)", user_id, revoked)
    return IssuedCookies(headers=[sessions.destroy(), refresh_cookie.destroy()])


# ---- Demo user ----

def ensure_demo_user(db: Session) -> User:
    """Create the demo account on first use. It has no usable password."""
    user = db.get(User, DEMO_USER_ID)
    if user is not None:
        return user

    user = User(
        id=DEMO_USER_ID,
        email=DEMO_USER_EMAIL,
        full_name="Demo User",
        password_hash="!demo-no-password",
        email_verified=True,
        failed_login_attempts=0,
    )
    db.add(user)
    db.add(Balance(user_id=DEMO_USER_ID, current=0, income=0, expenses=0))
    db.commit()
    db.refresh(user)
    return user
