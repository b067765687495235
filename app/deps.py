# app/deps.py
# Role: Shared application-level dependencies and globals.
#       Provides the Jinja2 templates loader, the cookie stores, the standard
#       SQLAlchemy database session dependency, and the "who is logged in" helpers.

"""
Shared dependencies and globals for the finance tracker app.
"""

import os
from typing import Generator, Optional

from fastapi import Depends, HTTPException, Request
from fastapi.templating import Jinja2Templates
from sqlalchemy.orm import Session

from db import SessionLocal
from app.services.session import RefreshTokenCookie, SessionStore

# -------------------------------------------------------------------
# Templates
# -------------------------------------------------------------------

APP_DIR = os.path.dirname(os.path.abspath(__file__))

# Jinja2 templates loader (used by all HTML-rendering routes)
templates = Jinja2Templates(directory=os.path.join(APP_DIR, "templates"))

# -------------------------------------------------------------------
# Cookie stores
# -------------------------------------------------------------------

# Encrypted session cookie ({userId, expiresAt}) and refresh token cookie.
# The same instances are handed to RefreshSessionMiddleware in main.py.
session_store = SessionStore()
refresh_cookie = RefreshTokenCookie()

# -------------------------------------------------------------------
# Database dependency
# -------------------------------------------------------------------

def get_db() -> Generator[Session, None, None]:
    """
    FastAPI dependency that yields a database session and ensures it is closed.

    Typical usage in routes:
        db: Session = Depends(get_db)
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()

# -------------------------------------------------------------------
# Authentication dependencies
# -------------------------------------------------------------------

class LoginRequired(Exception):
    """Raised by page routes when there is no valid session; handled in main.py."""

    def __init__(self, redirect_to: str = "/overview"):
        super().__init__(redirect_to)
        self.redirect_to = redirect_to


def get_user_id(request: Request) -> Optional[str]:
    """User id from a present, unexpired session cookie, else None."""
    session = session_store.read(request.cookies)
    if session is None or not session.user_id or session_store.is_expired(session):
        return None
    return session.user_id


def require_user_id(request: Request) -> str:
    """Page dependency: the logged-in user id, or a redirect to /login."""
    user_id = get_user_id(request)
    if not user_id:
        raise LoginRequired(redirect_to=request.url.path)
    return user_id


def api_user_id(request: Request) -> str:
    """API dependency: the logged-in user id, or 401."""
    user_id = get_user_id(request)
    if not user_id:
        raise HTTPException(status_code=401, detail="Unauthorized")
    return user_id


def client_ip(request: Request) -> str:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"
