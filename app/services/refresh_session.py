# app/services/refresh_session.py
"""
Silent session renewal.

When a GET request arrives with an expired session and a refresh token
cookie, the token is exchanged (single use) for a new token and a new
7-day session, and the client is redirected back to the same URL so the
request is replayed with fresh credentials.

`try_renew` makes the decision and returns either a `RenewalOutcome`
(what to send back) or `UNRENEWED`. It never raises: every failure,
including infrastructure errors, collapses into `UNRENEWED` and the
request continues to the normal handler, which enforces login itself.

Public API:
    try_renew(request, sessions, refresh_cookie, session_factory, now=None)
        -> RenewalOutcome | Unrenewed
    RefreshSessionMiddleware
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Optional, Union

from sqlalchemy.orm import Session as DBSession
from starlette.concurrency import run_in_threadpool
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import RedirectResponse

from config import REFRESH_TOKEN_MAX_AGE, SESSION_MAX_AGE
from models import User
from app.services.refresh_tokens import RefreshTokenStore
from app.services.session import RefreshTokenCookie, SessionStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RenewalOutcome:
    """A successful renewal: the two cookies to set and where to redirect."""

    user_id: str
    session_cookie: str
    refresh_cookie: str
    location: str


@dataclass(frozen=True)
class Unrenewed:
    """Renewal did not happen. Deliberately carries no reason."""


UNRENEWED = Unrenewed()

RenewalResult = Union[RenewalOutcome, Unrenewed]


def try_renew(
    request: Request,
    sessions: SessionStore,
    refresh_cookie: RefreshTokenCookie,
    session_factory: Callable[[], DBSession],
    now: Optional[datetime] = None,
) -> RenewalResult:
    # Requests with a body are never replayed
    if request.method != "GET":
        return UNRENEWED

    try:
        now = now or datetime.now(timezone.utc)

        # Read-only inspection: nothing is written unless renewal succeeds
        session = sessions.read(request.cookies)
        if session is None or not sessions.is_expired(session, now):
            return UNRENEWED

        token = refresh_cookie.parse(request.cookies)
        if not token:
            return UNRENEWED

        db_now = now.astimezone(timezone.utc).replace(tzinfo=None)

        db = session_factory()
        try:
            store = RefreshTokenStore(db)
            consumed = store.consume(token, now=db_now)
            if consumed is None:
                db.commit()
                return UNRENEWED

            if db.get(User, consumed.user_id) is None:
                db.commit()
                return UNRENEWED

            replacement = store.create(consumed.user_id, consumed.device_info, now=db_now)
            db.commit()
            user_id = consumed.user_id
            new_token = replacement.token
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

        renewed = sessions.new_session(user_id, now=now)

        logger.info("Renewed session for user %s", user_id)
        return RenewalOutcome(
            user_id=user_id,
            session_cookie=sessions.commit(renewed, max_age=SESSION_MAX_AGE),
            refresh_cookie=refresh_cookie.serialize(new_token, max_age=REFRESH_TOKEN_MAX_AGE),
            location=str(request.url),
        )

    except Exception:
        logger.exception("Error refreshing session")
        return UNRENEWED


class RefreshSessionMiddleware(BaseHTTPMiddleware):
    """
    Runs `try_renew` in front of every request.

    On renewal the downstream app is not called at all: the client gets a
    302 back to the same URL carrying both new cookies.
    """

    def __init__(
        self,
        app,
        sessions: SessionStore,
        refresh_cookie: RefreshTokenCookie,
        session_factory: Callable[[], DBSession],
    ):
        super().__init__(app)
        self.sessions = sessions
        self.refresh_cookie = refresh_cookie
        self.session_factory = session_factory

    async def dispatch(self, request, call_next):
        # Token lookup and rotation hit the database synchronously
        result = await run_in_threadpool(
            try_renew, request, self.sessions, self.refresh_cookie, self.session_factory
        )

        if isinstance(result, Unrenewed):
            return await call_next(request)

        response = RedirectResponse(url=result.location, status_code=302)
        response.headers.append("set-cookie", result.session_cookie)
        response.headers.append("set-cookie", result.refresh_cookie)
        return response
