# app/services/refresh_tokens.py
#
# Refresh-token store backed by the refresh_tokens table.
# Tokens are single-use: `consume` revokes a token in the same UPDATE that
# validates it, so two renewals racing on one token cannot both succeed.

from __future__ import annotations

import logging
import secrets
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy import update
from sqlalchemy.orm import Session

from config import REFRESH_TOKEN_MAX_AGE
from models import RefreshToken, utcnow

logger = logging.getLogger(__name__)


def generate_secure_token(length: int = 32) -> str:
    return secrets.token_hex(length)


class RefreshTokenStore:
    """
    Thin repository around RefreshToken rows.

    The store never commits; the caller owns the DB transaction.
    """

    def __init__(self, db: Session):
        self.db = db

    def find(self, token: str) -> Optional[RefreshToken]:
        """Return the non-revoked row for `token`, or None."""
        return (
            self.db.query(RefreshToken)
            .filter(RefreshToken.token == token, RefreshToken.is_revoked.is_(False))
            .first()
        )

    def create(
        self,
        user_id: str,
        device_info: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> RefreshToken:
        now = now or utcnow()
        record = RefreshToken(
            user_id=user_id,
            token=generate_secure_token(40),
            expires_at=now + timedelta(seconds=REFRESH_TOKEN_MAX_AGE),
            is_revoked=False,
            device_info=device_info,
            created_at=now,
        )
        self.db.add(record)
        self.db.flush()
        return record

    def revoke(self, token_id: int) -> None:
        self.db.execute(
            update(RefreshToken)
            .where(RefreshToken.id == token_id)
            .values(is_revoked=True, revoked_at=utcnow())
        )

    def revoke_all_for_user(self, user_id: str) -> int:
        result = self.db.execute(
            update(RefreshToken)
            .where(RefreshToken.user_id == user_id, RefreshToken.is_revoked.is_(False))
            .values(is_revoked=True, revoked_at=utcnow())
        )
        return result.rowcount or 0

    def consume(self, token: str, now: Optional[datetime] = None) -> Optional[RefreshToken]:
        """
        Validate and revoke `token` in one conditional UPDATE.

        Returns the consumed row when exactly this call revoked it. A token
        that is unknown, already revoked (including by a concurrent request)
        or expired yields None. Expired tokens are revoked on the way out.
        """
        now = now or utcnow()

        result = self.db.execute(
            update(RefreshToken)
            .where(
                RefreshToken.token == token,
                RefreshToken.is_revoked.is_(False),
                RefreshToken.expires_at > now,
            )
            .values(is_revoked=True, revoked_at=now)
            .execution_options(synchronize_session=False)
        )

        if result.rowcount != 1:
            expired = self.find(token)
            if expired is not None and expired.expires_at <= now:
                logger.info("Refresh token %s expired at %s; revoking", expired.id, expired.expires_at)
                self.revoke(expired.id)
            return None

        record = self.db.query(RefreshToken).filter(RefreshToken.token == token).one()
        # The bulk UPDATE bypassed the identity map
        self.db.refresh(record)
        return record
