# models.py
# Role: SQLAlchemy ORM models for the finance tracker domain.
#       Users and their authentication records (login attempts, refresh tokens),
#       plus the per-user finance data: balance, transactions, budgets and pots.

import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    Boolean,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    UniqueConstraint,
)
from db import Base


def utcnow() -> datetime:
    """Naive UTC timestamp, the form every DateTime column stores."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _new_uuid() -> str:
    return str(uuid.uuid4())


# Money columns: 2 decimal places, returned as Decimal
Money = Numeric(12, 2, asdecimal=True)


class User(Base):
    """
    ORM model for an account holder.

    The password is stored only as a bcrypt hash. Failed logins are counted
    so the account can be locked for a while after too many attempts.
    """

    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=_new_uuid)
    email = Column(String(255), nullable=False, unique=True, index=True)
    full_name = Column(String(255), nullable=False)
    password_hash = Column(String(255), nullable=False)

    email_verified = Column(Boolean, nullable=False, default=False)
    verification_token = Column(String(128), nullable=True, index=True)

    failed_login_attempts = Column(Integer, nullable=False, default=0)
    lockout_until = Column(DateTime, nullable=True)
    last_login_at = Column(DateTime, nullable=True)
    last_ip_address = Column(String(64), nullable=True)

    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)


class LoginAttempt(Base):
    __tablename__ = "login_attempts"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    ip_address = Column(String(64), nullable=False)
    user_agent = Column(String(512), nullable=True)
    success = Column(Boolean, nullable=False)
    failure_reason = Column(String(255), nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)


class RefreshToken(Base):
    """
    Long-lived opaque credential used to mint a new session.

    A token is single-use: renewing a session revokes it and issues a
    replacement for the same user and device.
    """

    __tablename__ = "refresh_tokens"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    token = Column(String(128), nullable=False, unique=True, index=True)
    expires_at = Column(DateTime, nullable=False)
    is_revoked = Column(Boolean, nullable=False, default=False)
    revoked_at = Column(DateTime, nullable=True)

    # Free-text description of the client (user agent), carried over on rotation
    device_info = Column(String(512), nullable=True)

    created_at = Column(DateTime, nullable=False, default=utcnow)


class Balance(Base):
    __tablename__ = "balance"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, unique=True)
    current = Column(Money, nullable=False, default=0)
    income = Column(Money, nullable=False, default=0)
    expenses = Column(Money, nullable=False, default=0)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)


class Transaction(Base):
    """
    ORM model representing a single financial transaction.

    Negative amounts are expenses, positive amounts are income. Recurring
    transactions double as the user's recurring bills.
    """

    __tablename__ = "transactions"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    # Counterparty / merchant name
    name = Column(String(255), nullable=False)
    avatar = Column(String(255), nullable=True)
    category = Column(String(64), nullable=False, default="General")

    date = Column(Date, nullable=False)
    amount = Column(Money, nullable=False)
    recurring = Column(Boolean, nullable=False, default=False)

    created_at = Column(DateTime, nullable=False, default=utcnow)


class Budget(Base):
    """
    A per-category spending cap. Its transactions are the user's
    transactions in the same category.
    """

    __tablename__ = "budgets"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    category = Column(String(64), nullable=False)
    maximum = Column(Money, nullable=False)
    theme = Column(String(16), nullable=False)

    created_at = Column(DateTime, nullable=False, default=utcnow)


class Pot(Base):
    """A named savings goal: how much to save (target) and how much is saved (total)."""

    __tablename__ = "pots"
    __table_args__ = (UniqueConstraint("user_id", "name", name="uq_pots_user_name"),)

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    target = Column(Money, nullable=False)
    total = Column(Money, nullable=False, default=0)
    theme = Column(String(16), nullable=False)

    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)
