# app/services/finance.py
"""
Finance data access for one user: balance, transactions, budgets, pots
and recurring bills.

Rows are returned as plain dicts (money as Decimal, budget maximum as a
decimal string) so the aggregation helpers and templates never touch ORM
objects. Rule violations raise FinanceError (NotFoundError for missing rows).
"""

from __future__ import annotations

import calendar
import logging
import math
from datetime import date
from decimal import Decimal
from typing import Any, Dict, List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from config import DEFAULT_BUDGET_THEME, MAX_POT_AMOUNT, TRANSACTIONS_PER_PAGE
from models import Balance, Budget, Pot, Transaction
from app.services.aggregations import to_decimal
from app.services.import_helpers import get_month_range

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")
MAX_POT = Decimal(str(MAX_POT_AMOUNT))

SORT_OPTIONS = {
    "latest": (Transaction.date.desc(), Transaction.id.desc()),
    "oldest": (Transaction.date.asc(), Transaction.id.asc()),
    "a-z": (Transaction.name.asc(),),
    "z-a": (Transaction.name.desc(),),
    "highest": (Transaction.amount.desc(),),
    "lowest": (Transaction.amount.asc(),),
}


class FinanceError(Exception):
    """A finance rule was violated; the message is safe to show the user."""


class NotFoundError(FinanceError):
    pass


def _money(value: Any) -> Decimal:
    return to_decimal(value).quantize(CENT)


# ---- Serialization ----

def serialize_transaction(tx: Transaction) -> Dict[str, Any]:
    return {
        "id": tx.id,
        "name": tx.name,
        "avatar": tx.avatar,
        "category": tx.category,
        "date": tx.date,
        "amount": to_decimal(tx.amount),
        "recurring": bool(tx.recurring),
        "type": "income" if to_decimal(tx.amount) > 0 else "expense",
    }


def serialize_budget(budget: Budget, transactions: List[Dict[str, Any]]) -> Dict[str, Any]:
    return {
        "id": budget.id,
        "category": budget.category,
        "maximum": str(_money(budget.maximum)),
        "theme": budget.theme,
        "transactions": transactions,
    }


def serialize_pot(pot: Pot) -> Dict[str, Any]:
    return {
        "id": pot.id,
        "name": pot.name,
        "target": to_decimal(pot.target),
        "total": to_decimal(pot.total),
        "theme": pot.theme,
    }


# ---- Balance & transactions ----

def get_balance(db: Session, user_id: str) -> Balance:
    balance = db.query(Balance).filter(Balance.user_id == user_id).first()
    if balance is None:
        balance = Balance(user_id=user_id, current=0, income=0, expenses=0)
        db.add(balance)
        db.flush()
    return balance


def get_transactions(db: Session, user_id: str, limit: Optional[int] = None) -> List[Dict[str, Any]]:
    query = (
        db.query(Transaction)
        .filter(Transaction.user_id == user_id)
        .order_by(Transaction.date.desc(), Transaction.id.desc())
    )
    if limit:
        query = query.limit(limit)
    return [serialize_transaction(tx) for tx in query.all()]


def _record_transaction(
    db: Session,
    user_id: str,
    name: str,
    category: str,
    amount: Decimal,
    avatar: Optional[str] = None,
) -> None:
    db.add(
        Transaction(
            user_id=user_id,
            name=name,
            avatar=avatar,
            category=category,
            date=date.today(),
            amount=amount,
            recurring=False,
        )
    )


def list_transactions(
    db: Session,
    user_id: str,
    search: Optional[str] = None,
    category: Optional[str] = None,
    sort: str = "latest",
    page: int = 1,
    per_page: int = TRANSACTIONS_PER_PAGE,
) -> Dict[str, Any]:
    """Search, filter, sort and paginate the user's transactions."""
    query = db.query(Transaction).filter(Transaction.user_id == user_id)

    if search:
        query = query.filter(Transaction.name.ilike(f"%{search.strip()}%"))

    if category and category.lower() not in ("all", "all transactions"):
        query = query.filter(func.lower(Transaction.category) == category.lower())

    sort_key = sort if sort in SORT_OPTIONS else "latest"

    total_count = query.count()
    total_pages = max(1, math.ceil(total_count / per_page))
    page = min(max(1, page), total_pages)

    rows = (
        query.order_by(*SORT_OPTIONS[sort_key])
        .offset((page - 1) * per_page)
        .limit(per_page)
        .all()
    )

    categories = [
        row[0]
        for row in (
            db.query(Transaction.category)
            .filter(Transaction.user_id == user_id)
            .distinct()
            .order_by(Transaction.category)
            .all()
        )
    ]

    return {
        "transactions": [serialize_transaction(tx) for tx in rows],
        "page": page,
        "total_pages": total_pages,
        "total_count": total_count,
        "sort": sort_key,
        "categories": categories,
    }


# ---- Budgets ----

def get_budgets(db: Session, user_id: str) -> List[Dict[str, Any]]:
    """Budgets with their expense transactions (same category, newest first)."""
    budgets = db.query(Budget).filter(Budget.user_id == user_id).order_by(Budget.id).all()

    expenses = (
        db.query(Transaction)
        .filter(Transaction.user_id == user_id, Transaction.amount < 0)
        .order_by(Transaction.date.desc(), Transaction.id.desc())
        .all()
    )
    by_category: Dict[str, List[Dict[str, Any]]] = {}
    for tx in expenses:
        by_category.setdefault(tx.category.lower(), []).append(serialize_transaction(tx))

    return [serialize_budget(b, by_category.get(b.category.lower(), [])) for b in budgets]


def _get_owned_budget(db: Session, user_id: str, budget_id: int) -> Budget:
    budget = db.query(Budget).filter(Budget.id == budget_id, Budget.user_id == user_id).first()
    if budget is None:
        raise NotFoundError("Budget not found")
    return budget


def _validate_budget(category: str, maximum: Any) -> Decimal:
    if not category or not category.strip():
        raise FinanceError("Category is required")
    amount = _money(maximum)
    if amount <= 0:
        raise FinanceError("Maximum spend must be greater than zero")
    return amount


def create_budget(
    db: Session,
    user_id: str,
    category: str,
    maximum: Any,
    theme: str = DEFAULT_BUDGET_THEME,
) -> Dict[str, Any]:
    amount = _validate_budget(category, maximum)

    duplicate = (
        db.query(Budget)
        .filter(Budget.user_id == user_id, func.lower(Budget.category) == category.strip().lower())
        .first()
    )
    if duplicate:
        raise FinanceError(f'A budget for "{category.strip()}" already exists')

    budget = Budget(user_id=user_id, category=category.strip(), maximum=amount, theme=theme)
    db.add(budget)
    db.commit()
    db.refresh(budget)
    return serialize_budget(budget, [])


def update_budget(
    db: Session,
    user_id: str,
    budget_id: int,
    category: str,
    maximum: Any,
    theme: Optional[str] = None,
) -> Dict[str, Any]:
    budget = _get_owned_budget(db, user_id, budget_id)
    budget.maximum = _validate_budget(category, maximum)
    budget.category = category.strip()
    if theme:
        budget.theme = theme
    db.commit()
    db.refresh(budget)
    return serialize_budget(budget, [])


def delete_budget(db: Session, user_id: str, budget_id: int) -> None:
    budget = _get_owned_budget(db, user_id, budget_id)
    db.delete(budget)
    db.commit()


# ---- Pots ----

def get_pots(db: Session, user_id: str) -> List[Dict[str, Any]]:
    pots = db.query(Pot).filter(Pot.user_id == user_id).order_by(Pot.id).all()
    return [serialize_pot(p) for p in pots]


def _get_owned_pot(db: Session, user_id: str, pot_id: int) -> Pot:
    pot = db.query(Pot).filter(Pot.id == pot_id, Pot.user_id == user_id).first()
    if pot is None:
        raise NotFoundError("Pot not found")
    return pot


def get_pot(db: Session, user_id: str, pot_id: int) -> Dict[str, Any]:
    return serialize_pot(_get_owned_pot(db, user_id, pot_id))


def _validate_target(target: Any) -> Decimal:
    amount = _money(target)
    if amount <= 0:
        raise FinanceError("Target must be greater than zero")
    if amount > MAX_POT:
        raise FinanceError(f"Target amount cannot exceed {MAX_POT:,.2f}")
    return amount


def _ensure_unique_pot_name(db: Session, user_id: str, name: str, exclude_id: Optional[int] = None) -> None:
    query = db.query(Pot).filter(Pot.user_id == user_id, Pot.name == name)
    if exclude_id is not None:
        query = query.filter(Pot.id != exclude_id)
    if query.first():
        raise FinanceError(f'A pot with the name "{name}" already exists')


def create_pot(
    db: Session,
    user_id: str,
    name: str,
    target: Any,
    theme: str = DEFAULT_BUDGET_THEME,
    initial_amount: Any = 0,
) -> Dict[str, Any]:
    name = (name or "").strip()
    if not name:
        raise FinanceError("Pot name is required")
    target_amount = _validate_target(target)
    _ensure_unique_pot_name(db, user_id, name)

    initial = _money(initial_amount)
    if initial < 0:
        raise FinanceError("Initial amount cannot be negative")

    balance = get_balance(db, user_id)
    if initial > 0 and to_decimal(balance.current) < initial:
        raise FinanceError(f"Cannot add more than your available balance of {_money(balance.current)}")

    pot = Pot(user_id=user_id, name=name, target=target_amount, total=initial, theme=theme)
    db.add(pot)

    if initial > 0:
        balance.current = _money(balance.current) - initial
        _record_transaction(db, user_id, f"Transfer to {name} Savings Pot", "Savings", -initial)

    db.commit()
    db.refresh(pot)
    return serialize_pot(pot)


def update_pot(
    db: Session,
    user_id: str,
    pot_id: int,
    name: str,
    target: Any,
    theme: Optional[str] = None,
    add_funds: Any = 0,
) -> Dict[str, Any]:
    """
    Edit a pot, optionally moving `add_funds` from the balance into it.

    Both changes are committed together, so a rejected transfer leaves the
    pot untouched.
    """
    pot = _get_owned_pot(db, user_id, pot_id)
    name = (name or "").strip()
    if not name:
        raise FinanceError("Pot name is required")
    if name != pot.name:
        _ensure_unique_pot_name(db, user_id, name, exclude_id=pot.id)

    target_amount = _validate_target(target)
    extra = _money(add_funds)
    if extra < 0:
        raise FinanceError("Amount to add cannot be negative")

    pot.name = name
    pot.target = target_amount
    if theme:
        pot.theme = theme
    if extra > 0:
        _move_funds(db, user_id, pot, extra)

    db.commit()
    db.refresh(pot)
    return serialize_pot(pot)


def _move_funds(db: Session, user_id: str, pot: Pot, delta: Decimal) -> None:
    """Apply a balance <-> pot transfer to the session without committing."""
    balance = get_balance(db, user_id)

    if delta > 0 and _money(balance.current) < delta:
        raise FinanceError(f"Cannot add more than your available balance of {_money(balance.current)}")

    new_total = _money(pot.total) + delta
    if new_total < 0:
        raise FinanceError("Cannot withdraw more than the current balance")

    pot.total = new_total
    balance.current = _money(balance.current) - delta

    if delta > 0:
        _record_transaction(db, user_id, f"Transfer to {pot.name} Savings Pot", "Savings", -delta)
    else:
        _record_transaction(db, user_id, f"Withdrawal from {pot.name} Savings Pot", "Withdrawal", -delta)


def update_pot_balance(db: Session, user_id: str, pot_id: int, amount: Any) -> Dict[str, Any]:
    """
    Move money between the main balance and a pot.

    Positive `amount` adds to the pot (bounded by the available balance),
    negative withdraws (bounded by what the pot holds).
    """
    delta = _money(amount)
    if delta == 0:
        raise FinanceError("Amount must not be zero")

    pot = _get_owned_pot(db, user_id, pot_id)
    _move_funds(db, user_id, pot, delta)

    db.commit()
    db.refresh(pot)
    return serialize_pot(pot)


def delete_pot(db: Session, user_id: str, pot_id: int) -> None:
    """Delete a pot; whatever it holds goes back to the main balance."""
    pot = _get_owned_pot(db, user_id, pot_id)
    returned = _money(pot.total)

    if returned > 0:
        balance = get_balance(db, user_id)
        balance.current = _money(balance.current) + returned
        _record_transaction(
            db, user_id, f"Returned funds from deleted {pot.name} Savings Pot", "Return", returned
        )

    db.delete(pot)
    db.commit()
    logger.info("Deleted pot %s for user %s (returned %s)", pot_id, user_id, returned)


# ---- Recurring bills ----

def get_recurring_bills(db: Session, user_id: str, today: Optional[date] = None) -> List[Dict[str, Any]]:
    """
    One bill per recurring payee, due on the day of month of its latest payment.

    A bill is paid when it has a payment in the current month, overdue when
    it is unpaid and its due date this month has passed.
    """
    today = today or date.today()
    month_start, next_month_start, _ = get_month_range(None, today=today)
    last_day = calendar.monthrange(today.year, today.month)[1]

    rows = (
        db.query(Transaction)
        .filter(Transaction.user_id == user_id, Transaction.recurring.is_(True))
        .order_by(Transaction.date.desc(), Transaction.id.desc())
        .all()
    )

    bills: List[Dict[str, Any]] = []
    seen = set()
    for tx in rows:
        if tx.name in seen:
            continue
        seen.add(tx.name)

        due_day = tx.date.day
        due_date = date(today.year, today.month, min(due_day, last_day))
        is_paid = month_start <= tx.date < next_month_start

        bill = serialize_transaction(tx)
        bill.update(
            {
                "due_day": due_day,
                "due_date": due_date,
                "is_paid": is_paid,
                "is_overdue": not is_paid and due_date < today,
            }
        )
        bills.append(bill)

    bills.sort(key=lambda b: b["due_day"])
    return bills


# ---- Everything for the overview ----

def get_financial_data(db: Session, user_id: str, today: Optional[date] = None) -> Dict[str, Any]:
    balance = get_balance(db, user_id)
    return {
        "balance": {
            "current": to_decimal(balance.current),
            "income": to_decimal(balance.income),
            "expenses": to_decimal(balance.expenses),
        },
        "transactions": get_transactions(db, user_id, limit=30),
        "budgets": get_budgets(db, user_id),
        "pots": get_pots(db, user_id),
        "bills": get_recurring_bills(db, user_id, today=today),
    }


