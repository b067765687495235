# filename: app/services/aggregations.py
"""
Presentation totals for budgets, pots and recurring bills.

Design goals:
- Pure: inputs are plain dicts already loaded by the caller, never mutated
- Safe: no error path; empty or missing input gives an all-zero result
- Exact: money is summed as Decimal, never float

Public API:
    filter_budgets(budgets, category_filter=None)
    filter_pots(pots, name_filter=None)
    budgets_to_chart(budgets)
    budget_spending(budget)
    pots_overview(pots, limit=4)
    summarize_recurring_bills(bills, today)
"""

from __future__ import annotations

from datetime import date, timedelta
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Iterable, List, Optional

ZERO = Decimal("0")
HUNDRED = Decimal("100")

# Unpaid bills due within this many days count as "due soon"
DUE_SOON_DAYS = 5


def to_decimal(value: Any) -> Decimal:
    """
    Parse a money value (Decimal, int, float or decimal string).
    Anything unparseable counts as zero.
    """
    if value is None:
        return ZERO
    if isinstance(value, Decimal):
        return value if value.is_finite() else ZERO
    try:
        d = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        return ZERO
    return d if d.is_finite() else ZERO


# ---- Budgets ----

def _spent(budget: Dict[str, Any]) -> Decimal:
    transactions = budget.get("transactions") or []
    return sum((abs(to_decimal(tx.get("amount"))) for tx in transactions), ZERO)


def filter_budgets(
    budgets: Optional[Iterable[Dict[str, Any]]],
    category_filter: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Filter budgets by category (case-insensitive exact match) and total them.

    Returns:
        {filtered_budgets, total_budget, total_spent, remaining_budget}
    """
    budgets = list(budgets or [])
    if not budgets:
        return {
            "filtered_budgets": [],
            "total_budget": ZERO,
            "total_spent": ZERO,
            "remaining_budget": ZERO,
        }

    if category_filter:
        wanted = category_filter.lower()
        filtered = [b for b in budgets if str(b.get("category", "")).lower() == wanted]
    else:
        filtered = budgets

    total = sum((to_decimal(b.get("maximum")) for b in filtered), ZERO)
    spent = sum((_spent(b) for b in filtered), ZERO)

    return {
        "filtered_budgets": filtered,
        "total_budget": total,
        "total_spent": spent,
        "remaining_budget": total - spent,
    }


def budget_spending(budget: Dict[str, Any], latest_count: int = 3) -> Dict[str, Any]:
    """Per-budget card figures: spent, remaining (never below zero) and latest transactions."""
    maximum = to_decimal(budget.get("maximum"))
    spent = _spent(budget)
    transactions = list(budget.get("transactions") or [])
    latest = sorted(transactions, key=lambda tx: tx.get("date") or date.min, reverse=True)[:latest_count]
    return {
        "spent": spent,
        "remaining": max(maximum - spent, ZERO),
        "latest": latest,
    }


def budgets_to_chart(budgets: Optional[Iterable[Dict[str, Any]]]) -> Dict[str, Any]:
    """Slices for the budget pie chart, one per budget, in input order."""
    budgets = list(budgets or [])
    chart_data = [
        {
            "name": b.get("category"),
            "value": to_decimal(b.get("maximum")),
            "fill": b.get("theme"),
        }
        for b in budgets
    ]
    total = sum((item["value"] for item in chart_data), ZERO)
    return {"chart_data": chart_data, "total": total}


# ---- Pots ----

def filter_pots(
    pots: Optional[Iterable[Dict[str, Any]]],
    name_filter: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Filter pots by name (case-insensitive substring) and total them.

    Returns:
        {filtered_pots, total_target, total_saved, progress_percentage, remaining_to_save}
    """
    pots = list(pots or [])
    if not pots:
        return {
            "filtered_pots": [],
            "total_target": ZERO,
            "total_saved": ZERO,
            "progress_percentage": ZERO,
            "remaining_to_save": ZERO,
        }

    if name_filter:
        needle = name_filter.lower()
        filtered = [p for p in pots if needle in str(p.get("name", "")).lower()]
    else:
        filtered = pots

    total_target = sum((to_decimal(p.get("target")) for p in filtered), ZERO)
    total_saved = sum((to_decimal(p.get("total")) for p in filtered), ZERO)
    progress = total_saved / total_target * HUNDRED if total_target > 0 else ZERO

    return {
        "filtered_pots": filtered,
        "total_target": total_target,
        "total_saved": total_saved,
        "progress_percentage": progress,
        "remaining_to_save": total_target - total_saved,
    }


def pot_progress(pot: Dict[str, Any]) -> Decimal:
    target = to_decimal(pot.get("target"))
    if target <= 0:
        return ZERO
    return to_decimal(pot.get("total")) / target * HUNDRED


def pots_overview(pots: Optional[Iterable[Dict[str, Any]]], limit: int = 4) -> Dict[str, Any]:
    pots = list(pots or [])
    return {
        "total_saved": sum((to_decimal(p.get("total")) for p in pots), ZERO),
        "pots": pots[:limit],
    }


# ---- Recurring bills ----

def summarize_recurring_bills(
    bills: Optional[Iterable[Dict[str, Any]]],
    today: date,
) -> Dict[str, Any]:
    """
    Split recurring bills (negative amounts only) into paid / upcoming / due soon.

    Each bucket reports a count and the absolute total.
    """
    bills = [b for b in (bills or []) if to_decimal(b.get("amount")) < 0]
    soon_limit = today + timedelta(days=DUE_SOON_DAYS)

    def _bucket(items: List[Dict[str, Any]]) -> Dict[str, Any]:
        return {
            "count": len(items),
            "amount": sum((abs(to_decimal(b.get("amount"))) for b in items), ZERO),
        }

    paid = [b for b in bills if b.get("is_paid")]
    upcoming = [b for b in bills if not b.get("is_paid")]
    due_soon = [
        b for b in upcoming
        if not b.get("is_overdue") and b.get("due_date") is not None and b["due_date"] <= soon_limit
    ]

    return {
        "bills": bills,
        "total": _bucket(bills)["amount"],
        "paid": _bucket(paid),
        "upcoming": _bucket(upcoming),
        "due_soon": _bucket(due_soon),
    }
