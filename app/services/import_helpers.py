# app/services/import_helpers.py
#
# Import Helper Functions
# Converts plain row dicts (seed CSVs, form posts) into ORM models
# and calculates month ranges used by the recurring bills summary.

from datetime import datetime, date

from config import DEFAULT_BUDGET_THEME
from models import Budget, Pot, Transaction
from app.services.aggregations import to_decimal


# ---- Row Conversion ----

def _parse_date(raw) -> date:
    if isinstance(raw, datetime):
        return raw.date()
    if isinstance(raw, date):
        return raw
    return datetime.strptime(str(raw).strip()[:10], "%Y-%m-%d").date()


def _truthy(raw) -> bool:
    return str(raw).strip().lower() in ("1", "true", "yes", "y")


def build_transaction_from_dict(tx: dict, user_id: str) -> Transaction:
    """
    Convert one transaction row into a Transaction ORM object.

    Required keys: name, date, amount. Optional: avatar, category, recurring.
    """
    return Transaction(
        user_id=user_id,
        name=str(tx.get("name") or "").strip(),
        avatar=tx.get("avatar") or None,
        category=tx.get("category") or "General",
        date=_parse_date(tx.get("date")),
        amount=to_decimal(tx.get("amount")),
        recurring=_truthy(tx.get("recurring", False)),
    )


def build_budget_from_dict(row: dict, user_id: str) -> Budget:
    return Budget(
        user_id=user_id,
        category=str(row.get("category") or "").strip(),
        maximum=to_decimal(row.get("maximum")),
        theme=row.get("theme") or DEFAULT_BUDGET_THEME,
    )


def build_pot_from_dict(row: dict, user_id: str) -> Pot:
    return Pot(
        user_id=user_id,
        name=str(row.get("name") or "").strip(),
        target=to_decimal(row.get("target")),
        total=to_decimal(row.get("total")),
        theme=row.get("theme") or DEFAULT_BUDGET_THEME,
    )


# ---- Date Range Utilities ----

def get_month_range(month_str: str | None, today: date | None = None):
    """
    month_str: 'YYYY-MM' or None.
    Returns (start_date, end_date_exclusive, normalized_month_str).
    If month_str is None or invalid, uses the CURRENT month.
    """
    today = today or date.today()

    if month_str:
        try:
            year_str, month_only_str = month_str.split("-")
            year = int(year_str)
            month = int(month_only_str)
            if not (1 <= month <= 12):
                raise ValueError
        except ValueError:
            year, month = today.year, today.month
    else:
        year, month = today.year, today.month

    start_date = date(year, month, 1)
    if month == 12:
        end_date_exclusive = date(year + 1, 1, 1)
    else:
        end_date_exclusive = date(year, month + 1, 1)

    normalized = f"{year:04d}-{month:02d}"
    return start_date, end_date_exclusive, normalized
