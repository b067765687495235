"""
This script loads the demo account's data (balance, transactions, budgets,
pots) from the CSV files in data-migration/demo/ into the database.

All source files are pre-cleaned (consistent headers, ISO dates, dot decimal
separator). The script validates required columns, removes empty rows and
inserts the rows for the demo user using SQLAlchemy ORM.

Purpose:
- Give the demo login a realistic data set
- Serve as a repeatable step during development: existing demo rows are
  replaced on every run

Usage (from the project root):
    python data-migration/seed_demo_data.py
"""


from __future__ import annotations

import logging
import sys
from pathlib import Path

import pandas as pd

# Allow running as a plain script from the project root
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from config import DEMO_USER_ID  # noqa: E402
from db import SessionLocal, engine, Base  # noqa: E402
from models import Balance, Budget, Pot, Transaction  # noqa: E402
from app.services.aggregations import to_decimal  # noqa: E402
from app.services.auth import ensure_demo_user  # noqa: E402
from app.services.import_helpers import (  # noqa: E402
    build_budget_from_dict,
    build_pot_from_dict,
    build_transaction_from_dict,
)

logger = logging.getLogger("seed_demo_data")

DEMO_DIR = Path(__file__).resolve().parent / "demo"

REQUIRED_COLUMNS = {
    "transactions.csv": {"name", "category", "date", "amount"},
    "budgets.csv": {"category", "maximum"},
    "pots.csv": {"name", "target", "total"},
    "balance.csv": {"current", "income", "expenses"},
}


def _none_if_nan(x):
    if pd.isna(x):
        return None
    s = str(x).strip()
    return None if s == "" or s.lower() == "nan" else s


def read_demo_csv(folder: Path, filename: str) -> list[dict]:
    """Read one demo CSV into a list of row dicts (strings, NaN → None)."""
    df = pd.read_csv(folder / filename, dtype=str)

    # normalize headers
    df.columns = df.columns.str.strip().str.lower()

    missing = REQUIRED_COLUMNS[filename] - set(df.columns)
    if missing:
        raise ValueError(f"{filename}: missing required columns: {sorted(missing)}")

    # drop fully empty rows
    df = df.dropna(how="all").copy()

    return [
        {col: _none_if_nan(val) for col, val in row.items()}
        for row in df.to_dict(orient="records")
    ]


def seed_demo_data(folder: Path = DEMO_DIR) -> dict:
    folder = Path(folder)
    Base.metadata.create_all(bind=engine)

    session = SessionLocal()
    counts = {}

    try:
        ensure_demo_user(session)

        # replace previous demo rows
        for model in (Transaction, Budget, Pot):
            session.query(model).filter(model.user_id == DEMO_USER_ID).delete(synchronize_session=False)

        transactions = [
            build_transaction_from_dict(row, DEMO_USER_ID)
            for row in read_demo_csv(folder, "transactions.csv")
            if row.get("name")
        ]
        budgets = [build_budget_from_dict(row, DEMO_USER_ID) for row in read_demo_csv(folder, "budgets.csv")]
        pots = [build_pot_from_dict(row, DEMO_USER_ID) for row in read_demo_csv(folder, "pots.csv")]

        session.add_all(transactions + budgets + pots)

        balance_rows = read_demo_csv(folder, "balance.csv")
        if balance_rows:
            row = balance_rows[0]
            balance = session.query(Balance).filter(Balance.user_id == DEMO_USER_ID).first()
            if balance is None:
                balance = Balance(user_id=DEMO_USER_ID)
                session.add(balance)
            balance.current = to_decimal(row["current"])
            balance.income = to_decimal(row["income"])
            balance.expenses = to_decimal(row["expenses"])

        session.commit()
        counts = {"transactions": len(transactions), "budgets": len(budgets), "pots": len(pots)}
        logger.info("Seeded demo data: %s", counts)

    except Exception:
        session.rollback()
        raise
    finally:
        session.close()

    return counts


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(message)s")
    seed_demo_data()
