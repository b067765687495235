import importlib.util
from datetime import date
from decimal import Decimal
from pathlib import Path

import pytest

from config import DEFAULT_BUDGET_THEME, DEMO_USER_ID
from models import Balance, Budget, Pot, Transaction, User
from app.services.import_helpers import (
    build_budget_from_dict,
    build_pot_from_dict,
    build_transaction_from_dict,
    get_month_range,
)

SEED_SCRIPT = Path(__file__).resolve().parent.parent / "data-migration" / "seed_demo_data.py"


@pytest.fixture(scope="module")
def seed():
    spec = importlib.util.spec_from_file_location("seed_demo_data", SEED_SCRIPT)
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


@pytest.fixture
def demo_folder(tmp_path):
    (tmp_path / "transactions.csv").write_text(
        "name,avatar,category,date,amount,recurring\n"
        "Salary,,Income,2024-08-01,3000.00,false\n"
        "Rent,,Bills,2024-08-02,-950.00,true\n"
        ",,,,,\n"
        "Cafe,,Dining Out,2024-08-03,-4.50,\n"
    )
    (tmp_path / "budgets.csv").write_text(
        "category,maximum,theme\n"
        "Bills,750.00,#82C9D7\n"
        "Dining Out,75.00,\n"
    )
    (tmp_path / "pots.csv").write_text(
        "name,target,total,theme\n"
        "Holiday,1000.00,250.00,#626070\n"
    )
    (tmp_path / "balance.csv").write_text(
        "current,income,expenses\n"
        "4836.00,3814.25,1700.50\n"
    )
    return tmp_path


def _row_counts(db):
    return {
        "transactions": db.query(Transaction).filter(Transaction.user_id == DEMO_USER_ID).count(),
        "budgets": db.query(Budget).filter(Budget.user_id == DEMO_USER_ID).count(),
        "pots": db.query(Pot).filter(Pot.user_id == DEMO_USER_ID).count(),
    }


class TestSeedDemoData:
    """Loading the demo CSVs into the demo user's rows."""

    def test_seeding_twice_replaces_rows(self, seed, demo_folder, db):
        first = seed.seed_demo_data(demo_folder)
        second = seed.seed_demo_data(demo_folder)

        assert first == second == {"transactions": 3, "budgets": 2, "pots": 1}
        assert _row_counts(db) == first
        assert db.query(User).filter(User.id == DEMO_USER_ID).count() == 1

    def test_balance_and_defaults(self, seed, demo_folder, db):
        seed.seed_demo_data(demo_folder)

        balance = db.query(Balance).filter(Balance.user_id == DEMO_USER_ID).one()
        assert balance.current == Decimal("4836.00")
        assert balance.income == Decimal("3814.25")

        dining = db.query(Budget).filter(Budget.category == "Dining Out").one()
        assert dining.theme == DEFAULT_BUDGET_THEME

        rent = db.query(Transaction).filter(Transaction.name == "Rent").one()
        assert rent.recurring is True
        assert rent.date == date(2024, 8, 2)

    def test_shipped_demo_files_load(self, seed, db):
        counts = seed.seed_demo_data()

        assert counts["transactions"] > 0
        assert _row_counts(db) == counts

    def test_missing_required_column(self, seed, tmp_path):
        (tmp_path / "pots.csv").write_text("name,target\nHoliday,1000\n")

        with pytest.raises(ValueError, match="missing required columns"):
            seed.read_demo_csv(tmp_path, "pots.csv")

    def test_headers_are_normalized_and_blank_cells_are_none(self, seed, tmp_path):
        (tmp_path / "budgets.csv").write_text(" Category ,MAXIMUM,theme\nBills,750.00,\n")

        assert seed.read_demo_csv(tmp_path, "budgets.csv") == [
            {"category": "Bills", "maximum": "750.00", "theme": None}
        ]


class TestRowBuilders:
    def test_transaction_defaults(self):
        tx = build_transaction_from_dict({"name": " Cafe ", "date": "2024-08-03", "amount": "-4.50"}, "u-1")

        assert tx.name == "Cafe"
        assert tx.category == "General"
        assert tx.amount == Decimal("-4.50")
        assert tx.recurring is False

    def test_budget_and_pot_default_theme(self):
        budget = build_budget_from_dict({"category": "Bills", "maximum": "10"}, "u-1")
        pot = build_pot_from_dict({"name": "Holiday", "target": "100", "total": None}, "u-1")

        assert budget.theme == DEFAULT_BUDGET_THEME
        assert pot.theme == DEFAULT_BUDGET_THEME
        assert pot.total == 0

    def test_month_range(self):
        assert get_month_range("2024-12") == (date(2024, 12, 1), date(2025, 1, 1), "2024-12")
        assert get_month_range("bogus", today=date(2024, 8, 10))[2] == "2024-08"
