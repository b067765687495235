from datetime import date
from decimal import Decimal

import pytest

from models import Balance, Transaction
from app.services import finance


def _balance(db, user):
    row = db.query(Balance).filter(Balance.user_id == user.id).one()
    db.refresh(row)
    return row.current


def _add_tx(db, user, name, amount, category="General", day=date(2024, 8, 1), recurring=False):
    db.add(
        Transaction(
            user_id=user.id,
            name=name,
            category=category,
            date=day,
            amount=Decimal(amount),
            recurring=recurring,
        )
    )
    db.commit()


class TestPots:
    """Moving money between the main balance and savings pots."""

    def test_create_with_initial_amount(self, db, funded_user):
        pot = finance.create_pot(db, funded_user.id, "Holiday", "500", initial_amount="100")

        assert pot["total"] == Decimal("100.00")
        assert _balance(db, funded_user) == Decimal("900.00")
        tx = db.query(Transaction).filter(Transaction.user_id == funded_user.id).one()
        assert tx.name == "Transfer to Holiday Savings Pot"
        assert tx.amount == Decimal("-100.00")

    def test_names_are_unique_per_user(self, db, funded_user):
        finance.create_pot(db, funded_user.id, "Holiday", "500")

        with pytest.raises(finance.FinanceError, match="already exists"):
            finance.create_pot(db, funded_user.id, "Holiday", "100")

    @pytest.mark.parametrize("target", ["0", "-5", "100000000"])
    def test_target_bounds(self, db, funded_user, target):
        with pytest.raises(finance.FinanceError):
            finance.create_pot(db, funded_user.id, "Holiday", target)

    def test_cannot_add_more_than_balance(self, db, funded_user):
        pot = finance.create_pot(db, funded_user.id, "Holiday", "5000")

        with pytest.raises(finance.FinanceError, match="available balance"):
            finance.update_pot_balance(db, funded_user.id, pot["id"], "1000.01")

    def test_add_then_withdraw(self, db, funded_user):
        pot = finance.create_pot(db, funded_user.id, "Holiday", "5000")

        finance.update_pot_balance(db, funded_user.id, pot["id"], "250")
        updated = finance.update_pot_balance(db, funded_user.id, pot["id"], "-50")

        assert updated["total"] == Decimal("200.00")
        assert _balance(db, funded_user) == Decimal("800.00")
        names = [t["name"] for t in finance.get_transactions(db, funded_user.id)]
        assert "Withdrawal from Holiday Savings Pot" in names

    def test_cannot_withdraw_more_than_pot_holds(self, db, funded_user):
        pot = finance.create_pot(db, funded_user.id, "Holiday", "5000", initial_amount="20")

        with pytest.raises(finance.FinanceError, match="withdraw"):
            finance.update_pot_balance(db, funded_user.id, pot["id"], "-20.01")

    def test_zero_amount(self, db, funded_user):
        pot = finance.create_pot(db, funded_user.id, "Holiday", "5000")

        with pytest.raises(finance.FinanceError):
            finance.update_pot_balance(db, funded_user.id, pot["id"], "0")

    def test_delete_returns_funds(self, db, funded_user):
        pot = finance.create_pot(db, funded_user.id, "Holiday", "500", initial_amount="300")

        finance.delete_pot(db, funded_user.id, pot["id"])

        assert finance.get_pots(db, funded_user.id) == []
        assert _balance(db, funded_user) == Decimal("1000.00")

    def test_other_users_pot_is_not_found(self, db, funded_user):
        pot = finance.create_pot(db, funded_user.id, "Holiday", "500")

        with pytest.raises(finance.NotFoundError):
            finance.get_pot(db, "someone-else", pot["id"])

    def test_update_with_funds_commits_both_changes(self, db, funded_user):
        pot = finance.create_pot(db, funded_user.id, "Holiday", "500")

        updated = finance.update_pot(db, funded_user.id, pot["id"], name="Trip", target="900", add_funds="200")

        assert updated["name"] == "Trip"
        assert updated["total"] == Decimal("200.00")
        assert _balance(db, funded_user) == Decimal("800.00")

    def test_update_with_too_many_funds_changes_nothing(self, db, funded_user):
        pot = finance.create_pot(db, funded_user.id, "Holiday", "500")

        with pytest.raises(finance.FinanceError, match="available balance"):
            finance.update_pot(db, funded_user.id, pot["id"], name="Trip", target="900", add_funds="1000.01")
        db.rollback()

        assert finance.get_pot(db, funded_user.id, pot["id"])["name"] == "Holiday"
        assert _balance(db, funded_user) == Decimal("1000.00")

    def test_rename_to_existing_name(self, db, funded_user):
        finance.create_pot(db, funded_user.id, "Holiday", "500")
        laptop = finance.create_pot(db, funded_user.id, "Laptop", "500")

        with pytest.raises(finance.FinanceError, match="already exists"):
            finance.update_pot(db, funded_user.id, laptop["id"], name="Holiday", target="500")


class TestBudgets:
    def test_budget_collects_matching_expenses(self, db, user):
        finance.create_budget(db, user.id, "Bills", "100.00")
        _add_tx(db, user, "Electric Co", "-20", category="bills")
        _add_tx(db, user, "Refund", "5", category="Bills")
        _add_tx(db, user, "Cafe", "-3", category="Dining Out")

        (budget,) = finance.get_budgets(db, user.id)

        assert budget["maximum"] == "100.00"
        assert [t["name"] for t in budget["transactions"]] == ["Electric Co"]

    def test_duplicate_category_is_case_insensitive(self, db, user):
        finance.create_budget(db, user.id, "Bills", "100")

        with pytest.raises(finance.FinanceError):
            finance.create_budget(db, user.id, "BILLS", "50")

    def test_maximum_must_be_positive(self, db, user):
        with pytest.raises(finance.FinanceError):
            finance.create_budget(db, user.id, "Bills", "0")

    def test_update_and_delete(self, db, user):
        created = finance.create_budget(db, user.id, "Bills", "100")

        updated = finance.update_budget(db, user.id, created["id"], "Utilities", "120.5", theme="#000000")
        assert updated["category"] == "Utilities"
        assert updated["maximum"] == "120.50"

        finance.delete_budget(db, user.id, created["id"])
        assert finance.get_budgets(db, user.id) == []


class TestTransactions:
    def test_search_sort_and_paginate(self, db, user):
        for i in range(12):
            _add_tx(db, user, f"Shop {i:02d}", f"-{i + 1}", day=date(2024, 8, i + 1))
        _add_tx(db, user, "Salary", "3000", category="Income", day=date(2024, 8, 28))

        first = finance.list_transactions(db, user.id, search="shop", sort="latest", page=1, per_page=10)
        second = finance.list_transactions(db, user.id, search="shop", sort="latest", page=2, per_page=10)

        assert first["total_count"] == 12
        assert first["total_pages"] == 2
        assert first["transactions"][0]["name"] == "Shop 11"
        assert len(second["transactions"]) == 2

    def test_category_filter_and_unknown_sort(self, db, user):
        _add_tx(db, user, "Salary", "3000", category="Income")
        _add_tx(db, user, "Cafe", "-3", category="Dining Out")

        result = finance.list_transactions(db, user.id, category="income", sort="bogus")

        assert [t["name"] for t in result["transactions"]] == ["Salary"]
        assert result["sort"] == "latest"
        assert result["categories"] == ["Dining Out", "Income"]

    def test_page_is_clamped(self, db, user):
        result = finance.list_transactions(db, user.id, page=99)

        assert result["page"] == 1
        assert result["total_pages"] == 1


class TestRecurringBills:
    def test_one_bill_per_payee_with_status(self, db, user):
        today = date(2024, 8, 10)
        _add_tx(db, user, "Rent", "-500", day=date(2024, 7, 1), recurring=True)
        _add_tx(db, user, "Rent", "-500", day=date(2024, 8, 1), recurring=True)
        _add_tx(db, user, "Gym", "-30", day=date(2024, 7, 5), recurring=True)
        _add_tx(db, user, "Phone", "-20", day=date(2024, 7, 25), recurring=True)
        _add_tx(db, user, "Cafe", "-3", day=date(2024, 8, 2))

        bills = {b["name"]: b for b in finance.get_recurring_bills(db, user.id, today=today)}

        assert set(bills) == {"Rent", "Gym", "Phone"}
        assert bills["Rent"]["is_paid"] is True
        assert bills["Gym"]["is_overdue"] is True
        assert bills["Phone"]["is_overdue"] is False
        assert bills["Phone"]["due_date"] == date(2024, 8, 25)
