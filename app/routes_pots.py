# routes_pots.py
"""
Savings pots page.

POST /pots takes an `intent` field:
- create      name, target, theme, optional initial_amount
- update      pot_id, name, target, theme, optional add_funds
- delete      pot_id (the pot's money goes back to the balance)
- add-money   pot_id, amount
- withdraw    pot_id, amount
"""

from typing import Optional

from fastapi import APIRouter, Depends, Form, Query, Request
from fastapi.responses import HTMLResponse, RedirectResponse
from sqlalchemy.orm import Session

from config import DEFAULT_BUDGET_THEME
from app.deps import get_db, require_user_id, templates
from app.services import aggregations, finance

router = APIRouter()


def _render(request: Request, db: Session, user_id: str, name_filter: Optional[str], error=None, status_code=200):
    pots = finance.get_pots(db, user_id)
    totals = aggregations.filter_pots(pots, name_filter)
    balance = finance.get_balance(db, user_id)

    cards = [
        {"pot": p, "progress": aggregations.pot_progress(p)}
        for p in totals["filtered_pots"]
    ]

    return templates.TemplateResponse(
        request,
        "pots.html",
        {
            "filter": name_filter or "",
            "cards": cards,
            "totals": totals,
            "current_balance": aggregations.to_decimal(balance.current),
            "error": error,
        },
        status_code=status_code,
    )


@router.get("/pots", response_class=HTMLResponse)
def pots_page(
    request: Request,
    filter: Optional[str] = Query(None),
    user_id: str = Depends(require_user_id),
    db: Session = Depends(get_db),
):
    return _render(request, db, user_id, filter)


@router.post("/pots", response_class=HTMLResponse)
def pots_action(
    request: Request,
    intent: str = Form(...),
    pot_id: Optional[int] = Form(None),
    name: str = Form(""),
    target: str = Form(""),
    theme: str = Form(DEFAULT_BUDGET_THEME),
    initial_amount: str = Form("0"),
    add_funds: str = Form(""),
    amount: str = Form(""),
    user_id: str = Depends(require_user_id),
    db: Session = Depends(get_db),
):
    try:
        if intent == "create":
            finance.create_pot(db, user_id, name, target, theme=theme, initial_amount=initial_amount)
        elif pot_id is None:
            return _render(request, db, user_id, None, error="Invalid form data", status_code=400)
        elif intent == "update":
            finance.update_pot(db, user_id, pot_id, name, target, theme=theme, add_funds=add_funds)
        elif intent == "delete":
            finance.delete_pot(db, user_id, pot_id)
        elif intent in ("add-money", "withdraw"):
            value = aggregations.to_decimal(amount)
            if value <= 0:
                raise finance.FinanceError("Amount must be greater than zero")
            finance.update_pot_balance(db, user_id, pot_id, value if intent == "add-money" else -value)
        else:
            return _render(request, db, user_id, None, error="Invalid form data", status_code=400)
    except finance.NotFoundError as e:
        db.rollback()
        return _render(request, db, user_id, None, error=str(e), status_code=404)
    except finance.FinanceError as e:
        db.rollback()
        return _render(request, db, user_id, None, error=str(e), status_code=400)

    return RedirectResponse(url="/pots", status_code=303)
