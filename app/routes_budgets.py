# routes_budgets.py
"""
Budgets page: per-category spending caps with the spending counted against them.

POST /budgets takes an `intent` field (create / update / delete), the same
form the page submits.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Form, Query, Request
from fastapi.responses import HTMLResponse, RedirectResponse
from sqlalchemy.orm import Session

from config import DEFAULT_BUDGET_THEME
from app.deps import get_db, require_user_id, templates
from app.services import aggregations, finance

router = APIRouter()


def _render(request: Request, db: Session, user_id: str, category: Optional[str], error=None, status_code=200):
    budgets = finance.get_budgets(db, user_id)
    totals = aggregations.filter_budgets(budgets, category)

    cards = [
        {"budget": b, **aggregations.budget_spending(b)}
        for b in totals["filtered_budgets"]
    ]

    return templates.TemplateResponse(
        request,
        "budgets.html",
        {
            "category": category or "",
            "cards": cards,
            "totals": totals,
            "chart": aggregations.budgets_to_chart(totals["filtered_budgets"]),
            "error": error,
        },
        status_code=status_code,
    )


@router.get("/budgets", response_class=HTMLResponse)
def budgets_page(
    request: Request,
    category: Optional[str] = Query(None),
    user_id: str = Depends(require_user_id),
    db: Session = Depends(get_db),
):
    return _render(request, db, user_id, category)


@router.post("/budgets", response_class=HTMLResponse)
def budgets_action(
    request: Request,
    intent: str = Form(...),
    budget_id: Optional[int] = Form(None),
    category: str = Form(""),
    maximum: str = Form(""),
    theme: str = Form(DEFAULT_BUDGET_THEME),
    user_id: str = Depends(require_user_id),
    db: Session = Depends(get_db),
):
    try:
        if intent == "create":
            finance.create_budget(db, user_id, category, maximum, theme=theme)
        elif intent == "update" and budget_id is not None:
            finance.update_budget(db, user_id, budget_id, category, maximum, theme=theme)
        elif intent == "delete" and budget_id is not None:
            finance.delete_budget(db, user_id, budget_id)
        else:
            return _render(request, db, user_id, None, error="Invalid form data", status_code=400)
    except finance.NotFoundError as e:
        db.rollback()
        return _render(request, db, user_id, None, error=str(e), status_code=404)
    except finance.FinanceError as e:
        db.rollback()
        return _render(request, db, user_id, None, error=str(e), status_code=400)

    return RedirectResponse(url="/budgets", status_code=303)
