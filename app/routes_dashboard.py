# app/routes_dashboard.py

from datetime import date

from fastapi import APIRouter, Request, Depends
from fastapi.responses import RedirectResponse
from sqlalchemy.orm import Session

from .deps import templates, get_db, require_user_id
from app.services import aggregations, finance

router = APIRouter()


@router.get("/overview")
def overview_page(
    request: Request,
    user_id: str = Depends(require_user_id),
    db: Session = Depends(get_db),
):
    today = date.today()
    data = finance.get_financial_data(db, user_id, today=today)

    budget_totals = aggregations.filter_budgets(data["budgets"])
    budget_chart = aggregations.budgets_to_chart(data["budgets"])
    pots = aggregations.pots_overview(data["pots"])
    bills = aggregations.summarize_recurring_bills(data["bills"], today)

    return templates.TemplateResponse(
        request,
        "overview.html",
        {
            "today": today,
            "balance": data["balance"],
            "pots": pots,
            "budget_chart": budget_chart,
            "budget_totals": budget_totals,
            "recent_transactions": data["transactions"][:5],
            "bills": bills,
        },
    )


@router.get("/dashboard")
def dashboard_page():
    return RedirectResponse(url="/overview", status_code=302)
