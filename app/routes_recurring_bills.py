# routes_recurring_bills.py
"""
Recurring bills page: this month's bills split into paid, upcoming and due soon.
"""

from datetime import date

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import HTMLResponse
from sqlalchemy.orm import Session

from app.deps import get_db, require_user_id, templates
from app.services import aggregations, finance

router = APIRouter()


@router.get("/recurring-bills", response_class=HTMLResponse)
def recurring_bills_page(
    request: Request,
    search: str | None = Query(None),
    user_id: str = Depends(require_user_id),
    db: Session = Depends(get_db),
):
    today = date.today()
    bills = finance.get_recurring_bills(db, user_id, today=today)

    if search:
        needle = search.lower()
        bills = [b for b in bills if needle in b["name"].lower()]

    return templates.TemplateResponse(
        request,
        "recurring_bills.html",
        {
            "search": search or "",
            "summary": aggregations.summarize_recurring_bills(bills, today),
        },
    )
