# routes_transactions.py
"""
Routes related to the transactions list.
"""

from urllib.parse import urlencode

from fastapi import APIRouter, Request, Depends, Query
from fastapi.responses import HTMLResponse
from sqlalchemy.orm import Session

from app.deps import get_db, require_user_id, templates
from app.services import finance

router = APIRouter()


@router.get("/transactions", response_class=HTMLResponse)
def transactions_page(
    request: Request,
    search: str | None = Query(None),
    category: str | None = Query(None),
    sort: str = Query("latest"),
    page: int = Query(1),
    user_id: str = Depends(require_user_id),
    db: Session = Depends(get_db),
):
    result = finance.list_transactions(
        db,
        user_id,
        search=search,
        category=category,
        sort=sort,
        page=page,
    )

    def build_page_url(target_page: int) -> str:
        # Keep every other query param (search/category/sort)
        items = [(k, v) for (k, v) in request.query_params.multi_items() if k != "page"]
        items.append(("page", str(target_page)))
        return "/transactions?" + urlencode(items, doseq=True)

    current = result["page"]

    return templates.TemplateResponse(
        request,
        "transactions.html",
        {
            "transactions": result["transactions"],
            "search": search or "",
            "category": category or "all",
            "categories": result["categories"],
            "sort": result["sort"],
            "sort_options": list(finance.SORT_OPTIONS),
            "page": current,
            "total_pages": result["total_pages"],
            "prev_url": build_page_url(current - 1) if current > 1 else None,
            "next_url": build_page_url(current + 1) if current < result["total_pages"] else None,
        },
    )
