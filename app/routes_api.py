# routes_api.py
"""
JSON endpoints consumed by the front end.

All endpoints require a valid session and answer 401 otherwise.
Money values are serialized as numbers, budget maximums as decimal strings.
"""

from decimal import Decimal
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel
from sqlalchemy.orm import Session

from app.deps import api_user_id, get_db
from app.services import finance

router = APIRouter(prefix="/api")


class PotUpdate(BaseModel):
    name: Optional[str] = None
    target: Optional[Decimal] = None
    theme: Optional[str] = None


@router.get("/financial-data")
def financial_data(
    user_id: str = Depends(api_user_id),
    db: Session = Depends(get_db),
):
    data = finance.get_financial_data(db, user_id)
    return {
        "balance": data["balance"]["current"],
        "income": data["balance"]["income"],
        "expenses": data["balance"]["expenses"],
        "transactions": data["transactions"],
        "budgets": data["budgets"],
        "pots": data["pots"],
    }


@router.get("/pots")
def list_pots(
    user_id: str = Depends(api_user_id),
    db: Session = Depends(get_db),
):
    return finance.get_pots(db, user_id)


@router.get("/pots/{pot_id}")
def get_pot(
    pot_id: int,
    user_id: str = Depends(api_user_id),
    db: Session = Depends(get_db),
):
    try:
        return finance.get_pot(db, user_id, pot_id)
    except finance.NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))


@router.put("/pots/{pot_id}")
def update_pot(
    pot_id: int,
    payload: PotUpdate,
    user_id: str = Depends(api_user_id),
    db: Session = Depends(get_db),
):
    try:
        current = finance.get_pot(db, user_id, pot_id)
        return finance.update_pot(
            db,
            user_id,
            pot_id,
            name=payload.name if payload.name is not None else current["name"],
            target=payload.target if payload.target is not None else current["target"],
            theme=payload.theme,
        )
    except finance.NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except finance.FinanceError as e:
        db.rollback()
        raise HTTPException(status_code=400, detail=str(e))


@router.get("/transactions")
def list_transactions(
    search: Optional[str] = Query(None),
    category: Optional[str] = Query(None),
    sort: str = Query("latest"),
    page: int = Query(1),
    user_id: str = Depends(api_user_id),
    db: Session = Depends(get_db),
):
    return finance.list_transactions(
        db,
        user_id,
        search=search,
        category=category,
        sort=sort,
        page=page,
    )
