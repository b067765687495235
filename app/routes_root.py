# routes_root.py
"""
Root / basic endpoints (landing, health).
"""

from fastapi import APIRouter
from fastapi.responses import RedirectResponse

router = APIRouter()


@router.get("/")
def read_root():
    """
    Landing endpoint: the overview page (which redirects to /login when needed).
    """
    return RedirectResponse(url="/overview", status_code=302)


@router.get("/health")
def health():
    return {"status": "ok"}
