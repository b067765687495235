# routes_auth.py
"""
Routes for login, registration, email verification, demo login and logout.

Successful login and demo login set two cookies: the encrypted session
cookie and the refresh token cookie. Logout revokes every refresh token of
the user and clears both cookies.
"""

import logging
from typing import Iterable, Optional

from fastapi import APIRouter, Depends, Form, HTTPException, Query, Request
from fastapi.responses import HTMLResponse, RedirectResponse
from pydantic import ValidationError
from sqlalchemy.orm import Session

from config import DEMO_LOGIN_ENABLED
from app.deps import (
    client_ip,
    get_db,
    get_user_id,
    refresh_cookie,
    session_store,
    templates,
)
from app.services import auth

logger = logging.getLogger(__name__)

router = APIRouter()

DEFAULT_REDIRECT = "/overview"


def safe_redirect(target: Optional[str]) -> str:
    """Only same-site absolute paths are followed after login."""
    if not target or not target.startswith("/") or target.startswith("//"):
        return DEFAULT_REDIRECT
    return target


def _redirect_with_cookies(url: str, cookie_headers: Iterable[str]) -> RedirectResponse:
    response = RedirectResponse(url=url, status_code=303)
    for header in cookie_headers:
        response.headers.append("set-cookie", header)
    return response


# -------------------------------------------------------------------
# Login
# -------------------------------------------------------------------

@router.get("/login", response_class=HTMLResponse)
def login_page(
    request: Request,
    redirectTo: str = Query(DEFAULT_REDIRECT),
    registered: bool = Query(False),
):
    if get_user_id(request):
        return RedirectResponse(url=safe_redirect(redirectTo), status_code=302)

    return templates.TemplateResponse(
        request,
        "login.html",
        {
            "redirect_to": safe_redirect(redirectTo),
            "registered": registered,
            "demo_enabled": DEMO_LOGIN_ENABLED,
            "error": None,
            "email": "",
        },
    )


@router.post("/login", response_class=HTMLResponse)
def login_submit(
    request: Request,
    email: str = Form(""),
    password: str = Form(""),
    remember: Optional[str] = Form(None),
    redirectTo: str = Form(DEFAULT_REDIRECT),
    db: Session = Depends(get_db),
):
    redirect_to = safe_redirect(redirectTo)

    def _fail(message: str, status_code: int):
        return templates.TemplateResponse(
            request,
            "login.html",
            {
                "redirect_to": redirect_to,
                "registered": False,
                "demo_enabled": DEMO_LOGIN_ENABLED,
                "error": message,
                "email": email,
            },
            status_code=status_code,
        )

    try:
        form = auth.LoginForm(email=email, password=password, remember=remember == "on")
    except ValidationError as e:
        return _fail(auth.first_error_message(e), 400)

    try:
        user = auth.authenticate(
            db,
            form,
            ip_address=client_ip(request),
            user_agent=request.headers.get("user-agent"),
        )
    except auth.AuthError as e:
        return _fail(str(e), 401)

    issued = auth.start_session(
        db,
        user.id,
        session_store,
        refresh_cookie,
        device_info=request.headers.get("user-agent"),
        remember=form.remember,
    )
    logger.info("User %s logged in", user.id)
    return _redirect_with_cookies(redirect_to, issued.headers)


@router.get("/demo-login")
def demo_login(request: Request, db: Session = Depends(get_db)):
    if not DEMO_LOGIN_ENABLED:
        raise HTTPException(status_code=404, detail="Not Found")

    user = auth.ensure_demo_user(db)
    issued = auth.start_session(
        db,
        user.id,
        session_store,
        refresh_cookie,
        device_info=request.headers.get("user-agent"),
        remember=True,
    )
    return _redirect_with_cookies(DEFAULT_REDIRECT, issued.headers)


# -------------------------------------------------------------------
# Registration
# -------------------------------------------------------------------

@router.get("/register", response_class=HTMLResponse)
def register_page(request: Request):
    return templates.TemplateResponse(
        request,
        "register.html",
        {"error": None, "email": "", "full_name": ""},
    )


@router.post("/register", response_class=HTMLResponse)
def register_submit(
    request: Request,
    email: str = Form(""),
    password: str = Form(""),
    confirm_password: str = Form(""),
    full_name: str = Form(""),
    db: Session = Depends(get_db),
):
    def _fail(message: str):
        return templates.TemplateResponse(
            request,
            "register.html",
            {"error": message, "email": email, "full_name": full_name},
            status_code=400,
        )

    try:
        form = auth.RegisterForm(
            email=email,
            password=password,
            confirm_password=confirm_password,
            full_name=full_name,
        )
    except ValidationError as e:
        return _fail(auth.first_error_message(e))

    try:
        auth.register(db, form)
    except auth.AuthError as e:
        return _fail(str(e))

    return RedirectResponse(url="/login?registered=true", status_code=303)


@router.get("/verify-email", response_class=HTMLResponse)
def verify_email(request: Request, token: str = Query(""), db: Session = Depends(get_db)):
    try:
        auth.verify_email(db, token)
    except auth.AuthError as e:
        return templates.TemplateResponse(
            request,
            "verify_email.html",
            {"error": str(e)},
            status_code=400,
        )

    return templates.TemplateResponse(
        request,
        "verify_email.html",
        {"error": None},
    )


# -------------------------------------------------------------------
# Logout
# -------------------------------------------------------------------

@router.post("/logout")
def logout(request: Request, db: Session = Depends(get_db)):
    # An expired session still identifies whose tokens to revoke
    session = session_store.read(request.cookies)
    user_id = session.user_id if session else None

    issued = auth.logout(db, user_id, session_store, refresh_cookie)
    return _redirect_with_cookies("/login", issued.headers)


@router.get("/logout")
def logout_page():
    return RedirectResponse(url="/", status_code=302)
