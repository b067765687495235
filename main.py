# main.py
# Role: Application entry point for the finance tracker.
#       Initializes the FastAPI app, configures logging, creates database tables,
#       installs the session-refresh middleware, and registers all route modules.

"""
Main FastAPI app for the personal finance tracker.

Here we only:
- configure logging
- create the FastAPI app
- set up static files
- create DB tables
- install the session-refresh middleware
- include route modules
"""

import logging
import os

from fastapi import FastAPI, Request
from fastapi.responses import RedirectResponse
from fastapi.staticfiles import StaticFiles
from urllib.parse import urlencode

from config import LOG_LEVEL
from db import Base, SessionLocal, engine
from app.deps import APP_DIR, LoginRequired, refresh_cookie, session_store
from app.services.refresh_session import RefreshSessionMiddleware
from app.routes_root import router as root_router
from app.routes_auth import router as auth_router
from app.routes_dashboard import router as dashboard_router
from app.routes_budgets import router as budgets_router
from app.routes_pots import router as pots_router
from app.routes_transactions import router as transactions_router
from app.routes_recurring_bills import router as recurring_bills_router
from app.routes_api import router as api_router


# -------------------------------------------------------------------
# Logging
# -------------------------------------------------------------------

logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)

# -------------------------------------------------------------------
# App & DB setup
# -------------------------------------------------------------------

# Create database tables (only if they don't exist yet).
# This is safe to run on startup for SQLite and development usage.
Base.metadata.create_all(bind=engine)

# FastAPI application instance
app = FastAPI(title="Finance Tracker")

# Serve static files (CSS) from /static
app.mount("/static", StaticFiles(directory=os.path.join(APP_DIR, "static")), name="static")

# Expired sessions on GET requests are renewed from the refresh token cookie
# before any route runs.
app.add_middleware(
    RefreshSessionMiddleware,
    sessions=session_store,
    refresh_cookie=refresh_cookie,
    session_factory=SessionLocal,
)


@app.exception_handler(LoginRequired)
async def login_required_handler(request: Request, exc: LoginRequired):
    query = urlencode({"redirectTo": exc.redirect_to})
    return RedirectResponse(url=f"/login?{query}", status_code=303)


# -------------------------------------------------------------------
# Include routers
# -------------------------------------------------------------------

# Root / landing routes
app.include_router(root_router)

# Login, registration, demo login, logout
app.include_router(auth_router)

# Overview (balance, pots, budgets chart, recent transactions, bills)
app.include_router(dashboard_router)

# Budgets and pots pages with their form actions
app.include_router(budgets_router)
app.include_router(pots_router)

# Transactions list and recurring bills
app.include_router(transactions_router)
app.include_router(recurring_bills_router)

# JSON API used by the front end
app.include_router(api_router)
