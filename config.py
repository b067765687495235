# config.py
# Role: Central configuration for the finance tracker.
#       Reads environment variables (optionally from a local .env file)
#       and exposes them as plain module-level constants.

"""
Application settings.

All values can be overridden through environment variables or a `.env`
file in the project root.
"""

import os

from dotenv import load_dotenv

load_dotenv()


def _env_truthy(name: str, default: str = "0") -> bool:
    v = os.getenv(name, default)
    return str(v).strip().lower() in ("1", "true", "yes", "y", "on")


# Base directory of the project (where this module lives)
BASE_DIR = os.path.dirname(os.path.abspath(__file__))

# -------------------------------------------------------------------
# Database
# -------------------------------------------------------------------

DB_DIR = os.path.join(BASE_DIR, "database")
DATABASE_URL = os.getenv("DATABASE_URL", f"sqlite:///{os.path.join(DB_DIR, 'finance.db')}")

# -------------------------------------------------------------------
# Sessions & cookies
# -------------------------------------------------------------------

SESSION_SECRET = os.getenv("SESSION_SECRET", "default-dev-secret")
COOKIE_SECURE = _env_truthy("COOKIE_SECURE", "0")

SESSION_COOKIE_NAME = "auth"
REFRESH_COOKIE_NAME = "refresh_token"

# 7 days for the session, 30 days for the refresh token
SESSION_MAX_AGE = 60 * 60 * 24 * 7
REFRESH_TOKEN_MAX_AGE = 60 * 60 * 24 * 30

# -------------------------------------------------------------------
# Authentication
# -------------------------------------------------------------------

MAX_LOGIN_ATTEMPTS = int(os.getenv("MAX_LOGIN_ATTEMPTS", "5"))
LOCKOUT_MINUTES = int(os.getenv("LOCKOUT_MINUTES", "15"))
REQUIRE_EMAIL_VERIFICATION = _env_truthy("REQUIRE_EMAIL_VERIFICATION", "0")

DEMO_LOGIN_ENABLED = _env_truthy("DEMO_LOGIN_ENABLED", "1")
DEMO_USER_ID = "demo-user-id"
DEMO_USER_EMAIL = "demo@example.com"

# -------------------------------------------------------------------
# Finance
# -------------------------------------------------------------------

# Largest value a Numeric(10, 2) pot column can hold
MAX_POT_AMOUNT = 99999999.99

TRANSACTIONS_PER_PAGE = 10
DEFAULT_BUDGET_THEME = "#277C78"

# -------------------------------------------------------------------
# Logging
# -------------------------------------------------------------------

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
