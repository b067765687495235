# db.py
# Role: Database bootstrap for the FastAPI finance tracker.
#       Defines the SQLAlchemy engine, session factory, and declarative Base.
#       Also ensures the on-disk database directory exists before the app starts.

"""
Database setup for the finance tracker.

- Uses DATABASE_URL from config (SQLite at <project_root>/database/finance.db by default)
- Ensures the 'database' folder exists.
"""

import os
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, declarative_base

from config import DATABASE_URL, DB_DIR

os.makedirs(DB_DIR, exist_ok=True)  # ensure folder exists

# For SQLite, we need check_same_thread=False for FastAPI (threaded request handling)
connect_args = {"check_same_thread": False} if DATABASE_URL.startswith("sqlite") else {}

engine = create_engine(
    DATABASE_URL,
    connect_args=connect_args,
)

# Standard session factory used via dependency injection (see app/deps.py:get_db)
# and directly by the session-refresh middleware.
SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
)

# Declarative base class for ORM models
Base = declarative_base()
