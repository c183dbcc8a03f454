"""
SQLAlchemy database session management.

Provides the engine and session factory used by the SQL-backed team document
store. SQLite relative paths are resolved against the working directory.
"""

import os
from pathlib import Path
from typing import Optional

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker
from dotenv import load_dotenv

# Load environment variables
load_dotenv()

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./workspace/team.db")

# Base class for all models
Base = declarative_base()


def resolve_database_url(database_url: str) -> str:
    """Make relative SQLite paths absolute so the file does not move with the cwd of later calls."""
    if database_url.startswith("sqlite:///") and database_url != "sqlite:///:memory:":
        db_path = database_url.replace("sqlite:///", "")
        if db_path.startswith("../") or db_path.startswith("./"):
            absolute_path = (Path.cwd() / db_path).resolve()
            absolute_path.parent.mkdir(parents=True, exist_ok=True)
            return f"sqlite:///{absolute_path}"
    return database_url


def make_engine(database_url: Optional[str] = None) -> Engine:
    """
    Create an engine for the given URL (defaults to DATABASE_URL).

    Args:
        database_url: SQLAlchemy URL

    Returns:
        Engine: configured engine
    """
    url = resolve_database_url(database_url or DATABASE_URL)
    return create_engine(
        url,
        connect_args={"check_same_thread": False} if "sqlite" in url else {},
        echo=os.getenv("DEBUG", "False").lower() == "true",  # Log SQL queries in debug mode
    )


# Enable foreign key constraints for SQLite
@event.listens_for(Engine, "connect")
def set_sqlite_pragma(dbapi_conn, connection_record):
    """Enable foreign key constraints for SQLite connections."""
    if dbapi_conn.__class__.__module__.startswith("sqlite3"):
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


def make_session_factory(engine: Engine) -> sessionmaker:
    """Create a session factory bound to ``engine``."""
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


def init_db(engine: Engine) -> None:
    """Create all tables that do not exist yet."""
    Base.metadata.create_all(bind=engine)
