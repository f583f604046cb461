"""Database connection management for tenant configuration storage.

Usage:
    from erp_analyst.db.connection import SessionLocal, init_db

    init_db()  # Create tables
    db = SessionLocal()
    # ... use db session
"""

import os
from typing import Any

from sqlalchemy import Engine, create_engine, event
from sqlalchemy.orm import sessionmaker

from erp_analyst.db.models import Base


def get_database_url() -> str:
    """Get database URL from environment or use default SQLite.

    Precedence:
    1. DATABASE_URL (canonical)
    2. sqlite file under the platformdirs user data directory
    """
    database_url = os.environ.get("DATABASE_URL", "").strip()
    if database_url:
        return database_url

    from platformdirs import user_data_dir

    data_dir = user_data_dir("erp_analyst", ensure_exists=True)
    return f"sqlite:///{os.path.join(data_dir, 'erp_analyst.db')}"


def create_db_engine(url: str | None = None) -> Engine:
    """Create a SQLAlchemy engine with SQLite pragmas applied.

    Args:
        url: Database URL. Defaults to get_database_url().

    Returns:
        Configured Engine.
    """
    url = url or get_database_url()
    db_engine = create_engine(
        url,
        connect_args={"check_same_thread": False} if url.startswith("sqlite") else {},
        echo=os.environ.get("SQL_ECHO", "").lower() == "true",
    )

    if url.startswith("sqlite"):
        @event.listens_for(db_engine, "connect")
        def set_sqlite_pragma(dbapi_connection: Any, connection_record: Any) -> None:
            """Enable referential integrity for SQLite connections."""
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

    return db_engine


engine = create_db_engine()

SessionLocal = sessionmaker(
    bind=engine,
    autocommit=False,
    autoflush=False,
    expire_on_commit=False,
)


def init_db(db_engine: Engine | None = None) -> None:
    """Create all tables that do not exist yet."""
    Base.metadata.create_all(bind=db_engine or engine)
