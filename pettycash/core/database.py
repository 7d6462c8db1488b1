"""
Database Configuration
"""
from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker, Session
from typing import Generator
import sqlite3

from pettycash.core.config import settings

engine = create_engine(
    settings.database_url,
    connect_args={"check_same_thread": False} if settings.database_url.startswith("sqlite") else {},
    echo=settings.DEBUG
)

# Services flush, request handlers commit
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


@event.listens_for(Engine, "connect")
def enable_sqlite_foreign_keys(dbapi_connection, connection_record):
    """SQLite ignores REFERENCES clauses unless asked per connection"""
    if isinstance(dbapi_connection, sqlite3.Connection):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


def get_db() -> Generator[Session, None, None]:
    """
    Request-scoped session. Anything the handler did not commit is
    rolled back when the session closes.
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db(bind=None):
    """Create all ledger tables on ``bind`` (default: the configured engine)"""
    from pettycash.models import (  # noqa: F401
        PettyCashAccount, PettyCashTransaction, Customer, Invoice,
        CustomerTransaction, AuditLog
    )
    Base.metadata.create_all(bind=bind or engine)
