"""
Database engine construction.
Engines are built explicitly and handed to repositories; nothing here opens a connection at import time.
"""

from __future__ import annotations

from sqlalchemy import create_engine, inspect, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError


def build_engine(database_url: str) -> Engine:
    """Create a pooled SQLAlchemy engine for the given URL."""

    return create_engine(database_url, pool_pre_ping=True, future=True)


def test_connection(engine: Engine) -> bool:
    """Return True if the database can be reached and queried."""

    try:
        with engine.connect() as connection:
            connection.execute(text("SELECT 1"))
        return True
    except SQLAlchemyError:
        return False


def tables_exist(engine: Engine, table_names: list[str]) -> bool:
    """Return True when every named table is present."""

    try:
        inspector = inspect(engine)
        return all(inspector.has_table(name) for name in table_names)
    except SQLAlchemyError:
        return False
