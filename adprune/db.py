from __future__ import annotations

import os
from pathlib import Path

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, DeclarativeBase


class Base(DeclarativeBase):
    pass


def _db_url(sqlite_path: str) -> str:
    p = Path(sqlite_path).expanduser()
    if not p.is_absolute():
        p = p.resolve()
    db_dir = str(p.parent)
    if db_dir:
        os.makedirs(db_dir, exist_ok=True)
    return f"sqlite:///{p.as_posix()}"


def make_engine(sqlite_path: str) -> Engine:
    engine = create_engine(_db_url(sqlite_path), echo=False, future=True)

    @event.listens_for(engine, "connect")
    def _set_sqlite_pragma(dbapi_conn, connection_record):
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA busy_timeout=5000")
        cursor.close()

    return engine


def make_session_factory(sqlite_path: str) -> sessionmaker:
    """Open (and create if needed) the journal database at ``sqlite_path``."""
    # tables are registered on Base by importing the models module
    from . import models  # noqa: F401

    engine = make_engine(sqlite_path)
    Base.metadata.create_all(bind=engine)
    return sessionmaker(bind=engine, autocommit=False, autoflush=False, future=True)
