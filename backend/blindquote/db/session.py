import os

from sqlalchemy.pool import StaticPool
from sqlmodel import create_engine, Session

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite://")
SQL_ECHO = os.getenv("SQL_ECHO", "").lower() in ("1", "true", "yes")

_engine = None


def get_engine():
    global _engine
    if _engine is None:
        kwargs = {"echo": SQL_ECHO}
        if DATABASE_URL.startswith("sqlite"):
            kwargs["connect_args"] = {"check_same_thread": False}
            # in-memory sqlite lives on a single connection
            if DATABASE_URL in ("sqlite://", "sqlite:///:memory:"):
                kwargs["poolclass"] = StaticPool
        _engine = create_engine(DATABASE_URL, **kwargs)
    return _engine


def get_session() -> Session:
    engine = get_engine()
    return Session(engine)
