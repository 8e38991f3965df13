"""SQLAlchemy session setup for the run ledger."""

from __future__ import annotations

from pathlib import Path

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import sessionmaker, DeclarativeBase


class Base(DeclarativeBase):
    pass


def make_engine(db_url: str) -> Engine:
    url = make_url(db_url)
    if url.get_backend_name() == "sqlite" and url.database not in (None, "", ":memory:"):
        Path(url.database).parent.mkdir(parents=True, exist_ok=True)
    return create_engine(url)


def init_db(engine: Engine) -> None:
    # Imported for its side effect of registering the tables on Base.
    from attachment_store.db import models  # noqa: F401

    Base.metadata.create_all(engine)


def make_session_factory(db_url: str | None = None, engine: Engine | None = None):
    if engine is None:
        if not db_url:
            raise ValueError("db_url is required when engine is not provided")
        engine = make_engine(db_url)
    return sessionmaker(bind=engine, expire_on_commit=False, autoflush=False)
