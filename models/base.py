"""
SQLAlchemy declarative base plus engine/session factories.

Engines are NOT created at import time. The composition root (worker/main.py
or api/main.py) calls build_engine() with the configured URL, so importing the
models never needs a live database or a particular driver installed.
"""

from datetime import datetime, timezone

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeBase, sessionmaker
from sqlalchemy.pool import StaticPool


class Base(DeclarativeBase):
    """Base class for all ORM models. SQLAlchemy uses this to track table metadata."""
    pass


def utcnow() -> datetime:
    """The queue's default clock. Everything is stored in UTC."""
    return datetime.now(timezone.utc)


def build_engine(url: str, echo: bool = False) -> Engine:
    """
    Create a sync engine for the given URL.

    In-memory SQLite gets a StaticPool so every session (and every thread,
    e.g. FastAPI's threadpool) sees the same database.
    """
    if url.startswith("sqlite") and ":memory:" in url:
        return create_engine(
            url,
            echo=echo,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    if url.startswith("sqlite"):
        return create_engine(url, echo=echo, connect_args={"check_same_thread": False})
    return create_engine(url, echo=echo, pool_pre_ping=True)


def build_session_factory(engine: Engine) -> sessionmaker:
    # expire_on_commit=False lets callers read a Job after its session closed
    return sessionmaker(engine, expire_on_commit=False)


def create_tables(engine: Engine) -> None:
    """Create all tables if they don't exist (safe to run multiple times)."""
    Base.metadata.create_all(engine)
