"""
db/session.py

SQLAlchemy engine and session factory for the deleted-account store.
"""

from __future__ import annotations

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from gate_proxy.app.config import Settings


def create_db_engine(settings: Settings) -> Engine:
    """
    Create a pooled SQLAlchemy engine from settings.

    PostgreSQL gets the production pool options; SQLite (local runs and
    tests) only needs to allow use from worker threads.
    """

    database_url = settings.database_url

    if database_url.startswith("sqlite"):
        return create_engine(
            database_url,
            echo=settings.SQL_ECHO,
            connect_args={"check_same_thread": False},
        )

    return create_engine(
        database_url,
        echo=settings.SQL_ECHO,
        pool_pre_ping=True,
        pool_recycle=settings.DB_POOL_RECYCLE,
        pool_size=settings.DB_POOL_SIZE,
        max_overflow=settings.DB_MAX_OVERFLOW,
    )


def create_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(
        bind=engine,
        class_=Session,
        autocommit=False,
        autoflush=False,
        expire_on_commit=False,
    )
