# File: meetflow/core/database/connection.py

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from meetflow.core.config.settings import settings


def build_engine(database_url: str):
    """Creates an engine. check_same_thread=False is needed only for SQLite."""
    connect_args = {"check_same_thread": False} if "sqlite" in database_url else {}
    return create_engine(
        database_url,
        echo=False,
        pool_pre_ping=True,
        connect_args=connect_args
    )


def build_session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=engine)


engine = build_engine(settings.DATABASE_URL)

SessionLocal = build_session_factory(engine)


def init_db(bind=None):
    """Creates missing tables. Model modules must be imported so they register on Base."""
    from meetflow.core.database.base import Base
    import meetflow.core.jobs.data.sql_models  # noqa: F401

    Base.metadata.create_all(bind=bind or engine)
