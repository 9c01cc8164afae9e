"""SQLAlchemy engine and session helpers."""

from __future__ import annotations

from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

# ``Base`` is the parent class for every SQLAlchemy model defined in models/.
Base = declarative_base()

_MEMORY_URLS = {"sqlite://", "sqlite:///:memory:"}


def create_session_factory(db_url: str) -> sessionmaker:
    """Build an engine for ``db_url``, create missing tables and return a session factory."""

    # For SQLite, ``check_same_thread=False`` lets FastAPI worker threads share
    # the connection. Other database engines ignore this argument.
    connect_args = {"check_same_thread": False} if db_url.startswith("sqlite") else {}
    engine_kwargs = {}
    if db_url in _MEMORY_URLS:
        # A private in-memory database only exists on one connection.
        engine_kwargs["poolclass"] = StaticPool
    engine = create_engine(db_url, connect_args=connect_args, **engine_kwargs)

    # Importing the model registers its table with the metadata.
    from ..models import stored_value as _stored_value  # noqa: F401

    Base.metadata.create_all(bind=engine)
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)
