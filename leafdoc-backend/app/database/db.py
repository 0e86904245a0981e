# app/database/db.py
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, declarative_base
from sqlalchemy.pool import StaticPool

# Base for ORM models
Base = declarative_base()


def make_engine(url: str):
    """
    SQLAlchemy engine for the given URL.
    In-memory SQLite shares one connection so every session sees the same data.
    """
    in_memory = url.startswith("sqlite") and (
        ":memory:" in url or url.split("://", 1)[-1] in ("", "/")
    )
    if in_memory:
        return create_engine(
            url,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
            future=True,
        )
    return create_engine(url, pool_pre_ping=True, future=True)


def make_session_factory(engine):
    return sessionmaker(
        bind=engine,
        autoflush=False,
        autocommit=False,
        future=True,
    )


def init_schema(engine):
    # import so the table is registered on Base.metadata
    from app.models.prediction import Prediction  # noqa: F401

    Base.metadata.create_all(bind=engine)
