import logging

from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from schedule_engine.core.config import settings


def _engine_kwargs(url: str) -> dict:
    # In-memory SQLite must share one connection across sessions and threads
    if url.startswith("sqlite"):
        return {"connect_args": {"check_same_thread": False}, "poolclass": StaticPool}
    return {}


engine = create_engine(settings.database_url, **_engine_kwargs(settings.database_url))
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base = declarative_base()


def init_db():
    # Tables are registered on Base by importing the models module
    from schedule_engine import models  # noqa: F401

    logging.getLogger(__name__).info("Initializing database and creating tables if needed")
    Base.metadata.create_all(bind=engine)


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
