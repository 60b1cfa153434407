from __future__ import annotations

from sqlalchemy import create_engine
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker

from pulsevote.core.settings import get_settings


class Base(DeclarativeBase):
    pass


def _connect_args(url: str) -> dict:
    # check_same_thread=False is required for SQLite when sync endpoints run in the threadpool
    if url.startswith("sqlite"):
        return {"check_same_thread": False}
    return {}


DATABASE_URL = get_settings().database_url

engine = create_engine(DATABASE_URL, connect_args=_connect_args(DATABASE_URL))

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def init_db() -> None:
    # Import registers the mapped tables on Base.metadata.
    from pulsevote import db_models  # noqa: F401

    Base.metadata.create_all(bind=engine)


def wipe_all(db: Session) -> None:
    """Delete every row, children before parents."""
    for table in reversed(Base.metadata.sorted_tables):
        db.execute(table.delete())
    db.commit()


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
