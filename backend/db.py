from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator

from sqlalchemy import create_engine
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker

from backend.config import DB_PATH

DATABASE_URL = f"sqlite:///{DB_PATH}"

# the API (uvicorn worker threads), the seed and the CLI all open this same file
engine = create_engine(
    DATABASE_URL,
    echo=False,
    future=True,
    connect_args={"check_same_thread": False},
)

# flat dicts are built after commit, so loaded attributes must stay readable
SessionLocal = sessionmaker(
    bind=engine,
    autoflush=False,
    autocommit=False,
    future=True,
    expire_on_commit=False,
)


class Base(DeclarativeBase):
    """Declarative base shared by the clinic tables and the staff accounts."""


@contextmanager
def db_session() -> Iterator[Session]:
    """One unit of work: committed on success, rolled back if the block raises."""
    session: Session = SessionLocal()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()
