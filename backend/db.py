from __future__ import annotations

from contextlib import contextmanager
from typing import Any, Dict, Iterator

from sqlalchemy import create_engine
from sqlalchemy.orm import Session, scoped_session, sessionmaker
from sqlalchemy.pool import StaticPool

from .config import load_settings


def _engine_options(database_url: str) -> Dict[str, Any]:
    options: Dict[str, Any] = {"future": True, "echo": False, "pool_pre_ping": True}
    if database_url.startswith("sqlite"):
        # Flask may serve requests from worker threads.
        options["connect_args"] = {"check_same_thread": False}
        if ":memory:" in database_url or database_url in ("sqlite://", "sqlite:///"):
            # One shared connection, otherwise every thread sees an empty database.
            options["poolclass"] = StaticPool
    return options


settings = load_settings()

engine = create_engine(settings.database_url, **_engine_options(settings.database_url))
SessionLocal = scoped_session(sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True))


def init_db() -> None:
    from .models import Base

    Base.metadata.create_all(engine)


@contextmanager
def session_scope() -> Iterator[Session]:
    """Commit on success, roll back on any error, always release the session."""
    session = SessionLocal()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()
