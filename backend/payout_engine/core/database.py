from collections.abc import Generator
from typing import Any

from sqlalchemy import create_engine
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from payout_engine.core.config import settings


def engine_options(dsn: str) -> dict[str, Any]:
    """Keyword arguments for ``create_engine`` based on the database backend.

    SQLite connections are shared with the payout worker threads, and a
    settlement commit waits up to ``DATABASE_BUSY_TIMEOUT_SECONDS`` for the
    write lock instead of failing at once. Server databases check pooled
    connections before use, since the worker holds them across long idle gaps.
    """
    if dsn.startswith("sqlite"):
        return {
            "connect_args": {
                "check_same_thread": False,
                "timeout": settings.DATABASE_BUSY_TIMEOUT_SECONDS,
            }
        }
    return {"pool_pre_ping": True}


engine = create_engine(settings.APP_DATABASE_DSN, **engine_options(settings.APP_DATABASE_DSN))

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base: Any = declarative_base()


def get_db() -> Generator[Session, None, None]:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db() -> None:
    """Create the vendor, ledger and payout batch tables when missing.

    Deployments use the alembic migrations; this serves tests and local runs.
    """
    Base.metadata.create_all(bind=engine)
