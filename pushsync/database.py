import logging
from collections.abc import Generator

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker

from pushsync.config import settings

logger = logging.getLogger(__name__)


def build_engine(url: str, **kwargs) -> Engine:
    """Create an engine; SQLite gets cross-thread access and enforced FKs."""
    if url.startswith("sqlite"):
        kwargs.setdefault("connect_args", {"check_same_thread": False})
        eng = create_engine(url, **kwargs)
        event.listen(eng, "connect", _enable_sqlite_foreign_keys)
        return eng
    kwargs.setdefault("pool_pre_ping", True)
    kwargs.setdefault("pool_size", 10)
    kwargs.setdefault("max_overflow", 20)
    return create_engine(url, **kwargs)


def _enable_sqlite_foreign_keys(dbapi_connection, _record) -> None:
    # ON DELETE CASCADE on device/notification rows relies on this
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


engine = build_engine(settings.DATABASE_URL)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


class Base(DeclarativeBase):
    pass


def get_db() -> Generator[Session, None, None]:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db(bind: Engine | None = None) -> None:
    """Create missing tables. Production deployments run the Alembic migrations instead."""
    from pushsync.models import notification, notification_preference, push_subscription, user  # noqa: F401

    Base.metadata.create_all(bind=bind or engine)
    logger.info("Database tables ensured on %s", (bind or engine).url)
