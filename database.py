from contextlib import contextmanager
from typing import Iterator

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker

from config import Settings, get_settings


def _is_sqlite(url: str) -> bool:
    return url.startswith("sqlite")


def _create_engine(settings: Settings) -> Engine:
    if not _is_sqlite(settings.database_url):
        return create_engine(
            settings.database_url, pool_pre_ping=True, echo=settings.sql_echo
        )

    eng = create_engine(
        settings.database_url,
        connect_args={"check_same_thread": False},
        echo=settings.sql_echo,
    )
    event.listen(eng, "connect", _configure_sqlite_reader)
    return eng


def _configure_sqlite_reader(dbapi_conn, _record):
    # the ledger is owned by another process; this side only reads
    cursor = dbapi_conn.cursor()
    cursor.execute("PRAGMA query_only=ON;")
    cursor.execute("PRAGMA busy_timeout=5000;")
    cursor.execute("PRAGMA foreign_keys=ON;")
    cursor.close()


engine = _create_engine(get_settings())
SessionLocal = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


class Base(DeclarativeBase):
    pass


@contextmanager
def session_scope() -> Iterator[Session]:
    """Session for one statistics request. Nothing is ever committed."""
    session: Session = SessionLocal()
    try:
        yield session
    finally:
        session.rollback()
        session.close()
