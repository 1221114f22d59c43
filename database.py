import logging
from contextlib import contextmanager
from typing import Iterator

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker

from config import get_settings
from errors import StorageError

logger = logging.getLogger(__name__)

SQLITE_BUSY_TIMEOUT_MS = 5000


def _is_sqlite(url: str) -> bool:
    return url.startswith("sqlite")


def _build_engine(database_url: str) -> Engine:
    connect_args: dict[str, object] = {}
    if _is_sqlite(database_url):
        # Requests run in FastAPI's threadpool and the scheduler in its own thread.
        connect_args["check_same_thread"] = False
    eng = create_engine(database_url, connect_args=connect_args)
    if _is_sqlite(database_url):
        in_memory = ":memory:" in database_url or database_url.rstrip("/") == "sqlite:"
        event.listen(
            eng,
            "connect",
            lambda conn, record: _sqlite_pragmas(conn, wal=not in_memory),
        )
    return eng


def _sqlite_pragmas(dbapi_conn, *, wal: bool) -> None:
    cursor = dbapi_conn.cursor()
    if wal:
        cursor.execute("PRAGMA journal_mode=WAL;")
    cursor.execute("PRAGMA foreign_keys=ON;")
    # Concurrent budget increments wait for the writer lock instead of failing.
    cursor.execute(f"PRAGMA busy_timeout={SQLITE_BUSY_TIMEOUT_MS};")
    cursor.close()


engine = _build_engine(get_settings().database_url)
SessionLocal = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


class Base(DeclarativeBase):
    pass


@contextmanager
def session_scope() -> Iterator[Session]:
    session: Session = SessionLocal()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


@contextmanager
def unit_of_work(session: Session) -> Iterator[Session]:
    """Commit everything written inside the block, or nothing at all.

    Storage failures surface as StorageError; domain errors propagate
    unchanged after the rollback.
    """
    try:
        yield session
        session.commit()
    except SQLAlchemyError as exc:
        session.rollback()
        logger.error(f"unit_of_work: rollback after storage failure: {exc}")
        raise StorageError("Storage failure") from exc
    except Exception:
        session.rollback()
        raise
