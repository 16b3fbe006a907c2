from typing import Optional

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker

from fortunespin.config import load_settings

# Seconds a SQLite connection waits on a locked database before failing.
SQLITE_BUSY_TIMEOUT = 30


def make_engine(database_url: Optional[str] = None, echo: bool = False) -> Engine:
    """Create an engine for ``database_url`` (defaults to ``DB_URL``).

    SQLite engines begin every transaction with ``BEGIN IMMEDIATE`` so that
    concurrent writers take the database write lock up front and queue on
    the busy timeout instead of failing half-way through a draw.
    """
    url = database_url or load_settings().database_url
    is_sqlite = url.startswith("sqlite")
    connect_args = (
        {"timeout": SQLITE_BUSY_TIMEOUT, "check_same_thread": False}
        if is_sqlite
        else {}
    )
    engine = create_engine(
        url,
        echo=echo,
        future=True,
        connect_args=connect_args,
    )
    if is_sqlite:

        @event.listens_for(engine, "connect")
        def _set_sqlite_pragma(dbapi_connection, connection_record):
            # hand transaction control to the "begin" hook below
            dbapi_connection.isolation_level = None
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

        @event.listens_for(engine, "begin")
        def _begin_immediate(conn):
            conn.exec_driver_sql("BEGIN IMMEDIATE")

    return engine


def get_sessionmaker(engine: Engine):
    return sessionmaker(
        bind=engine,
        expire_on_commit=False,  # Keep draw results readable after commit
        future=True,
    )
