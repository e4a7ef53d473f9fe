"""
Database engine and session factories
"""
import os

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker

Base = declarative_base()


def _ensure_sqlite_dir(url: str) -> None:
    """Create the parent directory of a file-backed SQLite database"""
    prefix = "sqlite:///"
    if not url.startswith(prefix):
        return
    path = url[len(prefix):]
    if not path or path == ":memory:":
        return
    directory = os.path.dirname(os.path.abspath(path))
    os.makedirs(directory, exist_ok=True)


def create_db_engine(url: str, echo: bool = False) -> Engine:
    """
    Create an engine for the inventory cache

    SQLite connections are switched to WAL so readers keep seeing the last
    committed snapshot while a replace-all write is in progress.

    Args:
        url: SQLAlchemy database URL
        echo: Log emitted SQL

    Returns:
        Configured Engine
    """
    connect_args = {}
    if url.startswith("sqlite"):
        _ensure_sqlite_dir(url)
        connect_args = {"check_same_thread": False, "timeout": 30}

    engine = create_engine(url, echo=echo, connect_args=connect_args, pool_pre_ping=not url.startswith("sqlite"))

    if url.startswith("sqlite"):
        @event.listens_for(engine, "connect")
        def _set_sqlite_pragmas(dbapi_connection, connection_record):
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA journal_mode=WAL")
            cursor.execute("PRAGMA busy_timeout=30000")
            cursor.execute("PRAGMA synchronous=NORMAL")
            cursor.close()

    return engine


def create_session_factory(engine: Engine) -> sessionmaker:
    """Build a session factory bound to the given engine"""
    return sessionmaker(bind=engine, autocommit=False, autoflush=False, expire_on_commit=False)


def init_db(engine: Engine) -> None:
    """Create all tables that don't exist yet"""
    # Import models so they register on Base.metadata
    from profit_dashboard import models  # noqa: F401

    Base.metadata.create_all(bind=engine)
