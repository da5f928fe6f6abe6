# app/database.py
import logging
from typing import Iterator, Optional

from fastapi import Request
from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from .config import Settings, get_settings

logger = logging.getLogger(__name__)

# Base class for models
Base = declarative_base()


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


class Database:
    """Owns the engine and session factory shared by every request.

    Built once by the application factory and stored on ``app.state``;
    ``dispose()`` releases the connection pool on shutdown.
    """

    def __init__(self, url: str, **engine_kwargs):
        self.url = url
        engine_kwargs.setdefault("pool_pre_ping", True)
        engine_kwargs.setdefault("echo", False)
        if url.startswith("sqlite"):
            connect_args = engine_kwargs.setdefault("connect_args", {})
            connect_args.setdefault("check_same_thread", False)
        self.engine: Engine = create_engine(url, **engine_kwargs)
        if url.startswith("sqlite"):
            event.listen(self.engine, "connect", _enable_sqlite_foreign_keys)
        self.SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=self.engine)

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "Database":
        settings = settings or get_settings()
        kwargs = {}
        if not settings.is_sqlite:
            kwargs["pool_size"] = settings.database_pool_size
            kwargs["max_overflow"] = settings.database_max_overflow
        return cls(settings.database_url, **kwargs)

    def session(self) -> Session:
        return self.SessionLocal()

    def create_tables(self):
        """Create all database tables - models must be imported first."""
        from . import models  # noqa: F401  registers tables on Base.metadata

        Base.metadata.create_all(bind=self.engine)
        logger.info("Database tables created")

    def drop_tables(self):
        Base.metadata.drop_all(bind=self.engine)
        logger.info("Database tables dropped")

    def ping(self) -> bool:
        with self.engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        return True

    def dispose(self):
        self.engine.dispose()
        logger.info("Database connection pool released")


# Dependency to get database session
def get_db(request: Request) -> Iterator[Session]:
    db = request.app.state.database.session()
    try:
        yield db
    finally:
        db.close()
