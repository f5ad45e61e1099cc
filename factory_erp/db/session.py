"""Database service, session factory, and dependency injection."""

import logging
from typing import Generator, Optional

from fastapi import Request
from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, Session

from factory_erp.core.config import Settings

logger = logging.getLogger("factory_erp")


class Database:
    """Owns the SQLAlchemy engine and session factory for one process.

    Constructed explicitly and handed to the app factory; ``connect`` and
    ``disconnect`` are driven by the application lifespan.
    """

    def __init__(self, url: str, **engine_options):
        self.url = url
        self.engine_options = engine_options
        self.engine: Optional[Engine] = None
        self._session_factory: Optional[sessionmaker] = None

    @classmethod
    def from_settings(cls, settings: Settings) -> "Database":
        options = {"pool_pre_ping": True, "echo": settings.DEBUG}
        if not settings.DATABASE_URL.startswith("sqlite"):
            options.update(
                pool_size=settings.DATABASE_POOL_SIZE,
                max_overflow=settings.DATABASE_MAX_OVERFLOW,
                pool_timeout=settings.DATABASE_POOL_TIMEOUT,
                pool_recycle=1800,
            )
        return cls(settings.DATABASE_URL, **options)

    @property
    def is_connected(self) -> bool:
        return self.engine is not None

    def connect(self) -> None:
        if self.engine is not None:
            return
        self.engine = create_engine(self.url, **self.engine_options)
        self._session_factory = sessionmaker(
            autocommit=False, autoflush=False, bind=self.engine
        )
        logger.info("Database engine created (%s)", self.engine.dialect.name)

    def disconnect(self) -> None:
        if self.engine is None:
            return
        self.engine.dispose()
        self.engine = None
        self._session_factory = None
        logger.info("Database engine disposed")

    def session(self) -> Session:
        if self._session_factory is None:
            self.connect()
        return self._session_factory()

    def create_all(self) -> None:
        """Create every table known to the models package."""
        from factory_erp.db.base import Base
        import factory_erp.models  # noqa: F401  (registers the tables)

        if self.engine is None:
            self.connect()
        Base.metadata.create_all(bind=self.engine)

    def ping(self) -> bool:
        try:
            with self.session() as db:
                db.execute(text("SELECT 1"))
            return True
        except Exception:
            logger.exception("Database ping failed")
            return False


def get_db(request: Request) -> Generator[Session, None, None]:
    """FastAPI dependency that provides a DB session per request.

    Any exception raised while the request holds the session rolls back the
    open transaction before the session is closed.
    """
    db = request.app.state.database.session()
    try:
        yield db
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()
