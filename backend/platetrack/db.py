import time
from contextlib import contextmanager
from typing import Optional

from loguru import logger
from sqlalchemy import create_engine, text
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session, sessionmaker, declarative_base

from .errors import TransientInfraError
from .settings import Settings, get_settings

Base = declarative_base()


class Database:
    """
    Connection pool owned by the process.

    Built from a settings snapshot; `reconfigure` swaps the pool when the
    database URL changes and `reset` disposes it. The engine is created
    lazily so importing the app never opens a connection.
    """

    def __init__(self, settings: Settings, retries: int = 3, backoff_seconds: float = 1.0):
        self.retries = retries
        self.backoff_seconds = backoff_seconds
        self.url: Optional[str] = settings.database_url
        self._engine = None
        self._session_factory = None
        self._verified = False

    @property
    def engine(self):
        if self._engine is None:
            kwargs = {"pool_pre_ping": True}
            if self.url.startswith("sqlite"):
                # sessions are handed between FastAPI worker threads
                kwargs["connect_args"] = {"check_same_thread": False, "timeout": 30}
            else:
                kwargs.update(pool_size=10, max_overflow=10, pool_timeout=5)
            logger.info("Creating database engine for {}", self.url.split("@")[-1])
            self._engine = create_engine(self.url, **kwargs)
            self._session_factory = sessionmaker(bind=self._engine, autocommit=False, autoflush=False)
        return self._engine

    def reconfigure(self, settings: Settings) -> None:
        if settings.database_url == self.url and self._engine is not None:
            return
        self.reset()
        self.url = settings.database_url

    def reset(self) -> None:
        if self._engine is not None:
            self._engine.dispose()
        self._engine = None
        self._session_factory = None
        self._verified = False

    def invalidate(self) -> None:
        """Force the next session to probe the database again."""
        self._verified = False

    def connect(self) -> None:
        """Probe the pool once per (re)configuration, retrying with backoff."""
        if self._verified:
            return
        last_error = None
        for attempt in range(1, self.retries + 1):
            try:
                with self.engine.connect() as conn:
                    conn.execute(text("SELECT 1"))
                self._verified = True
                logger.info("Database connection successful")
                return
            except OperationalError as e:
                last_error = e
                logger.warning(
                    "Database connection failed (attempt {}/{}): {}", attempt, self.retries, e
                )
                if attempt < self.retries:
                    time.sleep(self.backoff_seconds * attempt)
        self.reset()
        raise TransientInfraError(f"Database connection failed: {last_error}")

    def session(self) -> Session:
        self.connect()
        return self._session_factory()

    def create_all(self) -> None:
        # import models so every table is registered on Base.metadata
        from . import models  # noqa: F401

        self.connect()
        Base.metadata.create_all(bind=self.engine)


database = Database(get_settings())


def get_db():
    db = database.session()
    try:
        yield db
    except OperationalError:
        # the database went away mid-request
        database.invalidate()
        raise
    finally:
        db.close()


def insert_for(db: Session, model):
    """Dialect insert construct so callers can use ON CONFLICT clauses."""
    if db.get_bind().dialect.name == "postgresql":
        return postgresql.insert(model)
    return sqlite.insert(model)


@contextmanager
def atomic(db: Session):
    """Commit on success, roll everything back on any error."""
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
