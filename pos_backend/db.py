import logging

from sqlalchemy import create_engine, event
from sqlalchemy.engine import make_url
from sqlalchemy.orm import sessionmaker, declarative_base
from sqlalchemy.pool import StaticPool

from .config import Settings

logger = logging.getLogger(__name__)

Base = declarative_base()


def create_db_engine(database_url: str, pool_size: int = 10):
    url = make_url(database_url)
    is_sqlite = url.get_backend_name() == "sqlite"

    kwargs = {"future": True}
    if is_sqlite:
        # Requests run in a threadpool, so the connection must be shareable
        kwargs["connect_args"] = {"check_same_thread": False}
        if url.database in (None, "", ":memory:"):
            # One connection keeps the in-memory database alive for the whole process
            kwargs["poolclass"] = StaticPool
    else:
        kwargs["pool_size"] = pool_size
        kwargs["pool_pre_ping"] = True

    engine = create_engine(url, **kwargs)

    # Ensure SQLite enforces foreign keys
    if is_sqlite:
        @event.listens_for(engine, "connect")
        def set_sqlite_pragma(dbapi_connection, connection_record):
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

    return engine


class AppContext:
    """Process-wide resources shared by every request handler.

    Built once at startup from :class:`Settings` and disposed at shutdown,
    which drains the connection pool.
    """

    def __init__(self, settings: Settings, engine=None):
        self.settings = settings
        self.engine = engine if engine is not None else create_db_engine(settings.database_url, settings.pool_size)
        self.SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=self.engine, future=True)

    def create_all(self) -> None:
        # Tables are created if missing; schema changes are out of scope here.
        Base.metadata.create_all(bind=self.engine)

    def dispose(self) -> None:
        logger.info("disposing database engine")
        self.engine.dispose()
