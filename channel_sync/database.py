import logging
from sqlalchemy import create_engine, event
from sqlalchemy.orm import declarative_base, sessionmaker

from .config import settings

logger = logging.getLogger(__name__)


def build_database_url(url: str) -> str:
    """Hosted PostgreSQL often hands out postgres:// but SQLAlchemy needs postgresql://"""
    if url.startswith("postgres://"):
        return url.replace("postgres://", "postgresql://", 1)
    return url


def configure_sqlite(sqlite_engine) -> None:
    """
    Let SQLAlchemy emit BEGIN itself so SAVEPOINTs nest inside the outer
    transaction instead of committing it on RELEASE.
    """
    @event.listens_for(sqlite_engine, "connect")
    def _disable_pysqlite_transactions(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(sqlite_engine, "begin")
    def _emit_begin(conn):
        conn.exec_driver_sql("BEGIN")


database_url = build_database_url(settings.database_url)

# Handle SQLite special case for check_same_thread
connect_args = {}
if database_url.startswith("sqlite"):
    connect_args = {"check_same_thread": False}

engine = create_engine(
    database_url,
    connect_args=connect_args,
    pool_pre_ping=True,
)

if database_url.startswith("sqlite"):
    configure_sqlite(engine)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def get_db():
    """Dependency to get database session"""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_session_factory():
    """
    Dependency returning the session factory.

    Background work outlives the request session, so it opens its own
    sessions from this factory.
    """
    return SessionLocal


def create_tables():
    """Create all tables in the database"""
    from . import models  # noqa: F401 - register models on Base.metadata

    Base.metadata.create_all(bind=engine)
    logger.info(f"Database ready: {database_url.split('@')[-1][:40]}")
