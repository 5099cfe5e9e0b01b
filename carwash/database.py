from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker

from .config import settings

# Connection execution option that asks SQLite for the write lock up front
BEGIN_IMMEDIATE = "sqlite_begin_immediate"


def create_db_engine(url: str, busy_timeout: float | None = None) -> Engine:
    """
    Build an engine for the booking ledger.

    SQLite gets foreign keys and an explicit BEGIN. Connections carrying
    the BEGIN_IMMEDIATE execution option start with BEGIN IMMEDIATE, so
    reservation writers are serialized from their first read; every other
    session uses a deferred BEGIN and never takes the write lock to read.
    """
    if not url.startswith("sqlite"):
        return create_engine(url, pool_pre_ping=True)

    timeout = busy_timeout if busy_timeout is not None else settings.transaction_timeout_seconds
    engine = create_engine(
        url,
        # check_same_thread=False is required for FastAPI's threadpool
        connect_args={"check_same_thread": False, "timeout": timeout},
    )

    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, _):
        # Let SQLAlchemy emit BEGIN itself instead of pysqlite
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine, "begin")
    def _on_begin(conn):
        if conn.get_execution_options().get(BEGIN_IMMEDIATE):
            conn.exec_driver_sql("BEGIN IMMEDIATE")
        else:
            conn.exec_driver_sql("BEGIN")

    return engine


engine = create_db_engine(settings.resolved_database_url)

SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    expire_on_commit=False,
    bind=engine,
)


def init_db(bind: Engine | None = None) -> None:
    """Create all tables (development and tests; production uses alembic)."""
    from .models import Base

    Base.metadata.create_all(bind=bind or engine)


# Dependency for FastAPI
def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
