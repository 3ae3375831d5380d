from typing import Generator

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, Session

from ginmai.config import DATABASE_URL


def make_engine(url: str) -> Engine:
    """
    Build an engine for DATABASE_URL.

    SQLite (local development, tests) ignores FOR UPDATE, so every transaction
    is opened with BEGIN IMMEDIATE to serialize writers. On PostgreSQL the
    FOR UPDATE lock on the moments row plays that role.
    """
    if not url.startswith("sqlite"):
        return create_engine(url, echo=False, future=True, pool_pre_ping=True)

    engine = create_engine(
        url,
        echo=False,
        future=True,
        connect_args={"check_same_thread": False, "timeout": 30},
    )

    @event.listens_for(engine, "connect")
    def _sqlite_connect(dbapi_connection, connection_record) -> None:
        # disable pysqlite's own BEGIN handling; _sqlite_begin emits it instead
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine, "begin")
    def _sqlite_begin(conn) -> None:
        conn.exec_driver_sql("BEGIN IMMEDIATE")

    return engine


engine: Engine = make_engine(DATABASE_URL)

SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
)


def get_db() -> Generator[Session, None, None]:
    """
    DB session for FastAPI dependency injection.

    Usage:

    @router.get("/moments/{moment_id}")
    def get_moment(moment_id: int, db: Session = Depends(get_db)):
        ...
    """
    db: Session = SessionLocal()
    try:
        yield db
    finally:
        db.close()
