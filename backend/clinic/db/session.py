from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.engine.url import make_url
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker
from sqlalchemy.pool import StaticPool

from clinic.core import config
from clinic.core.db import register_query_timing


class Base(DeclarativeBase):
    pass


# Internal lazy globals
_engine = None
_SessionLocal = None
_database_url = None


def build_engine(database_url: str) -> Engine:
    """Create an engine suited to the backend named by ``database_url``."""
    url = make_url(database_url)
    is_postgres = url.drivername.startswith("postgresql") or url.drivername.startswith(
        "postgres"
    )

    if is_postgres:
        engine = create_engine(
            database_url,
            pool_size=10,
            max_overflow=20,
            pool_pre_ping=True,  # Detects and refreshes stale connections
            pool_recycle=3600,
            connect_args={
                "application_name": "clinic_engine",  # Visible in pg_stat_activity
                "connect_timeout": 10,
            },
            echo=False,
        )
    elif url.drivername.startswith("sqlite"):
        # Sessions are used from request threads, not the creating thread
        connect_args = {"check_same_thread": False, "timeout": 30}
        if url.database in (None, "", ":memory:"):
            # Single shared in-memory database so DDL persists across sessions
            engine = create_engine(
                database_url,
                echo=False,
                connect_args=connect_args,
                poolclass=StaticPool,
            )
        else:
            engine = create_engine(database_url, echo=False, connect_args=connect_args)
    else:
        engine = create_engine(database_url, echo=False)

    register_query_timing(engine)
    return engine


def get_engine() -> Engine:
    """Return a cached SQLAlchemy engine, creating it from DATABASE_URL on
    first call. This allows tests to set DATABASE_URL before the engine is
    constructed."""
    global _engine
    global _database_url
    global _SessionLocal
    database_url = config.get_database_url()
    if _engine is None or _database_url != database_url:
        if _engine is not None:
            _engine.dispose()
        _engine = build_engine(database_url)
        _database_url = database_url
        _SessionLocal = None
    return _engine


def get_sessionmaker() -> sessionmaker:
    """Return a cached sessionmaker bound to the lazy engine."""
    global _SessionLocal
    engine = get_engine()
    if _SessionLocal is None:
        _SessionLocal = make_sessionmaker(engine)
    return _SessionLocal


def make_sessionmaker(engine: Engine) -> sessionmaker:
    return sessionmaker(
        autocommit=False, autoflush=False, expire_on_commit=False, bind=engine
    )


def SessionLocal() -> Session:
    """Calling SessionLocal() returns a new Session bound to the lazy engine."""
    return get_sessionmaker()()


def get_db():
    """Dependency to get database session"""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def create_tables(engine: Engine | None = None) -> None:
    """Create all tables in database using the lazy engine."""
    # Models must be imported so Base.metadata is populated
    from clinic.db import base  # noqa: F401

    Base.metadata.create_all(bind=engine or get_engine())


def drop_tables(engine: Engine | None = None) -> None:
    from clinic.db import base  # noqa: F401

    Base.metadata.drop_all(bind=engine or get_engine())
