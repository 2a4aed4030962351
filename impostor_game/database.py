# impostor_game/database.py
from datetime import datetime, timezone

from sqlalchemy import create_engine, event
from sqlalchemy.orm import declarative_base, sessionmaker

from impostor_game.config import DATABASE_URL


def enable_sqlite_foreign_keys(engine):
    """
    SQLite ignores foreign keys unless asked per connection.
    Room deletion relies on ON DELETE CASCADE, so turn them on.
    """
    if engine.dialect.name != "sqlite":
        return

    @event.listens_for(engine, "connect")
    def _set_sqlite_pragma(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


def build_engine(url: str):
    connect_args = {"check_same_thread": False} if url.startswith("sqlite") else {}
    engine = create_engine(url, connect_args=connect_args)
    enable_sqlite_foreign_keys(engine)
    return engine


# Create the database engine
engine = build_engine(DATABASE_URL)

# Create a session factory
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# Base class for all models
Base = declarative_base()


def utcnow() -> datetime:
    """Naive UTC timestamp, comparable with what every backend hands back."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def init_db(bind=None):
    """Create any missing tables."""
    # db_models registers the tables on Base.metadata
    from impostor_game import db_models  # noqa: F401

    Base.metadata.create_all(bind=bind or engine)
