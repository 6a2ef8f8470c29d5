"""
Database connection, session management, and table creation.
Uses SQLAlchemy with PostgreSQL (SQLite also works for local runs and tests).
All models are auto-imported here so create_tables() creates every table in one call.
"""

from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool
from gym_access.config import settings


def _engine_kwargs(url: str) -> dict:
    if url.startswith("sqlite"):
        # One shared connection so an in-memory DB survives across sessions
        return {"connect_args": {"check_same_thread": False}, "poolclass": StaticPool}
    return {
        "pool_pre_ping": True,       # Auto-reconnect if DB connection drops
        "pool_size": 10,
        "max_overflow": 20,
    }


engine = create_engine(
    settings.DATABASE_URL,
    echo=False,                      # Set True to log all SQL queries (debug only)
    **_engine_kwargs(settings.DATABASE_URL),
)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def get_db():
    """FastAPI dependency — yields a DB session and closes it after request."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def create_tables(bind=None):
    """
    Creates all DB tables on startup. Safe to call multiple times.
    Import all models here so SQLAlchemy knows about them.
    """
    from gym_access.models.raw_event import RawEvent                   # noqa
    from gym_access.models.person_mapping import PersonMapping         # noqa
    from gym_access.models.attendance_record import AttendanceRecord   # noqa
    from gym_access.models.access_denial_log import AccessDenialLog    # noqa
    from gym_access.models.access_integration import AccessIntegration # noqa
    from gym_access.models.sync_log import SyncLog                     # noqa
    from gym_access.models.processing_job import ProcessingJob         # noqa

    Base.metadata.create_all(bind=bind or engine)
