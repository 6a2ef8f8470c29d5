"""Shared fixtures: in-memory SQLite session and raw-event/mapping builders."""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

# Settings are read at import time, so point them at SQLite before any app import
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("LOG_TO_FILE", "false")
os.environ.setdefault("API_KEY", "")

import pytest
from datetime import datetime
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from gym_access.database import Base, create_tables
from gym_access.models.raw_event import RawEvent
from gym_access.models.person_mapping import PersonMapping


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    create_tables(bind=engine)
    try:
        yield engine
    finally:
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def make_event(db):
    """Insert a RawEvent directly, bypassing the ingestor."""
    counter = {"n": 0}

    def _make(event_type="entry", person_id="p-1", event_time=None, branch_id="b-1",
              external_event_id=None, card_no=None, processed=False):
        counter["n"] += 1
        row = RawEvent(
            external_event_id=external_event_id or f"evt-{counter['n']}",
            branch_id=branch_id,
            event_type=event_type,
            event_time=event_time or datetime(2024, 1, 1, 8, 0, counter["n"] % 60),
            person_id=person_id,
            device_id="d-1",
            door_id="door-1",
            card_no=card_no,
            raw_payload={"eventType": event_type},
            source="webhook",
            processed=processed,
            created_at=datetime(2024, 1, 1, 9, 0, 0),
        )
        db.add(row)
        db.commit()
        return row

    return _make


@pytest.fixture
def add_mapping(db):
    def _add(person_id, member_id, card_no=None):
        db.add(PersonMapping(person_id=person_id, member_id=member_id, card_no=card_no))
        db.commit()

    return _add
