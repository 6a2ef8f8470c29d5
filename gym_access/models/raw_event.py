"""
Raw access-control event table.
Stores every event received from the vendor (webhook push or API fetch), as received.
external_event_id is the idempotency key: an event id is stored at most once.
"""

from sqlalchemy import Column, Integer, String, DateTime, Boolean, JSON
from gym_access.database import Base


class RawEvent(Base):
    __tablename__ = "access_events"

    id = Column(Integer, primary_key=True, autoincrement=True)
    external_event_id = Column(String(255), unique=True, nullable=False, index=True)
    branch_id = Column(String(100), nullable=False, index=True)
    event_type = Column(String(20), nullable=False, index=True)  # entry | exit | denied | unknown
    event_time = Column(DateTime, nullable=False, index=True)
    person_id = Column(String(100), index=True)
    device_id = Column(String(100))
    door_id = Column(String(100))
    door_name = Column(String(200))
    card_no = Column(String(100))
    face_id = Column(String(100))
    picture_url = Column(String(500))
    raw_payload = Column(JSON)
    source = Column(String(20), nullable=False, default="webhook")  # webhook | fetch

    processed = Column(Boolean, default=False, nullable=False, index=True)
    processed_at = Column(DateTime)
    # Processing lease: set by an atomic conditional update before any work starts
    claim_token = Column(String(64))
    lease_expires_at = Column(DateTime)

    created_at = Column(DateTime, nullable=False)

    def __repr__(self):
        return f"<RawEvent {self.external_event_id} type={self.event_type} processed={self.processed}>"
