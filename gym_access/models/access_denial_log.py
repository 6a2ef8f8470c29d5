"""
Denied access attempts, logged whether or not the person maps to a member.
"""

from sqlalchemy import Column, Integer, String, DateTime, JSON
from gym_access.database import Base


class AccessDenialLog(Base):
    __tablename__ = "access_denial_logs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    person_id = Column(String(100), index=True)
    external_event_id = Column(String(255), unique=True, nullable=False)
    device_id = Column(String(100))
    door_id = Column(String(100))
    event_time = Column(DateTime, nullable=False, index=True)
    branch_id = Column(String(100), nullable=False, index=True)
    raw_payload = Column(JSON)
    created_at = Column(DateTime, nullable=False)

    def __repr__(self):
        return f"<AccessDenialLog {self.external_event_id} person={self.person_id}>"
