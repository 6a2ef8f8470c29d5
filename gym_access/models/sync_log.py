"""
Audit trail of fetch / processing runs per branch.
"""

from sqlalchemy import Column, Integer, String, DateTime, Text
from gym_access.database import Base


class SyncLog(Base):
    __tablename__ = "access_sync_log"

    id = Column(Integer, primary_key=True, autoincrement=True)
    branch_id = Column(String(100), nullable=False, index=True)
    event_type = Column(String(20), nullable=False)   # fetch | process | error
    status = Column(String(20), nullable=False)       # success | error
    message = Column(String(500))
    details = Column(Text)
    created_at = Column(DateTime, nullable=False, index=True)

    def __repr__(self):
        return f"<SyncLog {self.id} {self.event_type}={self.status} branch={self.branch_id}>"
