"""
Per-branch vendor API credentials and last-sync status.
Used by the fetch path and the periodic poller.
"""

from sqlalchemy import Column, Integer, String, DateTime, Boolean, Text
from gym_access.database import Base


class AccessIntegration(Base):
    __tablename__ = "access_integrations"

    id = Column(Integer, primary_key=True, autoincrement=True)
    branch_id = Column(String(100), unique=True, nullable=False, index=True)
    api_url = Column(String(500), nullable=False)
    app_key = Column(String(200), nullable=False)
    app_secret = Column(String(200), nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    last_sync = Column(DateTime)
    last_sync_status = Column(String(20))     # success | failed
    last_sync_error = Column(Text)
    access_token = Column(Text)               # cached vendor token, reused until expiry
    token_expires_at = Column(DateTime)
    updated_at = Column(DateTime)

    def __repr__(self):
        return f"<AccessIntegration branch={self.branch_id} active={self.is_active}>"
