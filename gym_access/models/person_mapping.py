"""
Vendor person id → internal member id.
Rows are written by the enrollment flow; this service only reads them.
"""

from sqlalchemy import Column, Integer, String, DateTime
from gym_access.database import Base


class PersonMapping(Base):
    __tablename__ = "person_mappings"

    id = Column(Integer, primary_key=True, autoincrement=True)
    person_id = Column(String(100), unique=True, nullable=False, index=True)
    member_id = Column(String(100), nullable=False, index=True)
    card_no = Column(String(100), index=True)   # Card issued to the member, if any
    created_at = Column(DateTime)

    def __repr__(self):
        return f"<PersonMapping {self.person_id} → {self.member_id}>"
