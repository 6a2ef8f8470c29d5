"""
Member attendance table.
One row per qualifying entry/exit event; source_event_id keeps it that way.
"""

from sqlalchemy import Column, Integer, String, DateTime, Date
from gym_access.database import Base


class AttendanceRecord(Base):
    __tablename__ = "member_attendance"

    id = Column(Integer, primary_key=True, autoincrement=True)
    member_id = Column(String(100), nullable=False, index=True)
    branch_id = Column(String(100), nullable=False, index=True)
    check_in = Column(DateTime)               # set for entry events
    check_out = Column(DateTime)              # set for exit events
    attendance_date = Column(Date, nullable=False, index=True)
    method = Column(String(50), nullable=False)
    device_id = Column(String(100))
    source_event_id = Column(String(255), unique=True, nullable=False)
    created_at = Column(DateTime, nullable=False)

    def __repr__(self):
        return f"<AttendanceRecord {self.id} member={self.member_id} date={self.attendance_date}>"
