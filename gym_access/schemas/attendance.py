from pydantic import BaseModel
from datetime import date, datetime
from typing import Optional


class AttendanceRecordOut(BaseModel):
    id: int
    member_id: str
    branch_id: str
    check_in: Optional[datetime]
    check_out: Optional[datetime]
    attendance_date: date
    method: str
    device_id: Optional[str]
    source_event_id: str

    class Config:
        from_attributes = True


class AccessDenialLogOut(BaseModel):
    id: int
    person_id: Optional[str]
    external_event_id: str
    device_id: Optional[str]
    door_id: Optional[str]
    event_time: datetime
    branch_id: str

    class Config:
        from_attributes = True
