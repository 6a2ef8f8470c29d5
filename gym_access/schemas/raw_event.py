from pydantic import BaseModel
from datetime import datetime
from typing import Optional


class RawEventOut(BaseModel):
    id: int
    external_event_id: str
    branch_id: str
    event_type: str
    event_time: datetime
    person_id: Optional[str]
    device_id: Optional[str]
    door_id: Optional[str]
    door_name: Optional[str]
    card_no: Optional[str]
    source: str
    processed: bool
    processed_at: Optional[datetime]
    created_at: datetime

    class Config:
        from_attributes = True
