from pydantic import BaseModel
from datetime import datetime
from typing import Optional


class ProcessingJobOut(BaseModel):
    id: int
    branch_id: str
    trigger: str
    status: str
    attempts: int
    max_attempts: int
    available_at: datetime
    last_error: Optional[str]
    total_events: Optional[int]
    processed_count: Optional[int]
    created_at: datetime
    started_at: Optional[datetime]
    finished_at: Optional[datetime]

    class Config:
        from_attributes = True


class SyncLogOut(BaseModel):
    id: int
    branch_id: str
    event_type: str
    status: str
    message: Optional[str]
    details: Optional[str]
    created_at: datetime

    class Config:
        from_attributes = True
