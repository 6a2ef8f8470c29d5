from pydantic import BaseModel
from datetime import datetime
from typing import Optional


class IntegrationUpdate(BaseModel):
    api_url: str
    app_key: str
    app_secret: str
    is_active: bool = True


class IntegrationOut(BaseModel):
    branch_id: str
    api_url: str
    app_key: str
    is_active: bool
    last_sync: Optional[datetime]
    last_sync_status: Optional[str]
    last_sync_error: Optional[str]

    class Config:
        from_attributes = True
