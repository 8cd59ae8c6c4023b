from pydantic import BaseModel
from typing import Optional, Any
from datetime import datetime
from pydantic import ConfigDict


class LogOut(BaseModel):
    id: int
    user_id: Optional[int]
    action: str
    resource_type: Optional[str]
    resource_id: Optional[int]
    ip_address: Optional[str]
    user_agent: Optional[str]
    details: Optional[Any]
    created_at: Optional[datetime]

    model_config = ConfigDict(from_attributes=True)


class LogPage(BaseModel):
    logs: list[LogOut]
    total: int
    limit: int
    offset: int


class LogActionStats(BaseModel):
    action: str
    total: int
    unique_users: int
    unique_ips: int
