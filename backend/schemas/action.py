from pydantic import BaseModel
from typing import Optional, Any
from datetime import datetime
from pydantic import ConfigDict


class ActionCreate(BaseModel):
    device_id: Optional[int] = None
    action_type: Optional[str] = None
    action_data: Optional[Any] = None


class ActionStatusIn(BaseModel):
    # validated by the queue so unknown values surface as InvalidInput
    status: Optional[str] = None
    response_data: Optional[Any] = None
    error_message: Optional[str] = None


class ActionOut(BaseModel):
    id: int
    device_id: int
    action_type: str
    action_data: Optional[Any]
    status: str
    created_at: Optional[datetime]
    executed_at: Optional[datetime]
    response_data: Optional[Any]
    error_message: Optional[str]

    model_config = ConfigDict(from_attributes=True)


class PendingActionOut(ActionOut):
    device_name: Optional[str] = None


class ActionStats(BaseModel):
    total: int = 0
    pending: int = 0
    sent: int = 0
    completed: int = 0
    failed: int = 0
