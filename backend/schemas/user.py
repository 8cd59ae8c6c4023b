from pydantic import BaseModel
from typing import Optional
from datetime import datetime
from pydantic import ConfigDict


class UserOut(BaseModel):
    id: int
    name: str
    email: str
    is_active: bool
    created_at: Optional[datetime]
    updated_at: Optional[datetime] = None
    last_login: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class UserUpdate(BaseModel):
    name: str
