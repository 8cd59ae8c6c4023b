from pydantic import BaseModel, Field, AliasChoices
from typing import Optional, Any
from datetime import datetime
from pydantic import ConfigDict


class SensorReadingOut(BaseModel):
    id: int
    device_id: int
    sensor_type: str
    sensor_value: float
    unit: Optional[str]
    timestamp: datetime
    metadata: Optional[Any] = Field(default=None, validation_alias=AliasChoices("meta", "metadata"))

    model_config = ConfigDict(from_attributes=True)


class UserSensorReadingOut(SensorReadingOut):
    device_name: Optional[str] = None


class AggregateBucket(BaseModel):
    period: datetime
    avg_value: float
    min_value: float
    max_value: float
    count: int


class SensorStatistics(BaseModel):
    sensor_type: str
    total_readings: int
    avg_value: float
    min_value: float
    max_value: float
    first_reading: datetime
    last_reading: datetime


class SensorTypeOut(BaseModel):
    sensor_type: str
    unit: Optional[str]
