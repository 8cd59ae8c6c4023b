from pydantic import BaseModel
from typing import Optional
from datetime import datetime
from pydantic import ConfigDict

from models.device import DeviceStatus


class DeviceOut(BaseModel):
    id: int
    user_id: int
    name: str
    device_id: Optional[str]
    mac_address: str
    device_type: Optional[str]
    service_uuid: Optional[str]
    status: str
    last_ssid: Optional[str]
    last_configured: Optional[datetime]
    rssi: Optional[int]
    is_connected: bool
    location: Optional[str]
    description: Optional[str]
    created_at: Optional[datetime]
    updated_at: Optional[datetime]

    model_config = ConfigDict(from_attributes=True)


class DeviceCreate(BaseModel):
    name: Optional[str] = None
    mac_address: Optional[str] = None
    device_id: Optional[str] = None
    device_type: Optional[str] = None
    service_uuid: Optional[str] = None
    status: Optional[DeviceStatus] = None
    location: Optional[str] = None
    description: Optional[str] = None


class DeviceUpdate(BaseModel):
    name: Optional[str] = None
    device_type: Optional[str] = None
    status: Optional[DeviceStatus] = None
    last_ssid: Optional[str] = None
    rssi: Optional[int] = None
    is_connected: Optional[bool] = None
    location: Optional[str] = None
    description: Optional[str] = None


class DeviceStatusIn(BaseModel):
    status: DeviceStatus
    is_connected: Optional[bool] = None


class WifiConfigIn(BaseModel):
    ssid: str
    status: DeviceStatus = DeviceStatus.CONFIGURED


class DeviceStats(BaseModel):
    total: int = 0
    configured: int = 0
    not_configured: int = 0
    online: int = 0
    offline: int = 0
    connected: int = 0
