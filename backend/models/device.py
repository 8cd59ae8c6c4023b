import enum

from sqlalchemy import Column, Integer, String, Boolean, DateTime, ForeignKey, Text
from sqlalchemy.orm import relationship

from core.context import utcnow
from db.base import Base


class DeviceStatus(str, enum.Enum):
    NOT_CONFIGURED = "not_configured"
    CONFIGURED = "configured"
    ONLINE = "online"
    OFFLINE = "offline"


DEFAULT_DEVICE_TYPE = "ESP32"
DEFAULT_SERVICE_UUID = "12345678-1234-1234-1234-1234567890ab"


class Device(Base):
    __tablename__ = "devices"

    id = Column(Integer, primary_key=True, index=True)
    # owner; never reassigned after creation
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    device_id = Column(String(255), nullable=True, index=True)  # hardware identifier
    mac_address = Column(String(17), unique=True, index=True, nullable=False)
    device_type = Column(String(50), default=DEFAULT_DEVICE_TYPE)
    service_uuid = Column(String(36), default=DEFAULT_SERVICE_UUID)
    status = Column(String(20), nullable=False, default=DeviceStatus.NOT_CONFIGURED.value)
    last_ssid = Column(String(255), nullable=True)
    last_configured = Column(DateTime, nullable=True)
    rssi = Column(Integer, nullable=True)
    is_connected = Column(Boolean, default=False, nullable=False)
    location = Column(String(255), nullable=True)
    description = Column(Text, nullable=True)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    owner = relationship("User")
