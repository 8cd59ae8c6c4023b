import enum

from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, JSON, Text
from sqlalchemy.orm import relationship

from core.context import utcnow
from db.base import Base


class ActionStatus(str, enum.Enum):
    PENDING = "pending"
    SENT = "sent"
    COMPLETED = "completed"
    FAILED = "failed"


ACTION_TYPE_MAX_LENGTH = 100

TERMINAL_STATUSES = (ActionStatus.COMPLETED.value, ActionStatus.FAILED.value)

# target status -> statuses it may be entered from
ALLOWED_SOURCES = {
    ActionStatus.SENT.value: (ActionStatus.PENDING.value,),
    ActionStatus.COMPLETED.value: (ActionStatus.PENDING.value, ActionStatus.SENT.value),
    ActionStatus.FAILED.value: (ActionStatus.PENDING.value, ActionStatus.SENT.value),
    ActionStatus.PENDING.value: (),
}


class DeviceAction(Base):
    __tablename__ = "device_actions"

    id = Column(Integer, primary_key=True, index=True)
    device_id = Column(Integer, ForeignKey("devices.id", ondelete="CASCADE"), nullable=False, index=True)
    action_type = Column(String(ACTION_TYPE_MAX_LENGTH), nullable=False)
    action_data = Column(JSON, nullable=True)
    status = Column(String(20), nullable=False, default=ActionStatus.PENDING.value, index=True)
    created_at = Column(DateTime, nullable=False, default=utcnow, index=True)
    executed_at = Column(DateTime, nullable=True)
    response_data = Column(JSON, nullable=True)
    error_message = Column(Text, nullable=True)

    device = relationship("Device")

    @property
    def device_name(self):
        return self.device.name if self.device else None
