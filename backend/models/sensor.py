from sqlalchemy import Column, Integer, String, Float, DateTime, ForeignKey, JSON, Index
from sqlalchemy.orm import relationship

from core.context import utcnow
from db.base import Base

SENSOR_TYPE_MAX_LENGTH = 50
UNIT_MAX_LENGTH = 20


class SensorReading(Base):
    __tablename__ = "sensor_data"
    __table_args__ = (
        Index("ix_sensor_data_device_type_time", "device_id", "sensor_type", "timestamp"),
    )

    id = Column(Integer, primary_key=True, index=True)
    device_id = Column(Integer, ForeignKey("devices.id", ondelete="CASCADE"), nullable=False, index=True)
    sensor_type = Column(String(SENSOR_TYPE_MAX_LENGTH), nullable=False)
    sensor_value = Column(Float, nullable=False)
    unit = Column(String(UNIT_MAX_LENGTH), nullable=True)
    timestamp = Column(DateTime, nullable=False, default=utcnow, index=True)
    # "metadata" is reserved on declarative classes
    meta = Column("metadata", JSON, nullable=True)

    device = relationship("Device")

    @property
    def device_name(self):
        return self.device.name if self.device else None
