"""Device registry.

Owns device identity and is the only place that knows how a device maps to
its owner. Every other service authorizes through `is_owned_by`,
`require_owned`, `resolve` or the `owned_device_ids` subquery.
"""

import logging
from typing import Optional

from sqlalchemy import func, select, case
from sqlalchemy.orm import Session

from core.context import RequestContext
from core.errors import InvalidInput, NotFound, Conflict, Unauthorized
from models.device import Device, DeviceStatus, DEFAULT_DEVICE_TYPE, DEFAULT_SERVICE_UUID
from services.audit import AuditSink
from services.store import store_errors

logger = logging.getLogger(__name__)

STATUS_VALUES = tuple(s.value for s in DeviceStatus)
UPDATABLE_FIELDS = ("name", "device_type", "status", "last_ssid", "rssi", "is_connected", "location", "description")


def _status_value(status) -> str:
    value = status.value if isinstance(status, DeviceStatus) else status
    if value not in STATUS_VALUES:
        raise InvalidInput("Invalid device status. Must be one of: " + ", ".join(STATUS_VALUES))
    return value


class DeviceRegistry:
    def __init__(self, db: Session, audit: Optional[AuditSink] = None):
        self.db = db
        self.audit = audit or AuditSink(db)

    # -- authorization primitives ------------------------------------------

    @staticmethod
    def owned_device_ids(user_id: int):
        """Subquery of the ids of every device owned by `user_id`."""
        return select(Device.id).where(Device.user_id == user_id)

    def _owned(self, device_id, user_id) -> Optional[Device]:
        if device_id is None or user_id is None:
            return None
        with store_errors(self.db):
            return self.db.query(Device).filter(Device.id == device_id, Device.user_id == user_id).first()

    def is_owned_by(self, device_id, user_id) -> bool:
        return self._owned(device_id, user_id) is not None

    def require_owned(self, device_id, user_id) -> Device:
        """Gate for writes: absent and foreign devices both raise Unauthorized."""
        device = self._owned(device_id, user_id)
        if device is None:
            logger.warning("User %s denied access to device %s", user_id, device_id)
            raise Unauthorized("Device not found or not authorized")
        return device

    def resolve(self, device_id, user_id: Optional[int] = None) -> Device:
        """Gate for reads: returns the device or raises NotFound."""
        query = self.db.query(Device).filter(Device.id == device_id)
        if user_id is not None:
            query = query.filter(Device.user_id == user_id)
        with store_errors(self.db):
            device = query.first()
        if device is None:
            raise NotFound("Device not found")
        return device

    # -- CRUD --------------------------------------------------------------

    def list_for_user(self, user_id: int) -> list[Device]:
        with store_errors(self.db):
            return (
                self.db.query(Device)
                .filter(Device.user_id == user_id)
                .order_by(Device.created_at.desc(), Device.id.desc())
                .all()
            )

    def find_by_hardware_id(self, hardware_id: str, user_id: int) -> Device:
        with store_errors(self.db):
            device = (
                self.db.query(Device)
                .filter(Device.device_id == hardware_id, Device.user_id == user_id)
                .first()
            )
        if device is None:
            raise NotFound("Device not found")
        return device

    def create(self, data: dict, ctx: RequestContext) -> Device:
        name = (data.get("name") or "").strip()
        mac_address = (data.get("mac_address") or "").strip()
        if not name or not mac_address:
            raise InvalidInput("name and mac_address are required")

        with store_errors(self.db):
            taken = self.db.query(Device.id).filter(Device.mac_address == mac_address).first()
        if taken:
            raise Conflict("MAC address already registered")

        device = Device(
            user_id=ctx.user_id,
            name=name,
            mac_address=mac_address,
            device_id=data.get("device_id"),
            device_type=data.get("device_type") or DEFAULT_DEVICE_TYPE,
            service_uuid=data.get("service_uuid") or DEFAULT_SERVICE_UUID,
            status=_status_value(data.get("status") or DeviceStatus.NOT_CONFIGURED),
            location=data.get("location"),
            description=data.get("description"),
            created_at=ctx.now,
            updated_at=ctx.now,
        )
        with store_errors(self.db, "MAC address already registered"):
            self.db.add(device)
            self.db.commit()
            self.db.refresh(device)

        logger.info("Device %s created for user %s", device.id, ctx.user_id)
        self.audit.record(ctx, "device_create", "device", device.id)
        return device

    def update(self, device_id, changes: dict, ctx: RequestContext) -> Device:
        device = self.resolve(device_id, ctx.user_id)
        applied = []
        for name in UPDATABLE_FIELDS:
            if name not in changes or changes[name] is None:
                continue
            value = changes[name]
            if name == "status":
                value = _status_value(value)
            elif name == "name" and not str(value).strip():
                raise InvalidInput("name cannot be empty")
            setattr(device, name, value)
            applied.append(name)

        device.updated_at = ctx.now
        with store_errors(self.db):
            self.db.commit()
            self.db.refresh(device)

        self.audit.record(ctx, "device_update", "device", device.id, {"fields": applied})
        return device

    def update_status(self, device_id, status, ctx: RequestContext, is_connected: Optional[bool] = None) -> Device:
        device = self.resolve(device_id, ctx.user_id)
        device.status = _status_value(status)
        if is_connected is not None:
            device.is_connected = is_connected
        device.updated_at = ctx.now
        with store_errors(self.db):
            self.db.commit()
            self.db.refresh(device)

        self.audit.record(ctx, "device_update", "device", device.id, {"status": device.status})
        return device

    def update_wifi_config(self, device_id, ssid: str, ctx: RequestContext, status=DeviceStatus.CONFIGURED) -> Device:
        if not ssid or not str(ssid).strip():
            raise InvalidInput("ssid is required")
        device = self.resolve(device_id, ctx.user_id)
        device.last_ssid = ssid
        device.status = _status_value(status)
        device.last_configured = ctx.now
        device.updated_at = ctx.now
        with store_errors(self.db):
            self.db.commit()
            self.db.refresh(device)

        self.audit.record(ctx, "device_update", "device", device.id, {"ssid": ssid})
        return device

    def delete(self, device_id, ctx: RequestContext) -> None:
        # actions and readings go with the device through ON DELETE CASCADE
        device = self.resolve(device_id, ctx.user_id)
        with store_errors(self.db):
            self.db.delete(device)
            self.db.commit()

        logger.info("Device %s deleted by user %s", device_id, ctx.user_id)
        self.audit.record(ctx, "device_delete", "device", device_id)

    def statistics(self, user_id: int) -> dict:
        columns = [func.count(Device.id).label("total")]
        for status in STATUS_VALUES:
            columns.append(func.sum(case((Device.status == status, 1), else_=0)).label(status))
        columns.append(func.sum(case((Device.is_connected.is_(True), 1), else_=0)).label("connected"))

        with store_errors(self.db):
            row = self.db.query(*columns).filter(Device.user_id == user_id).one()
        return {key: int(value or 0) for key, value in row._mapping.items()}
