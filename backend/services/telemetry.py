"""Telemetry store: append-only sensor readings.

Readings get their timestamp from the request context, never from the
caller's payload, and are never updated once written.
"""

import logging
import math
from collections.abc import Mapping
from datetime import datetime, timedelta
from typing import Any, Optional

from sqlalchemy import func, insert
from sqlalchemy.orm import Session, joinedload

from core.context import RequestContext, utcnow
from core.errors import InvalidInput, NotFound, Unauthorized
from models.sensor import SensorReading, SENSOR_TYPE_MAX_LENGTH, UNIT_MAX_LENGTH
from services.audit import AuditSink
from services.registry import DeviceRegistry
from services.store import check_limit, check_retention_days, store_errors

logger = logging.getLogger(__name__)

BUCKETS = ("minute", "hour", "day", "month")
MAX_BATCH_SIZE = 500
AGGREGATE_CHUNK_SIZE = 1000


def truncate(ts: datetime, bucket: str) -> datetime:
    """Start of the calendar-aligned bucket containing `ts`."""
    if bucket == "minute":
        return ts.replace(second=0, microsecond=0)
    if bucket == "hour":
        return ts.replace(minute=0, second=0, microsecond=0)
    if bucket == "day":
        return ts.replace(hour=0, minute=0, second=0, microsecond=0)
    if bucket == "month":
        return ts.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
    raise InvalidInput("interval must be one of: " + ", ".join(BUCKETS))


def _sensor_value(value) -> float:
    if isinstance(value, bool) or value is None:
        raise InvalidInput("sensor_value must be a number")
    try:
        number = float(value)
    except (TypeError, ValueError, OverflowError):
        raise InvalidInput("sensor_value must be a number")
    if not math.isfinite(number):
        raise InvalidInput("sensor_value must be a finite number")
    return number


def _device_id(value) -> int:
    if isinstance(value, bool):
        raise InvalidInput("device_id must be an integer")
    if isinstance(value, float) and not value.is_integer():
        raise InvalidInput("device_id must be an integer")
    try:
        return int(value)
    except (TypeError, ValueError, OverflowError):
        raise InvalidInput("device_id must be an integer")


def validate_reading(item) -> dict:
    """Check the required fields of one reading and normalize it for insert."""
    if not isinstance(item, Mapping):
        raise InvalidInput("reading must be an object")
    device_id = item.get("device_id")
    sensor_type = item.get("sensor_type")
    if device_id in (None, "") or not sensor_type or "sensor_value" not in item:
        raise InvalidInput("device_id, sensor_type and sensor_value are required")
    device_id = _device_id(device_id)
    if not isinstance(sensor_type, str) or not sensor_type.strip():
        raise InvalidInput("sensor_type must be a non-empty string")
    sensor_type = sensor_type.strip()
    if len(sensor_type) > SENSOR_TYPE_MAX_LENGTH:
        raise InvalidInput(f"sensor_type cannot be longer than {SENSOR_TYPE_MAX_LENGTH} characters")
    unit = item.get("unit")
    if unit is not None and not isinstance(unit, str):
        raise InvalidInput("unit must be a string")
    if unit is not None and len(unit) > UNIT_MAX_LENGTH:
        raise InvalidInput(f"unit cannot be longer than {UNIT_MAX_LENGTH} characters")
    return {
        "device_id": device_id,
        "sensor_type": sensor_type,
        "sensor_value": _sensor_value(item.get("sensor_value")),
        "unit": unit,
        "metadata": item.get("metadata"),
    }


class TelemetryStore:
    def __init__(self, db: Session, registry: Optional[DeviceRegistry] = None, audit: Optional[AuditSink] = None):
        self.db = db
        self.audit = audit or AuditSink(db)
        self.registry = registry or DeviceRegistry(db, self.audit)

    # -- ingestion ---------------------------------------------------------

    def record(
        self,
        device_id,
        sensor_type: str,
        sensor_value,
        ctx: RequestContext,
        unit: Optional[str] = None,
        metadata: Any = None,
    ) -> SensorReading:
        data = validate_reading(
            {
                "device_id": device_id,
                "sensor_type": sensor_type,
                "sensor_value": sensor_value,
                "unit": unit,
                "metadata": metadata,
            }
        )
        self.registry.require_owned(data["device_id"], ctx.user_id)

        reading = SensorReading(
            device_id=data["device_id"],
            sensor_type=data["sensor_type"],
            sensor_value=data["sensor_value"],
            unit=data["unit"],
            meta=data["metadata"],
            timestamp=ctx.now,
        )
        with store_errors(self.db):
            self.db.add(reading)
            self.db.commit()
            self.db.refresh(reading)

        self.audit.record(ctx, "sensor_record", "device", reading.device_id, {"sensor_type": reading.sensor_type})
        return reading

    def record_batch(self, items, ctx: RequestContext) -> int:
        """Validate every item, then write them all with one INSERT.

        The first item that fails validation or ownership aborts the whole
        batch with its index; nothing is written in that case.
        """
        if not isinstance(items, list) or not items:
            raise InvalidInput("batch must be a non-empty array")
        if len(items) > MAX_BATCH_SIZE:
            raise InvalidInput(f"batch cannot hold more than {MAX_BATCH_SIZE} readings")

        owned = {}
        rows = []
        for index, item in enumerate(items):
            try:
                data = validate_reading(item)
                device_id = data["device_id"]
                if device_id not in owned:
                    owned[device_id] = self.registry.is_owned_by(device_id, ctx.user_id)
                if not owned[device_id]:
                    raise Unauthorized("Device not found or not authorized")
            except (InvalidInput, Unauthorized) as exc:
                logger.warning("Rejected sensor batch at item %d: %s", index, exc.message)
                raise type(exc)(f"Item {index}: {exc.message}", index=index) from exc
            rows.append(
                {
                    "device_id": data["device_id"],
                    "sensor_type": data["sensor_type"],
                    "sensor_value": data["sensor_value"],
                    "unit": data["unit"],
                    "metadata": data["metadata"],
                    "timestamp": ctx.now,
                }
            )

        with store_errors(self.db):
            self.db.execute(insert(SensorReading.__table__).values(rows))
            self.db.commit()

        logger.info("Stored batch of %d readings for user %s", len(rows), ctx.user_id)
        self.audit.record(
            ctx,
            "sensor_batch",
            "device",
            None,
            {"count": len(rows), "device_ids": sorted(owned)},
        )
        return len(rows)

    # -- reads -------------------------------------------------------------

    def _filtered(self, device_id, sensor_type=None, from_time=None, to_time=None):
        query = self.db.query(SensorReading).filter(SensorReading.device_id == device_id)
        if sensor_type:
            query = query.filter(SensorReading.sensor_type == sensor_type)
        if from_time:
            query = query.filter(SensorReading.timestamp >= from_time)
        if to_time:
            query = query.filter(SensorReading.timestamp <= to_time)
        return query

    def query(
        self,
        device_id,
        sensor_type: Optional[str] = None,
        limit: int = 100,
        from_time: Optional[datetime] = None,
        to_time: Optional[datetime] = None,
    ) -> list[SensorReading]:
        limit = check_limit(limit)
        with store_errors(self.db):
            return (
                self._filtered(device_id, sensor_type, from_time, to_time)
                .order_by(SensorReading.timestamp.desc(), SensorReading.id.desc())
                .limit(limit)
                .all()
            )

    def latest(self, device_id, sensor_type: str, user_id: int) -> SensorReading:
        self.registry.resolve(device_id, user_id)
        with store_errors(self.db):
            reading = (
                self._filtered(device_id, sensor_type)
                .order_by(SensorReading.timestamp.desc(), SensorReading.id.desc())
                .first()
            )
        if reading is None:
            raise NotFound("No data found for this sensor")
        return reading

    def aggregate(
        self,
        device_id,
        sensor_type: str,
        bucket: str,
        from_time: Optional[datetime] = None,
        to_time: Optional[datetime] = None,
    ) -> list[dict]:
        """Per-bucket avg/min/max/count, ascending, empty buckets omitted."""
        if bucket not in BUCKETS:
            raise InvalidInput("interval must be one of: " + ", ".join(BUCKETS))
        if not sensor_type:
            raise InvalidInput("sensor_type is required for aggregation")

        query = self.db.query(SensorReading.timestamp, SensorReading.sensor_value).filter(
            SensorReading.device_id == device_id,
            SensorReading.sensor_type == sensor_type,
        )
        if from_time:
            query = query.filter(SensorReading.timestamp >= from_time)
        if to_time:
            query = query.filter(SensorReading.timestamp <= to_time)
        # rows are streamed in chunks; memory grows with the bucket count only
        buckets = {}
        with store_errors(self.db):
            for ts, value in query.order_by(SensorReading.timestamp.asc()).yield_per(AGGREGATE_CHUNK_SIZE):
                period = truncate(ts, bucket)
                acc = buckets.get(period)
                if acc is None:
                    buckets[period] = [value, value, value, 1]
                else:
                    acc[0] += value
                    acc[1] = min(acc[1], value)
                    acc[2] = max(acc[2], value)
                    acc[3] += 1

        return [
            {
                "period": period,
                "avg_value": total / count,
                "min_value": low,
                "max_value": high,
                "count": count,
            }
            for period, (total, low, high, count) in sorted(buckets.items())
        ]

    def statistics(self, device_id, window_days: int = 7, now: Optional[datetime] = None) -> list[dict]:
        since = (now or utcnow()) - timedelta(days=window_days)
        with store_errors(self.db):
            rows = (
                self.db.query(
                    SensorReading.sensor_type,
                    func.count(SensorReading.id).label("total_readings"),
                    func.avg(SensorReading.sensor_value).label("avg_value"),
                    func.min(SensorReading.sensor_value).label("min_value"),
                    func.max(SensorReading.sensor_value).label("max_value"),
                    func.min(SensorReading.timestamp).label("first_reading"),
                    func.max(SensorReading.timestamp).label("last_reading"),
                )
                .filter(SensorReading.device_id == device_id, SensorReading.timestamp >= since)
                .group_by(SensorReading.sensor_type)
                .order_by(SensorReading.sensor_type.asc())
                .all()
            )
        return [dict(row._mapping) for row in rows]

    def sensor_types(self, device_id) -> list[dict]:
        with store_errors(self.db):
            rows = (
                self.db.query(SensorReading.sensor_type, SensorReading.unit)
                .filter(SensorReading.device_id == device_id)
                .distinct()
                .order_by(SensorReading.sensor_type.asc())
                .all()
            )
        return [{"sensor_type": r.sensor_type, "unit": r.unit} for r in rows]

    def list_for_user(self, user_id: int, sensor_type: Optional[str] = None, limit: int = 100) -> list[SensorReading]:
        limit = check_limit(limit)
        query = (
            self.db.query(SensorReading)
            .options(joinedload(SensorReading.device))
            .filter(SensorReading.device_id.in_(self.registry.owned_device_ids(user_id)))
        )
        if sensor_type:
            query = query.filter(SensorReading.sensor_type == sensor_type)
        with store_errors(self.db):
            return query.order_by(SensorReading.timestamp.desc(), SensorReading.id.desc()).limit(limit).all()

    # -- retention ---------------------------------------------------------

    def purge_older_than(self, retention_days: int, ctx: RequestContext) -> int:
        cutoff = ctx.now - timedelta(days=check_retention_days(retention_days))
        with store_errors(self.db):
            deleted = (
                self.db.query(SensorReading)
                .filter(SensorReading.timestamp < cutoff)
                .delete(synchronize_session=False)
            )
            self.db.commit()

        logger.info("Purged %d sensor readings older than %s", deleted, cutoff)
        self.audit.record(ctx, "sensor_purged", "sensor_data", None, {"deleted": deleted, "retention_days": retention_days})
        return deleted
