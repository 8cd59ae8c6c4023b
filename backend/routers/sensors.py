from datetime import datetime
from fastapi import APIRouter, Body, Depends, Query
from typing import Any, List, Optional

from core.config import settings
from core.context import RequestContext, as_naive_utc
from core.deps import get_registry, get_request_context, get_telemetry
from core.errors import InvalidInput
from schemas.sensor import (
    SensorReadingOut,
    UserSensorReadingOut,
    AggregateBucket,
    SensorStatistics,
    SensorTypeOut,
)
from services.registry import DeviceRegistry
from services.telemetry import TelemetryStore

router = APIRouter()


@router.get("/", response_model=List[UserSensorReadingOut])
def list_user_readings(
    sensor_type: Optional[str] = None,
    limit: int = Query(settings.DEFAULT_SENSOR_LIMIT, ge=1, le=settings.MAX_QUERY_LIMIT),
    telemetry: TelemetryStore = Depends(get_telemetry),
    ctx: RequestContext = Depends(get_request_context),
):
    return telemetry.list_for_user(ctx.user_id, sensor_type=sensor_type, limit=limit)


@router.post("/", status_code=201)
def save_readings(
    payload: Any = Body(...),
    telemetry: TelemetryStore = Depends(get_telemetry),
    ctx: RequestContext = Depends(get_request_context),
):
    """Store one reading, or a whole `{"batch": [...]}` in one write."""
    if isinstance(payload, dict) and "batch" in payload:
        saved = telemetry.record_batch(payload["batch"], ctx)
        return {"ok": True, "saved_count": saved}
    if not isinstance(payload, dict):
        raise InvalidInput("Invalid payload")
    reading = telemetry.record(
        payload.get("device_id"),
        payload.get("sensor_type"),
        payload.get("sensor_value"),
        ctx,
        unit=payload.get("unit"),
        metadata=payload.get("metadata"),
    )
    return SensorReadingOut.model_validate(reading)


@router.get("/device/{device_id}")
def device_readings(
    device_id: int,
    sensor_type: Optional[str] = None,
    limit: int = Query(settings.DEFAULT_SENSOR_LIMIT, ge=1, le=settings.MAX_QUERY_LIMIT),
    from_date: Optional[datetime] = None,
    to_date: Optional[datetime] = None,
    interval: Optional[str] = None,
    telemetry: TelemetryStore = Depends(get_telemetry),
    registry: DeviceRegistry = Depends(get_registry),
    ctx: RequestContext = Depends(get_request_context),
):
    """Raw readings newest first, or bucketed aggregates when `interval` is set."""
    registry.resolve(device_id, ctx.user_id)
    from_date, to_date = as_naive_utc(from_date), as_naive_utc(to_date)
    if interval:
        rows = telemetry.aggregate(device_id, sensor_type, interval, from_date, to_date)
        data = [AggregateBucket(**row) for row in rows]
    else:
        rows = telemetry.query(device_id, sensor_type, limit, from_date, to_date)
        data = [SensorReadingOut.model_validate(row) for row in rows]
    return {
        "device_id": device_id,
        "sensor_type": sensor_type,
        "interval": interval,
        "sensor_data": data,
        "total": len(data),
    }


@router.get("/latest/{device_id}/{sensor_type}", response_model=SensorReadingOut)
def latest_reading(
    device_id: int,
    sensor_type: str,
    telemetry: TelemetryStore = Depends(get_telemetry),
    ctx: RequestContext = Depends(get_request_context),
):
    return telemetry.latest(device_id, sensor_type, ctx.user_id)


@router.get("/stats/{device_id}", response_model=List[SensorStatistics])
def device_statistics(
    device_id: int,
    days: int = Query(settings.STATS_WINDOW_DAYS, ge=1, le=365),
    telemetry: TelemetryStore = Depends(get_telemetry),
    registry: DeviceRegistry = Depends(get_registry),
    ctx: RequestContext = Depends(get_request_context),
):
    registry.resolve(device_id, ctx.user_id)
    return telemetry.statistics(device_id, window_days=days, now=ctx.now)


@router.get("/types/{device_id}", response_model=List[SensorTypeOut])
def device_sensor_types(
    device_id: int,
    telemetry: TelemetryStore = Depends(get_telemetry),
    registry: DeviceRegistry = Depends(get_registry),
    ctx: RequestContext = Depends(get_request_context),
):
    registry.resolve(device_id, ctx.user_id)
    return telemetry.sensor_types(device_id)
