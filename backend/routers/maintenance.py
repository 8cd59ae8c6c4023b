from fastapi import APIRouter, Depends
from pydantic import BaseModel
from typing import Optional

from core.config import settings
from core.context import RequestContext
from core.deps import get_action_queue, get_audit, get_telemetry, verify_maintenance_secret
from services.actions import ActionQueue
from services.audit import AuditSink
from services.telemetry import TelemetryStore

router = APIRouter()


class PurgeIn(BaseModel):
    action_retention_days: Optional[int] = None
    sensor_retention_days: Optional[int] = None
    audit_retention_days: Optional[int] = None


def _pick(value, default):
    return default if value is None else value


@router.post("/purge")
def purge(
    data: Optional[PurgeIn] = None,
    queue: ActionQueue = Depends(get_action_queue),
    telemetry: TelemetryStore = Depends(get_telemetry),
    audit: AuditSink = Depends(get_audit),
    _=Depends(verify_maintenance_secret),
):
    """Apply the retention windows; meant to be called from cron."""
    data = data or PurgeIn()
    ctx = RequestContext.system()
    actions = queue.purge_older_than(_pick(data.action_retention_days, settings.ACTION_RETENTION_DAYS), ctx)
    readings = telemetry.purge_older_than(_pick(data.sensor_retention_days, settings.SENSOR_RETENTION_DAYS), ctx)
    logs = audit.purge_older_than(_pick(data.audit_retention_days, settings.AUDIT_RETENTION_DAYS), ctx)
    return {"ok": True, "actions": actions, "sensor_data": readings, "logs": logs}
