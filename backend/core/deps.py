from fastapi import Depends, Header, HTTPException, Request
from sqlalchemy.orm import Session

from core.config import settings
from core.context import RequestContext
from core.security import get_current_user
from db.session import get_db
from models.user import User
from services.actions import ActionQueue
from services.audit import AuditSink
from services.registry import DeviceRegistry
from services.telemetry import TelemetryStore


def _client_meta(request: Request):
    ip = request.client.host if request.client else "unknown"
    agent = request.headers.get("user-agent") or "unknown"
    return ip, agent


def get_request_context(request: Request, current_user: User = Depends(get_current_user)) -> RequestContext:
    ip, agent = _client_meta(request)
    return RequestContext(user_id=current_user.id, ip_address=ip, user_agent=agent)


def get_anonymous_context(request: Request) -> RequestContext:
    ip, agent = _client_meta(request)
    return RequestContext(user_id=None, ip_address=ip, user_agent=agent)


def get_audit(db: Session = Depends(get_db)) -> AuditSink:
    return AuditSink(db)


def get_registry(db: Session = Depends(get_db), audit: AuditSink = Depends(get_audit)) -> DeviceRegistry:
    return DeviceRegistry(db, audit)


def get_action_queue(
    db: Session = Depends(get_db),
    registry: DeviceRegistry = Depends(get_registry),
    audit: AuditSink = Depends(get_audit),
) -> ActionQueue:
    return ActionQueue(db, registry, audit)


def get_telemetry(
    db: Session = Depends(get_db),
    registry: DeviceRegistry = Depends(get_registry),
    audit: AuditSink = Depends(get_audit),
) -> TelemetryStore:
    return TelemetryStore(db, registry, audit)


def verify_maintenance_secret(authorization: str = Header(None)):
    if not authorization:
        raise HTTPException(status_code=401, detail="Missing authorization header")
    if not authorization.startswith("Bearer "):
        raise HTTPException(status_code=401, detail="Invalid authorization header")
    token = authorization.split(" ", 1)[1]
    if token != settings.MAINTENANCE_SHARED_SECRET:
        raise HTTPException(status_code=403, detail="Invalid shared secret")
