from datetime import datetime
from fastapi import APIRouter, Depends, Query
from typing import List, Optional

from core.config import settings
from core.context import RequestContext, as_naive_utc
from core.deps import get_audit, get_request_context
from schemas.log import LogPage, LogActionStats
from services.audit import AuditSink

router = APIRouter()


@router.get("/", response_model=LogPage)
def list_my_logs(
    action: Optional[str] = None,
    resource_type: Optional[str] = None,
    from_date: Optional[datetime] = None,
    to_date: Optional[datetime] = None,
    limit: int = Query(50, ge=1, le=settings.MAX_QUERY_LIMIT),
    offset: int = Query(0, ge=0),
    audit: AuditSink = Depends(get_audit),
    ctx: RequestContext = Depends(get_request_context),
):
    # scoped to the caller; other users' entries are never listed
    filters = {
        "user_id": ctx.user_id,
        "action": action,
        "resource_type": resource_type,
        "from_date": as_naive_utc(from_date),
        "to_date": as_naive_utc(to_date),
    }
    return {
        "logs": audit.find_with_filters(filters, limit=limit, offset=offset),
        "total": audit.count_with_filters(filters),
        "limit": limit,
        "offset": offset,
    }


@router.get("/stats", response_model=List[LogActionStats])
def my_log_stats(
    days: int = Query(settings.STATS_WINDOW_DAYS, ge=1, le=365),
    audit: AuditSink = Depends(get_audit),
    ctx: RequestContext = Depends(get_request_context),
):
    return audit.statistics(days=days, user_id=ctx.user_id, now=ctx.now)
