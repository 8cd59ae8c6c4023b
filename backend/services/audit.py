import logging
from datetime import timedelta
from typing import Any, Optional

from sqlalchemy import func, distinct
from sqlalchemy.orm import Session

from core.context import RequestContext, utcnow
from models.log import SystemLog
from services.store import check_retention_days, store_errors

logger = logging.getLogger(__name__)

FILTER_FIELDS = ("user_id", "action", "resource_type", "ip_address")


class AuditSink:
    """Append-only audit trail.

    `record` is fire-and-forget: it runs after the primary operation has
    committed, and any failure is logged instead of raised.
    """

    def __init__(self, db: Session):
        self.db = db

    def record(
        self,
        ctx: RequestContext,
        action: str,
        resource_type: Optional[str] = None,
        resource_id: Optional[int] = None,
        details: Optional[Any] = None,
    ) -> Optional[SystemLog]:
        entry = SystemLog(
            user_id=ctx.user_id,
            action=action,
            resource_type=resource_type,
            resource_id=resource_id,
            ip_address=ctx.ip_address,
            user_agent=ctx.user_agent,
            details=details,
            created_at=ctx.now,
        )
        try:
            self.db.add(entry)
            self.db.commit()
        except Exception:
            self.db.rollback()
            logger.exception("Failed to write audit entry %s for user %s", action, ctx.user_id)
            return None
        return entry

    def _filtered(self, filters: dict):
        query = self.db.query(SystemLog)
        for name in FILTER_FIELDS:
            value = filters.get(name)
            if value:
                query = query.filter(getattr(SystemLog, name) == value)
        if filters.get("from_date"):
            query = query.filter(SystemLog.created_at >= filters["from_date"])
        if filters.get("to_date"):
            query = query.filter(SystemLog.created_at <= filters["to_date"])
        return query

    def find_with_filters(self, filters: dict, limit: int = 50, offset: int = 0) -> list[SystemLog]:
        with store_errors(self.db):
            return (
                self._filtered(filters)
                .order_by(SystemLog.created_at.desc(), SystemLog.id.desc())
                .limit(limit)
                .offset(offset)
                .all()
            )

    def count_with_filters(self, filters: dict) -> int:
        with store_errors(self.db):
            return self._filtered(filters).count()

    def statistics(self, days: int = 7, user_id: Optional[int] = None, now=None) -> list[dict]:
        """Per-action totals over the last `days` days, busiest first."""
        since = (now or utcnow()) - timedelta(days=days)
        query = self.db.query(
            SystemLog.action,
            func.count(SystemLog.id).label("total"),
            func.count(distinct(SystemLog.user_id)).label("unique_users"),
            func.count(distinct(SystemLog.ip_address)).label("unique_ips"),
        ).filter(SystemLog.created_at >= since)
        if user_id is not None:
            query = query.filter(SystemLog.user_id == user_id)
        with store_errors(self.db):
            rows = query.group_by(SystemLog.action).order_by(func.count(SystemLog.id).desc()).all()
        return [
            {"action": r.action, "total": r.total, "unique_users": r.unique_users, "unique_ips": r.unique_ips}
            for r in rows
        ]

    def purge_older_than(self, retention_days: int, ctx: RequestContext) -> int:
        cutoff = ctx.now - timedelta(days=check_retention_days(retention_days))
        with store_errors(self.db):
            deleted = (
                self.db.query(SystemLog)
                .filter(SystemLog.created_at < cutoff)
                .delete(synchronize_session=False)
            )
            self.db.commit()
        logger.info("Purged %d audit entries older than %s", deleted, cutoff)
        return deleted
