"""Action queue: commands waiting for a device to pull and execute them.

Lifecycle::

    pending --> sent --> completed | failed
    pending --> completed | failed

Every accepted transition stamps `executed_at` with the caller's clock, so an
action that goes pending -> sent -> completed ends up with the time of the
last transition. Transitions out of `completed`/`failed`, same-state repeats
and anything else outside the table are rejected with Conflict.
"""

import logging
from datetime import timedelta
from typing import Any, Optional

from sqlalchemy import func, case
from sqlalchemy.orm import Session, joinedload

from core.context import RequestContext, utcnow
from core.errors import InvalidInput, NotFound, Conflict
from models.action import DeviceAction, ActionStatus, ACTION_TYPE_MAX_LENGTH, ALLOWED_SOURCES, TERMINAL_STATUSES
from services.audit import AuditSink
from services.registry import DeviceRegistry
from services.store import check_limit, check_retention_days, store_errors

logger = logging.getLogger(__name__)

STATUS_VALUES = tuple(s.value for s in ActionStatus)


class ActionQueue:
    def __init__(self, db: Session, registry: Optional[DeviceRegistry] = None, audit: Optional[AuditSink] = None):
        self.db = db
        self.audit = audit or AuditSink(db)
        self.registry = registry or DeviceRegistry(db, self.audit)

    def _owned_query(self, user_id: int):
        return self.db.query(DeviceAction).filter(
            DeviceAction.device_id.in_(self.registry.owned_device_ids(user_id))
        )

    def enqueue(self, device_id, action_type: str, action_data: Any, ctx: RequestContext) -> DeviceAction:
        if device_id is None or not action_type or not str(action_type).strip():
            raise InvalidInput("device_id and action_type are required")
        action_type = str(action_type).strip()
        if len(action_type) > ACTION_TYPE_MAX_LENGTH:
            raise InvalidInput(f"action_type cannot be longer than {ACTION_TYPE_MAX_LENGTH} characters")
        self.registry.require_owned(device_id, ctx.user_id)

        action = DeviceAction(
            device_id=device_id,
            action_type=action_type,
            action_data=action_data,
            status=ActionStatus.PENDING.value,
            created_at=ctx.now,
        )
        with store_errors(self.db):
            self.db.add(action)
            self.db.commit()
            self.db.refresh(action)

        logger.info("Queued action %s (%s) for device %s", action.id, action.action_type, device_id)
        self.audit.record(
            ctx,
            "device_action",
            "device",
            device_id,
            {"action_type": action.action_type, "details": action_data},
        )
        return action

    def get_by_id(self, action_id, user_id: int) -> DeviceAction:
        with store_errors(self.db):
            action = self._owned_query(user_id).filter(DeviceAction.id == action_id).first()
        if action is None:
            raise NotFound("Action not found")
        return action

    def list_pending_for_user(self, user_id: int) -> list[DeviceAction]:
        """Oldest first, across all of the user's devices."""
        with store_errors(self.db):
            return (
                self._owned_query(user_id)
                .options(joinedload(DeviceAction.device))
                .filter(DeviceAction.status == ActionStatus.PENDING.value)
                .order_by(DeviceAction.created_at.asc(), DeviceAction.id.asc())
                .all()
            )

    def list_for_device(self, device_id, limit: int = 50) -> list[DeviceAction]:
        # authorization is the caller's job; see routers/actions.py
        limit = check_limit(limit)
        with store_errors(self.db):
            return (
                self.db.query(DeviceAction)
                .filter(DeviceAction.device_id == device_id)
                .order_by(DeviceAction.created_at.desc(), DeviceAction.id.desc())
                .limit(limit)
                .all()
            )

    def update_status(
        self,
        action_id,
        status: str,
        ctx: RequestContext,
        response_data: Any = None,
        error_message: Optional[str] = None,
    ) -> DeviceAction:
        if status not in STATUS_VALUES:
            raise InvalidInput("Invalid status. Must be one of: " + ", ".join(STATUS_VALUES))
        action = self.get_by_id(action_id, ctx.user_id)

        values = {"status": status, "executed_at": ctx.now}
        if response_data is not None:
            values["response_data"] = response_data
        if error_message is not None:
            values["error_message"] = error_message

        sources = ALLOWED_SOURCES[status]
        with store_errors(self.db):
            # the source-state guard lives in the WHERE clause so two racing
            # callers cannot both move the same action
            updated = (
                self.db.query(DeviceAction)
                .filter(DeviceAction.id == action.id, DeviceAction.status.in_(sources))
                .update(values, synchronize_session=False)
            )
            if not updated:
                self.db.rollback()
            else:
                self.db.commit()

        if not updated:
            self.db.refresh(action)
            logger.warning("Rejected transition %s -> %s for action %s", action.status, status, action.id)
            raise Conflict(f"Cannot change action status from {action.status} to {status}")

        self.db.refresh(action)
        logger.info("Action %s is now %s", action.id, status)
        self.audit.record(
            ctx,
            "action_status",
            "action",
            action.id,
            {"status": status, "error_message": error_message},
        )
        return action

    def mark_sent(self, action_id, ctx: RequestContext) -> DeviceAction:
        return self.update_status(action_id, ActionStatus.SENT.value, ctx)

    def mark_completed(self, action_id, ctx: RequestContext, response_data: Any = None) -> DeviceAction:
        return self.update_status(action_id, ActionStatus.COMPLETED.value, ctx, response_data=response_data)

    def mark_failed(self, action_id, error_message: str, ctx: RequestContext) -> DeviceAction:
        return self.update_status(action_id, ActionStatus.FAILED.value, ctx, error_message=error_message)

    def statistics(self, user_id: int, days: int = 7, now=None) -> dict:
        since = (now or utcnow()) - timedelta(days=days)
        columns = [func.count(DeviceAction.id).label("total")]
        for status in STATUS_VALUES:
            columns.append(func.sum(case((DeviceAction.status == status, 1), else_=0)).label(status))
        with store_errors(self.db):
            row = (
                self.db.query(*columns)
                .filter(
                    DeviceAction.device_id.in_(self.registry.owned_device_ids(user_id)),
                    DeviceAction.created_at >= since,
                )
                .one()
            )
        return {key: int(value or 0) for key, value in row._mapping.items()}

    def purge_older_than(self, retention_days: int, ctx: RequestContext) -> int:
        """Delete finished actions older than the cutoff.

        pending and sent actions are kept regardless of age.
        """
        cutoff = ctx.now - timedelta(days=check_retention_days(retention_days))
        with store_errors(self.db):
            deleted = (
                self.db.query(DeviceAction)
                .filter(DeviceAction.created_at < cutoff, DeviceAction.status.in_(TERMINAL_STATUSES))
                .delete(synchronize_session=False)
            )
            self.db.commit()

        logger.info("Purged %d finished actions older than %s", deleted, cutoff)
        self.audit.record(ctx, "actions_purged", "action", None, {"deleted": deleted, "retention_days": retention_days})
        return deleted
