from fastapi import APIRouter, Depends, Query
from typing import List

from core.config import settings
from core.context import RequestContext
from core.deps import get_action_queue, get_registry, get_request_context
from schemas.action import ActionCreate, ActionStatusIn, ActionOut, PendingActionOut, ActionStats
from services.actions import ActionQueue
from services.registry import DeviceRegistry

router = APIRouter()


@router.get("/", response_model=List[PendingActionOut])
def list_pending_actions(queue: ActionQueue = Depends(get_action_queue), ctx: RequestContext = Depends(get_request_context)):
    """Pending actions across the caller's devices, oldest first."""
    return queue.list_pending_for_user(ctx.user_id)


@router.post("/", response_model=ActionOut, status_code=201)
def create_action(
    data: ActionCreate,
    queue: ActionQueue = Depends(get_action_queue),
    ctx: RequestContext = Depends(get_request_context),
):
    return queue.enqueue(data.device_id, data.action_type, data.action_data, ctx)


@router.get("/stats", response_model=ActionStats)
def action_stats(
    days: int = Query(settings.STATS_WINDOW_DAYS, ge=1, le=365),
    queue: ActionQueue = Depends(get_action_queue),
    ctx: RequestContext = Depends(get_request_context),
):
    return queue.statistics(ctx.user_id, days=days, now=ctx.now)


@router.get("/device/{device_id}", response_model=List[ActionOut])
def list_device_actions(
    device_id: int,
    limit: int = Query(settings.DEFAULT_ACTION_LIMIT, ge=1, le=settings.MAX_QUERY_LIMIT),
    queue: ActionQueue = Depends(get_action_queue),
    registry: DeviceRegistry = Depends(get_registry),
    ctx: RequestContext = Depends(get_request_context),
):
    # the queue does not authorize device listings; the owner check lives here
    registry.resolve(device_id, ctx.user_id)
    return queue.list_for_device(device_id, limit)


@router.get("/{action_id}", response_model=ActionOut)
def get_action(action_id: int, queue: ActionQueue = Depends(get_action_queue), ctx: RequestContext = Depends(get_request_context)):
    return queue.get_by_id(action_id, ctx.user_id)


@router.put("/{action_id}", response_model=ActionOut)
def update_action_status(
    action_id: int,
    data: ActionStatusIn,
    queue: ActionQueue = Depends(get_action_queue),
    ctx: RequestContext = Depends(get_request_context),
):
    return queue.update_status(
        action_id,
        data.status,
        ctx,
        response_data=data.response_data,
        error_message=data.error_message,
    )
