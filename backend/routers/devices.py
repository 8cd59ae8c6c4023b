from fastapi import APIRouter, Depends
from typing import List

from core.context import RequestContext
from core.deps import get_registry, get_request_context
from schemas.device import DeviceOut, DeviceCreate, DeviceUpdate, DeviceStatusIn, WifiConfigIn, DeviceStats
from services.registry import DeviceRegistry

router = APIRouter()


@router.get("/", response_model=List[DeviceOut])
def list_devices(registry: DeviceRegistry = Depends(get_registry), ctx: RequestContext = Depends(get_request_context)):
    return registry.list_for_user(ctx.user_id)


@router.post("/", response_model=DeviceOut, status_code=201)
def create_device(
    data: DeviceCreate,
    registry: DeviceRegistry = Depends(get_registry),
    ctx: RequestContext = Depends(get_request_context),
):
    return registry.create(data.model_dump(), ctx)


@router.get("/stats", response_model=DeviceStats)
def device_stats(registry: DeviceRegistry = Depends(get_registry), ctx: RequestContext = Depends(get_request_context)):
    return registry.statistics(ctx.user_id)


@router.get("/hardware/{hardware_id}", response_model=DeviceOut)
def get_device_by_hardware_id(
    hardware_id: str,
    registry: DeviceRegistry = Depends(get_registry),
    ctx: RequestContext = Depends(get_request_context),
):
    """Look up one of the caller's devices by the id the firmware reports."""
    return registry.find_by_hardware_id(hardware_id, ctx.user_id)


@router.get("/{device_id}", response_model=DeviceOut)
def get_device(device_id: int, registry: DeviceRegistry = Depends(get_registry), ctx: RequestContext = Depends(get_request_context)):
    return registry.resolve(device_id, ctx.user_id)


@router.put("/{device_id}", response_model=DeviceOut)
def update_device(
    device_id: int,
    data: DeviceUpdate,
    registry: DeviceRegistry = Depends(get_registry),
    ctx: RequestContext = Depends(get_request_context),
):
    return registry.update(device_id, data.model_dump(exclude_unset=True), ctx)


@router.put("/{device_id}/status", response_model=DeviceOut)
def update_device_status(
    device_id: int,
    data: DeviceStatusIn,
    registry: DeviceRegistry = Depends(get_registry),
    ctx: RequestContext = Depends(get_request_context),
):
    return registry.update_status(device_id, data.status, ctx, is_connected=data.is_connected)


@router.put("/{device_id}/wifi", response_model=DeviceOut)
def update_wifi_config(
    device_id: int,
    data: WifiConfigIn,
    registry: DeviceRegistry = Depends(get_registry),
    ctx: RequestContext = Depends(get_request_context),
):
    return registry.update_wifi_config(device_id, data.ssid, ctx, status=data.status)


@router.delete("/{device_id}")
def delete_device(device_id: int, registry: DeviceRegistry = Depends(get_registry), ctx: RequestContext = Depends(get_request_context)):
    registry.delete(device_id, ctx)
    return {"ok": True}
