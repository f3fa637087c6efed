"""
Device management endpoints.

Lists a user's devices, attaches an existing device under a custom name,
renames and detaches it, and sets a device's energy limit and power state.
Every mutation clears the device's cached charts.

CHANGELOG:
- 2026-10-11: Invalidate chart cache after mutations (STORY-110)
- 2026-10-06: Initial creation (STORY-103)

TODO:
- None
"""

import logging

from fastapi import APIRouter, Response
from pydantic import BaseModel, Field

from wattboard.api.deps import AppSettings, Store
from wattboard.cache.redis_client import invalidate_device_cache
from wattboard.core.models import Device

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1", tags=["devices"])


# ---------------------------------------------------------------------------
# Pydantic request models
# ---------------------------------------------------------------------------


class DeviceAttach(BaseModel):
    """Body of POST /v1/users/{user_id}/devices."""

    device_id: str = Field(min_length=1)
    name: str = Field(min_length=1, max_length=64)


class DeviceRename(BaseModel):
    name: str = Field(min_length=1, max_length=64)


class EnergyLimitIn(BaseModel):
    """Alert threshold in kWh; 0 disables alerting."""

    energy_limit: float = Field(ge=0, allow_inf_nan=False)


class PowerStateIn(BaseModel):
    is_on: bool


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------


@router.get("/users/{user_id}/devices", response_model=list[Device])
async def list_devices(user_id: str, store: Store) -> list[Device]:
    return await store.list_user_devices(user_id)


@router.post("/users/{user_id}/devices", response_model=Device, status_code=201)
async def attach_device(user_id: str, body: DeviceAttach, store: Store) -> Device:
    """Attach an already registered device to the user.

    Raises:
        DeviceNotFoundError: Mapped to 404 when the device id is unknown.
    """
    return await store.add_device(user_id, body.device_id, body.name.strip())


@router.patch("/users/{user_id}/devices/{device_id}", status_code=204)
async def rename_device(
    user_id: str,
    device_id: str,
    body: DeviceRename,
    store: Store,
) -> Response:
    await store.rename_device(user_id, device_id, body.name.strip())
    return Response(status_code=204)


@router.delete("/users/{user_id}/devices/{device_id}", status_code=204)
async def detach_device(
    user_id: str,
    device_id: str,
    settings: AppSettings,
    store: Store,
) -> Response:
    """Remove a device from the user's list; the device itself is kept."""
    await store.remove_device(user_id, device_id)
    await invalidate_device_cache(settings.redis_url, device_id)
    return Response(status_code=204)


@router.put("/devices/{device_id}/limit", response_model=Device)
async def set_energy_limit(
    device_id: str,
    body: EnergyLimitIn,
    settings: AppSettings,
    store: Store,
) -> Device:
    """Set the energy limit and return the updated device.

    Raises:
        DeviceNotFoundError: Mapped to 404 when the device id is unknown.
    """
    await store.get_device(device_id)
    await store.set_energy_limit(device_id, body.energy_limit)
    await invalidate_device_cache(settings.redis_url, device_id)
    logger.info("Energy limit of %s set to %.2f kWh", device_id, body.energy_limit)
    return await store.get_device(device_id)


@router.put("/devices/{device_id}/power", response_model=Device)
async def set_power_state(
    device_id: str,
    body: PowerStateIn,
    settings: AppSettings,
    store: Store,
) -> Device:
    await store.get_device(device_id)
    await store.set_power_state(device_id, body.is_on)
    await invalidate_device_cache(settings.redis_url, device_id)
    logger.info("Device %s switched %s", device_id, "on" if body.is_on else "off")
    return await store.get_device(device_id)
