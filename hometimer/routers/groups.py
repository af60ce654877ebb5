import logging
import uuid

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from hometimer.routers.deps import get_group_store, get_user_id
from hometimer.schemas import DeviceGroup, GroupCreate, GroupUpdate
from hometimer.services.store import GroupStore

logger = logging.getLogger(__name__)

router = APIRouter()


def _dump(group: DeviceGroup) -> dict:
    return group.model_dump(mode="json", by_alias=True)


def _not_found() -> JSONResponse:
    return JSONResponse({"success": False, "error": "Group not found"}, status_code=404)


@router.get("/")
async def list_groups(
    user_id: str = Depends(get_user_id),
    groups: GroupStore = Depends(get_group_store)
):
    """List the caller's device groups."""
    return {"success": True, "data": [_dump(g) for g in await groups.list_groups(user_id)]}


@router.post("/", status_code=201)
async def create_group(
    body: GroupCreate,
    user_id: str = Depends(get_user_id),
    groups: GroupStore = Depends(get_group_store)
):
    group = DeviceGroup(
        id=f"group-{uuid.uuid4().hex[:12]}",
        name=body.name,
        device_ids=body.device_ids,
        user_id=user_id
    )
    await groups.save_group(group)
    logger.info(f"Created group {group.id} ({group.name}, {len(group.device_ids)} devices)")
    return {"success": True, "data": _dump(group)}


@router.put("/{group_id}")
async def update_group(
    group_id: str,
    body: GroupUpdate,
    user_id: str = Depends(get_user_id),
    groups: GroupStore = Depends(get_group_store)
):
    """Rename a group or replace its device list."""
    existing = await groups.get_group(user_id, group_id)
    if not existing:
        return _not_found()

    updated = existing.model_copy(update=body.model_dump(exclude_none=True))
    await groups.save_group(updated)
    logger.info(f"Updated group {group_id}")
    return {"success": True, "data": _dump(updated)}


@router.delete("/{group_id}")
async def delete_group(
    group_id: str,
    user_id: str = Depends(get_user_id),
    groups: GroupStore = Depends(get_group_store)
):
    if not await groups.delete_group(user_id, group_id):
        return _not_found()
    logger.info(f"Deleted group {group_id}")
    return {"success": True, "message": "Group deleted"}
