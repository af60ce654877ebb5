from datetime import datetime
import logging
import uuid

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from hometimer.routers.deps import get_driver, get_store, get_user_id
from hometimer.scheduler import TickDriver
from hometimer.schemas import Schedule, ScheduleCreate, ScheduleUpdate, TriggerRequest
from hometimer.services.executor import TriggerError
from hometimer.services.store import ScheduleStore

logger = logging.getLogger(__name__)

router = APIRouter()


def _dump(schedule: Schedule) -> dict:
    return schedule.model_dump(mode="json", by_alias=True)


def _not_found() -> JSONResponse:
    return JSONResponse({"success": False, "error": "Schedule not found"}, status_code=404)


@router.get("/")
async def list_schedules(
    user_id: str = Depends(get_user_id),
    store: ScheduleStore = Depends(get_store)
):
    """List all schedules for the caller."""
    schedules = await store.list_schedules(user_id)
    return {"success": True, "data": [_dump(s) for s in schedules]}


@router.get("/{schedule_id}")
async def get_schedule(
    schedule_id: str,
    user_id: str = Depends(get_user_id),
    store: ScheduleStore = Depends(get_store)
):
    schedule = await store.get_schedule(user_id, schedule_id)
    if not schedule:
        return _not_found()
    return {"success": True, "data": _dump(schedule)}


@router.post("/", status_code=201)
async def create_schedule(
    body: ScheduleCreate,
    user_id: str = Depends(get_user_id),
    store: ScheduleStore = Depends(get_store)
):
    """Create a new schedule."""
    now = datetime.now()
    schedule = Schedule(
        id=f"schedule-{uuid.uuid4().hex[:12]}",
        name=body.name,
        enabled=body.enabled,
        user_id=user_id,
        days_of_week=body.days_of_week,
        time_slots=body.time_slots,
        triggers=body.triggers,
        created_at=now,
        updated_at=now
    )
    await store.save_schedule(schedule)
    logger.info(f"Created schedule {schedule.id} ({schedule.name})")
    return {"success": True, "data": _dump(schedule)}


@router.put("/{schedule_id}")
async def update_schedule(
    schedule_id: str,
    body: ScheduleUpdate,
    user_id: str = Depends(get_user_id),
    store: ScheduleStore = Depends(get_store)
):
    """Update the given fields of a schedule."""
    existing = await store.get_schedule(user_id, schedule_id)
    if not existing:
        return _not_found()

    changes = body.model_dump(exclude_none=True)
    changes["updated_at"] = datetime.now()
    updated = Schedule.model_validate({**existing.model_dump(), **changes})

    await store.save_schedule(updated)
    logger.info(f"Updated schedule {schedule_id}")
    return {"success": True, "data": _dump(updated)}


@router.delete("/{schedule_id}")
async def delete_schedule(
    schedule_id: str,
    user_id: str = Depends(get_user_id),
    store: ScheduleStore = Depends(get_store)
):
    if not await store.delete_schedule(user_id, schedule_id):
        return _not_found()
    logger.info(f"Deleted schedule {schedule_id}")
    return {"success": True, "message": "Schedule deleted"}


@router.post("/{schedule_id}/toggle")
async def toggle_schedule(
    schedule_id: str,
    user_id: str = Depends(get_user_id),
    store: ScheduleStore = Depends(get_store)
):
    """Flip a schedule's enabled flag."""
    existing = await store.get_schedule(user_id, schedule_id)
    if not existing:
        return _not_found()

    updated = existing.model_copy(update={
        "enabled": not existing.enabled,
        "updated_at": datetime.now()
    })
    await store.save_schedule(updated)
    logger.info(f"Toggled schedule {schedule_id} enabled: {updated.enabled}")
    return {"success": True, "data": {"id": schedule_id, "enabled": updated.enabled}}


@router.post("/{schedule_id}/test")
async def test_schedule(
    schedule_id: str,
    body: TriggerRequest = TriggerRequest(),
    user_id: str = Depends(get_user_id),
    store: ScheduleStore = Depends(get_store),
    driver: TickDriver = Depends(get_driver)
):
    """Run one slot now, the first one unless ``slotId`` is given."""
    schedule = await store.get_schedule(user_id, schedule_id)
    if not schedule:
        return _not_found()

    slot_id = body.slot_id or (schedule.time_slots[0].id if schedule.time_slots else None)
    if not slot_id:
        return JSONResponse({"success": False, "error": "No time slots in schedule"}, status_code=400)

    try:
        result = await driver.trigger(schedule_id, slot_id)
    except TriggerError as e:
        return JSONResponse({"success": False, "error": str(e)}, status_code=404)

    return {
        "success": True,
        "message": "Schedule triggered successfully",
        "data": result.to_dict()
    }
