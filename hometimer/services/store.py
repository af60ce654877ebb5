from datetime import datetime
from typing import Optional
import logging

from pydantic import ValidationError
from sqlalchemy import select, desc, delete
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from hometimer.models import DeviceGroupRecord, ScheduleRecord
from hometimer.schemas import DeviceGroup, Schedule

logger = logging.getLogger(__name__)


def _to_schedule(record: ScheduleRecord) -> Optional[Schedule]:
    try:
        return Schedule.model_validate(record.document)
    except ValidationError as e:
        logger.error(f"Skipping invalid schedule document {record.id}: {e}")
        return None


class ScheduleStore:
    """Schedule documents kept in the ``schedules`` table."""

    def __init__(self, session_factory: Optional[async_sessionmaker[AsyncSession]] = None):
        if session_factory is None:
            from hometimer.database import async_session
            session_factory = async_session
        self._session_factory = session_factory

    async def list_enabled_schedules(self) -> list[Schedule]:
        """Snapshot of every enabled schedule across all users."""
        async with self._session_factory() as session:
            result = await session.execute(
                select(ScheduleRecord).where(ScheduleRecord.enabled == True)
            )
            records = result.scalars().all()

        schedules = [_to_schedule(r) for r in records]
        return [s for s in schedules if s is not None and s.enabled]

    async def list_schedules(self, user_id: str) -> list[Schedule]:
        """A user's schedules, most recently updated first."""
        async with self._session_factory() as session:
            result = await session.execute(
                select(ScheduleRecord)
                .where(ScheduleRecord.user_id == user_id)
                .order_by(desc(ScheduleRecord.updated_at))
            )
            records = result.scalars().all()

        schedules = [_to_schedule(r) for r in records]
        return [s for s in schedules if s is not None]

    async def get_schedule(self, user_id: str, schedule_id: str) -> Optional[Schedule]:
        async with self._session_factory() as session:
            record = await session.get(ScheduleRecord, schedule_id)

        if not record or record.user_id != user_id:
            return None
        return _to_schedule(record)

    async def save_schedule(self, schedule: Schedule) -> Schedule:
        """Insert or replace a schedule document."""
        now = datetime.now()
        if schedule.created_at is None:
            schedule = schedule.model_copy(update={"created_at": now})
        if schedule.updated_at is None:
            schedule = schedule.model_copy(update={"updated_at": now})

        document = schedule.model_dump(mode="json", by_alias=True)

        async with self._session_factory() as session:
            record = await session.get(ScheduleRecord, schedule.id)
            if record:
                record.user_id = schedule.user_id
                record.name = schedule.name
                record.enabled = schedule.enabled
                record.document = document
                record.updated_at = schedule.updated_at
            else:
                record = ScheduleRecord(
                    id=schedule.id,
                    user_id=schedule.user_id,
                    name=schedule.name,
                    enabled=schedule.enabled,
                    document=document,
                    created_at=schedule.created_at,
                    updated_at=schedule.updated_at
                )
                session.add(record)
            await session.commit()

        return schedule

    async def delete_schedule(self, user_id: str, schedule_id: str) -> bool:
        async with self._session_factory() as session:
            result = await session.execute(
                delete(ScheduleRecord).where(
                    ScheduleRecord.id == schedule_id,
                    ScheduleRecord.user_id == user_id
                )
            )
            await session.commit()
        return result.rowcount > 0


def _to_group(record: DeviceGroupRecord) -> DeviceGroup:
    return DeviceGroup(
        id=record.id,
        name=record.name,
        device_ids=list(record.device_ids or []),
        user_id=record.user_id
    )


class GroupStore:
    """Per-user device groups kept in the ``device_groups`` table."""

    def __init__(self, session_factory: Optional[async_sessionmaker[AsyncSession]] = None):
        if session_factory is None:
            from hometimer.database import async_session
            session_factory = async_session
        self._session_factory = session_factory

    async def list_groups(self, user_id: str) -> list[DeviceGroup]:
        async with self._session_factory() as session:
            result = await session.execute(
                select(DeviceGroupRecord)
                .where(DeviceGroupRecord.user_id == user_id)
                .order_by(DeviceGroupRecord.created_at)
            )
            return [_to_group(r) for r in result.scalars().all()]

    async def get_group(self, user_id: str, group_id: str) -> Optional[DeviceGroup]:
        async with self._session_factory() as session:
            record = await session.get(DeviceGroupRecord, group_id)

        if not record or record.user_id != user_id:
            return None
        return _to_group(record)

    async def save_group(self, group: DeviceGroup) -> DeviceGroup:
        """Insert or replace a group."""
        async with self._session_factory() as session:
            record = await session.get(DeviceGroupRecord, group.id)
            if record:
                record.user_id = group.user_id
                record.name = group.name
                record.device_ids = list(group.device_ids)
            else:
                session.add(DeviceGroupRecord(
                    id=group.id,
                    user_id=group.user_id,
                    name=group.name,
                    device_ids=list(group.device_ids)
                ))
            await session.commit()
        return group

    async def delete_group(self, user_id: str, group_id: str) -> bool:
        async with self._session_factory() as session:
            result = await session.execute(
                delete(DeviceGroupRecord).where(
                    DeviceGroupRecord.id == group_id,
                    DeviceGroupRecord.user_id == user_id
                )
            )
            await session.commit()
        return result.rowcount > 0
