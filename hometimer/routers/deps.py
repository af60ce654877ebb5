from fastapi import Header, Request

from hometimer.scheduler import TickDriver
from hometimer.services.store import GroupStore, ScheduleStore
from hometimer.services.tuya import TuyaClient


def get_store(request: Request) -> ScheduleStore:
    return request.app.state.store


def get_group_store(request: Request) -> GroupStore:
    return request.app.state.groups


def get_tuya(request: Request) -> TuyaClient:
    return request.app.state.tuya


def get_driver(request: Request) -> TickDriver:
    return request.app.state.driver


async def get_user_id(x_user_id: str = Header(..., min_length=1)) -> str:
    """Caller identity; authentication happens in front of this service."""
    return x_user_id
