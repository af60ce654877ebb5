from hometimer.routers.schedules import router as schedules_router
from hometimer.routers.devices import router as devices_router
from hometimer.routers.groups import router as groups_router

__all__ = ["schedules_router", "devices_router", "groups_router"]
