from contextlib import asynccontextmanager
from datetime import datetime, timedelta
import logging

from fastapi import FastAPI, Request

from hometimer.config import settings
from hometimer.database import init_db
from hometimer.routers import schedules_router, devices_router, groups_router
from hometimer.scheduler import TickDriver
from hometimer.services.executor import ScheduleExecutor
from hometimer.services.matcher import DedupTracker
from hometimer.services.store import GroupStore, ScheduleStore
from hometimer.services.tuya import TuyaClient
from hometimer.version import __version__

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s"
)
logger = logging.getLogger(__name__)


def build_driver(store: ScheduleStore, tuya: TuyaClient) -> TickDriver:
    """Wire the executor and its tick driver from settings."""
    executor = ScheduleExecutor(
        store,
        tuya,
        dedup=DedupTracker(timedelta(seconds=settings.dedup_window_seconds))
    )
    return TickDriver(
        executor,
        interval_seconds=settings.tick_interval_seconds,
        timezone=settings.tzinfo()
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    await init_db()

    tuya = TuyaClient(
        settings.tuya_access_id,
        settings.tuya_access_secret,
        base_url=settings.tuya_base_url,
        timeout=settings.request_timeout,
        seed_device_ids=settings.tuya_seed_device_ids
    )
    if tuya.is_configured():
        try:
            await tuya.get_token()
            await tuya.discover_uid()
            logger.info("Tuya initialized")
        except Exception as e:
            logger.warning(f"Tuya not initialized: {e}")
    else:
        logger.warning("Tuya credentials not configured")

    store = ScheduleStore()
    driver = build_driver(store, tuya)

    app.state.tuya = tuya
    app.state.store = store
    app.state.groups = GroupStore()
    app.state.driver = driver

    if settings.scheduler_enabled:
        driver.start()
    yield
    # Shutdown
    driver.stop()


app = FastAPI(title="hometimer", version=__version__, lifespan=lifespan)

app.include_router(schedules_router, prefix="/api/schedules", tags=["schedules"])
app.include_router(devices_router, prefix="/api/devices", tags=["devices"])
app.include_router(groups_router, prefix="/api/groups", tags=["groups"])


@app.get("/health")
async def health():
    return {"status": "ok", "timestamp": datetime.now().isoformat()}


@app.get("/api/scheduler")
async def scheduler_status(request: Request):
    """Whether the tick loop is running and when it next fires."""
    driver: TickDriver = request.app.state.driver
    next_run = driver.get_next_run_time()
    return {
        "success": True,
        "data": {
            "running": driver.running,
            "next_run_time": next_run.isoformat() if next_run else None,
            "dedup_entries": len(driver.executor.dedup)
        }
    }
