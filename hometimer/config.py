from typing import Optional
from zoneinfo import ZoneInfo

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    database_url: str = "sqlite+aiosqlite:///data/hometimer.db"

    tuya_access_id: str = ""
    tuya_access_secret: str = ""
    tuya_base_url: str = "https://openapi.tuyaus.com"
    tuya_seed_device_ids: list[str] = []
    request_timeout: float = 10.0

    scheduler_enabled: bool = True
    tick_interval_seconds: int = 60
    dedup_window_seconds: int = 120
    # IANA name; unset means the server's local time
    timezone: Optional[str] = None

    log_level: str = "INFO"
    
    class Config:
        env_prefix = "HOMETIMER_"

    def tzinfo(self) -> Optional[ZoneInfo]:
        """Timezone slot times are interpreted in."""
        return ZoneInfo(self.timezone) if self.timezone else None


settings = Settings()
