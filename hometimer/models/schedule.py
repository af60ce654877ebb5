from sqlalchemy import String, Boolean, DateTime, JSON
from sqlalchemy.orm import Mapped, mapped_column
from datetime import datetime
from hometimer.database import Base


class ScheduleRecord(Base):
    """Stores one schedule document per row."""
    
    __tablename__ = "schedules"
    
    id: Mapped[str] = mapped_column(String(100), primary_key=True)
    user_id: Mapped[str] = mapped_column(String(128), index=True)
    name: Mapped[str] = mapped_column(String(200))
    
    # Mirrors document["enabled"] so the scheduler can filter in SQL
    enabled: Mapped[bool] = mapped_column(Boolean, default=True, index=True)
    
    # Full schedule document (camelCase keys, see hometimer.schemas.Schedule)
    document: Mapped[dict] = mapped_column(JSON)
    
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.now)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.now)
