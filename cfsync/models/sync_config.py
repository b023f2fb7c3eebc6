from __future__ import annotations

from sqlalchemy import Boolean, String
from sqlalchemy.orm import Mapped, mapped_column

from cfsync.db.database import Base
from cfsync.models.base import TimestampMixin


class SyncConfig(Base, TimestampMixin):
    """Singleton row holding the active sync schedule."""

    __tablename__ = "sync_config"

    id: Mapped[int] = mapped_column(primary_key=True)
    cron_time: Mapped[str] = mapped_column(String(100), nullable=False)
    enabled: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    def __repr__(self) -> str:
        state = "enabled" if self.enabled else "disabled"
        return f"<SyncConfig '{self.cron_time}' {state}>"
