"""SyncLog model for recording sync checkpoints."""
from sqlalchemy import Column, DateTime, ForeignKey, Index, Integer, String

from mecasync.database import Base
from mecasync.timeutil import utcnow


class SyncLog(Base):
    """
    SyncLog model: one appended row per full or incremental sync.

    Informational high-water mark only. Deltas are always computed from
    content timestamps, never from this table.
    """
    __tablename__ = "sync_logs"
    __table_args__ = (
        Index("ix_sync_logs_user_device_time", "user_id", "device_id", "last_sync_at"),
    )

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    device_id = Column(String, nullable=False)
    sync_type = Column(String, nullable=False)  # full, incremental
    items_synced = Column(Integer, nullable=False, default=0)
    last_sync_at = Column(DateTime, default=utcnow, nullable=False)

    def __repr__(self):
        return f"<SyncLog(user_id={self.user_id}, device_id={self.device_id}, last_sync_at={self.last_sync_at})>"
