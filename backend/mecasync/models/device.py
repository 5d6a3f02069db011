"""Device model for the per-user device registry."""
from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import relationship

from mecasync.database import Base
from mecasync.timeutil import utcnow


class Device(Base):
    """Last-seen metadata for one (user, device) pair."""
    __tablename__ = "devices"
    __table_args__ = (
        UniqueConstraint("user_id", "device_id", name="uq_devices_user_device"),
    )

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    device_id = Column(String, nullable=False)

    device_name = Column(String, nullable=True)
    device_model = Column(String, nullable=True)
    os_version = Column(String, nullable=True)
    app_version = Column(String, nullable=True)
    push_token = Column(String, nullable=True)

    last_active_at = Column(DateTime, default=utcnow, nullable=False, index=True)
    is_active = Column(Boolean, nullable=False, default=True)

    # Timestamps
    created_at = Column(DateTime, default=utcnow, nullable=False)

    # Relationships
    user = relationship("User", back_populates="devices")

    def __repr__(self):
        return f"<Device(user_id={self.user_id}, device_id={self.device_id}, active={self.is_active})>"
