"""UserActivity model for storing activity events recorded on devices."""
from sqlalchemy import Column, DateTime, ForeignKey, Integer, JSON, String, UniqueConstraint

from mecasync.database import Base
from mecasync.timeutil import utcnow


class UserActivity(Base):
    """
    Append-only activity event (module view, download, completion, ...).

    `created_at` holds the client-supplied timestamp verbatim when one was
    sent, otherwise the server time. `received_at` is always server time.
    """
    __tablename__ = "user_activities"
    __table_args__ = (
        UniqueConstraint("user_id", "device_id", "client_event_id", name="uq_user_activities_client_event"),
    )

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    device_id = Column(String, nullable=True)

    # Activity details
    activity_type = Column(String, nullable=False, index=True)
    reference_id = Column(String, nullable=True)
    reference_type = Column(String, nullable=True)
    event_metadata = Column("metadata", JSON, nullable=True)
    duration_seconds = Column(Integer, nullable=True)
    ip_address = Column(String, nullable=True)
    client_event_id = Column(String, nullable=True)

    # Timestamps
    created_at = Column(DateTime, default=utcnow, nullable=False, index=True)
    received_at = Column(DateTime, default=utcnow, nullable=False)

    def __repr__(self):
        return f"<UserActivity(id={self.id}, user_id={self.user_id}, type={self.activity_type})>"
