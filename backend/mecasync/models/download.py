"""DownloadedModule model: the per-device download ledger."""
from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import relationship

from mecasync.database import Base
from mecasync.timeutil import utcnow


class DownloadedModule(Base):
    """
    Which version of a module a device last downloaded.

    One row per (user, module, device). Repeat downloads overwrite the
    version and timestamp; rows are never deleted, even when the module is
    later deactivated.
    """
    __tablename__ = "downloaded_modules"
    __table_args__ = (
        UniqueConstraint("user_id", "module_id", "device_id", name="uq_downloaded_modules_key"),
    )

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    module_id = Column(Integer, ForeignKey("modules.id"), nullable=False)
    device_id = Column(String, nullable=False)

    downloaded_version = Column(Integer, nullable=False)
    downloaded_at = Column(DateTime, default=utcnow, nullable=False)

    # Relationships
    module = relationship("Module")

    def __repr__(self):
        return (
            f"<DownloadedModule(user_id={self.user_id}, module_id={self.module_id}, "
            f"device_id={self.device_id}, version={self.downloaded_version})>"
        )
