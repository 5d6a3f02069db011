"""Device registry: last-seen metadata per (user, device)."""
from typing import Dict, List, Optional

from loguru import logger
from sqlalchemy import func
from sqlalchemy.orm import Session

from mecasync.database import build_upsert, storage_errors
from mecasync.exceptions import ValidationError
from mecasync.models import Device
from mecasync.timeutil import isoformat, utcnow

_METADATA_FIELDS = ("device_name", "device_model", "os_version", "app_version", "push_token")


class DeviceService:

    @staticmethod
    def register_device(db: Session, user_id: int, device_id: Optional[str], **metadata) -> None:
        """
        Create or refresh a device record.

        Fields sent as None keep their stored value. The device is marked
        active and its last_active_at is set to now.

        Raises:
            ValidationError: If device_id is missing
        """
        if not device_id:
            raise ValidationError("Device ID required")

        unknown = set(metadata) - set(_METADATA_FIELDS)
        if unknown:
            raise ValidationError(f"Unknown device fields: {', '.join(sorted(unknown))}")

        values = {field: metadata.get(field) for field in _METADATA_FIELDS}
        now = utcnow()

        stmt = build_upsert(
            db,
            Device,
            values={
                "user_id": user_id,
                "device_id": device_id,
                "last_active_at": now,
                "is_active": True,
                "created_at": now,
                **values,
            },
            conflict_columns=["user_id", "device_id"],
            set_factory=lambda incoming: {
                **{
                    field: func.coalesce(getattr(incoming, field), getattr(Device, field))
                    for field in _METADATA_FIELDS
                },
                "last_active_at": incoming.last_active_at,
                "is_active": True,
            },
        )

        with storage_errors(db, "register device"):
            db.execute(stmt)
            db.commit()

        logger.info(f"✓ Device {device_id} registered for user {user_id}")

    @staticmethod
    def list_devices(db: Session, user_id: int) -> List[Dict]:
        with storage_errors(db, "list devices"):
            devices = (
                db.query(Device)
                .filter(Device.user_id == user_id)
                .order_by(Device.last_active_at.desc())
                .all()
            )

        return [
            {
                "deviceId": device.device_id,
                "deviceName": device.device_name,
                "deviceModel": device.device_model,
                "osVersion": device.os_version,
                "appVersion": device.app_version,
                "lastActiveAt": isoformat(device.last_active_at),
                "isActive": device.is_active,
            }
            for device in devices
        ]
