"""Download ledger: which module version each device holds for offline use."""
from typing import Dict, List, Optional

from loguru import logger
from sqlalchemy.orm import Session

from mecasync.config import settings
from mecasync.database import build_upsert, storage_errors
from mecasync.models import DownloadedModule, Module
from mecasync.services.activity import ActivityReconciler
from mecasync.services.content import ContentRepository, serialize_module
from mecasync.timeutil import isoformat, utcnow


def ledger_device_id(device_id: Optional[str]) -> str:
    """
    Ledger key for a device. Requests without a device id all share the
    "unknown" key and therefore collide with each other.
    """
    return device_id or settings.UNKNOWN_DEVICE_ID


class DownloadLedger:
    """Record downloads and report which downloaded modules are stale."""

    @staticmethod
    def _download_upsert(db: Session, user_id: int, module_id: int, device_id: Optional[str], version: int):
        return build_upsert(
            db,
            DownloadedModule,
            values={
                "user_id": user_id,
                "module_id": module_id,
                "device_id": ledger_device_id(device_id),
                "downloaded_version": version,
                "downloaded_at": utcnow(),
            },
            conflict_columns=["user_id", "module_id", "device_id"],
            set_factory=lambda incoming: {
                "downloaded_version": incoming.downloaded_version,
                "downloaded_at": incoming.downloaded_at,
            },
        )

    @staticmethod
    def record_download(
        db: Session,
        user_id: int,
        module_id: int,
        device_id: Optional[str],
        version: int,
    ) -> None:
        """
        Upsert the download record for (user, module, device).

        An existing row is overwritten unconditionally, even with an older
        version: a device may re-download an older cached copy and the
        last writer wins.
        """
        stmt = DownloadLedger._download_upsert(db, user_id, module_id, device_id, version)

        with storage_errors(db, "record module download"):
            db.execute(stmt)
            db.commit()

        logger.debug(f"Recorded download user={user_id} module={module_id} device={device_id} version={version}")

    @staticmethod
    def download_module(db: Session, user_id: int, device_id: Optional[str], module_uuid: str) -> Dict:
        """
        Mark an active, downloadable module as downloaded at its current version.

        The ledger row and the module_download activity are committed in one
        transaction; if either write fails, neither is kept.

        Returns:
            Serialized module

        Raises:
            NotFoundError: If the module is absent, inactive or not downloadable
            StorageError: If the download cannot be recorded
        """
        module = ContentRepository.fetch_module(db, module_uuid, downloadable_only=True)
        module_id, version = module.id, module.version

        with storage_errors(db, "record module download"):
            db.execute(DownloadLedger._download_upsert(db, user_id, module_id, device_id, version))
            ActivityReconciler.stage(
                db,
                user_id,
                device_id,
                {
                    "activityType": "module_download",
                    "referenceId": str(module_id),
                    "referenceType": "module",
                },
            )
            db.commit()

        logger.info(f"✓ Module {module_uuid} v{version} downloaded by user {user_id} on {ledger_device_id(device_id)}")
        return serialize_module(module)

    @staticmethod
    def get_download_status(db: Session, user_id: int, device_id: Optional[str]) -> List[Dict]:
        """
        Report every module this device has downloaded against its current version.

        `needsUpdate` is evaluated in the query on each call. Deactivated
        modules are still reported; the ledger is never pruned.
        """
        needs_update = (DownloadedModule.downloaded_version < Module.version).label("needs_update")

        with storage_errors(db, "fetch download status"):
            rows = (
                db.query(
                    DownloadedModule.module_id,
                    Module.uuid,
                    Module.title,
                    Module.is_active,
                    DownloadedModule.downloaded_version,
                    Module.version.label("current_version"),
                    needs_update,
                    DownloadedModule.downloaded_at,
                )
                .join(Module, DownloadedModule.module_id == Module.id)
                .filter(
                    DownloadedModule.user_id == user_id,
                    DownloadedModule.device_id == ledger_device_id(device_id),
                )
                .order_by(DownloadedModule.module_id)
                .all()
            )

        return [
            {
                "moduleId": row.module_id,
                "uuid": row.uuid,
                "title": row.title,
                "isActive": bool(row.is_active),
                "downloadedVersion": row.downloaded_version,
                "currentVersion": row.current_version,
                "needsUpdate": bool(row.needs_update),
                "downloadedAt": isoformat(row.downloaded_at),
            }
            for row in rows
        ]
