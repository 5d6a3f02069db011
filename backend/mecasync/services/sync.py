"""Sync orchestrator: delta payloads, update checks and sync checkpoints."""
from datetime import datetime, timedelta
from typing import Dict, Optional

from loguru import logger
from sqlalchemy.orm import Session

from mecasync.config import settings
from mecasync.database import storage_errors
from mecasync.models import SyncLog
from mecasync.services.content import (
    ContentRepository,
    serialize_category,
    serialize_meca_aid,
    serialize_module,
)
from mecasync.services.downloads import ledger_device_id
from mecasync.timeutil import isoformat, utcnow


class SyncService:
    """Compute what a device must apply to reach the current server state."""

    @staticmethod
    def compute_delta(
        db: Session,
        user_id: int,
        device_id: Optional[str],
        since: Optional[datetime] = None,
    ) -> Dict:
        """
        Build the sync payload for a device.

        Deltas come straight from content timestamps; the checkpoint log is
        never consulted, so a partially failed earlier sync cannot cause
        items to be skipped.

        Args:
            db: Database session
            user_id: Authenticated user id
            device_id: Device id from the request, may be None
            since: Exclusive lower bound on updated_at; None means first sync

        Returns:
            Dictionary with modules, mecaAids (with nested steps), categories,
            settings, syncedAt and nextSyncRecommended
        """
        # Must precede the reads: edits made during them are newer than this mark
        synced_at = utcnow()

        modules = ContentRepository.fetch_active_changed_since(db, "module", since)
        meca_aids = ContentRepository.fetch_active_changed_since(db, "meca_aid", since)

        # One query for the steps of every aid in the delta
        steps_by_aid = ContentRepository.fetch_children_bulk(db, [aid.id for aid in meca_aids])

        categories = ContentRepository.fetch_categories(db)

        # Serialize before the checkpoint commit expires the loaded rows
        payload = {
            "modules": [serialize_module(module) for module in modules],
            "mecaAids": [serialize_meca_aid(aid, steps_by_aid.get(aid.id, [])) for aid in meca_aids],
            "moduleCategories": [serialize_category(c) for c in categories["module"]],
            "mecaAidCategories": [serialize_category(c) for c in categories["meca_aid"]],
            "settings": ContentRepository.fetch_settings_all(db),
        }

        SyncService._record_checkpoint(
            db,
            user_id,
            device_id,
            synced_at,
            sync_type="full" if since is None else "incremental",
            items_synced=len(modules) + len(meca_aids),
        )

        logger.info(
            f"✓ Sync for user {user_id} on {ledger_device_id(device_id)}: "
            f"{len(modules)} modules, {len(meca_aids)} meca aids (since={isoformat(since)})"
        )

        payload["syncedAt"] = isoformat(synced_at)
        payload["nextSyncRecommended"] = isoformat(synced_at + timedelta(seconds=settings.SYNC_INTERVAL_SECONDS))
        return payload

    @staticmethod
    def check_for_updates(db: Session, user_id: int, device_id: Optional[str], since: Optional[datetime]) -> Dict:
        """
        Cheap existence check using the same predicate as compute_delta.

        Without `since` the device has never synced, so updates are always
        reported and nothing is counted.
        """
        if since is None:
            return {
                "hasUpdates": True,
                "message": "Initial sync required",
                "serverTime": isoformat(utcnow()),
            }

        module_count = ContentRepository.count_active_changed_since(db, "module", since)
        meca_aid_count = ContentRepository.count_active_changed_since(db, "meca_aid", since)

        return {
            "hasUpdates": module_count > 0 or meca_aid_count > 0,
            "updates": {
                "modules": module_count,
                "mecaAids": meca_aid_count,
            },
            "serverTime": isoformat(utcnow()),
        }

    @staticmethod
    def get_sync_status(db: Session, user_id: int, device_id: Optional[str]) -> Optional[Dict]:
        """Most recent checkpoint for the device, or None if it never synced."""
        with storage_errors(db, "fetch sync status"):
            sync_log = (
                db.query(SyncLog)
                .filter(SyncLog.user_id == user_id, SyncLog.device_id == ledger_device_id(device_id))
                .order_by(SyncLog.last_sync_at.desc(), SyncLog.id.desc())
                .first()
            )

        if not sync_log:
            return None

        return {
            "syncType": sync_log.sync_type,
            "itemsSynced": sync_log.items_synced,
            "lastSyncAt": isoformat(sync_log.last_sync_at),
        }

    @staticmethod
    def _record_checkpoint(
        db: Session,
        user_id: int,
        device_id: Optional[str],
        synced_at: datetime,
        sync_type: str,
        items_synced: int,
    ) -> None:
        """Append a SyncLog row. Rows are never updated, so concurrent syncs cannot conflict."""
        db.add(SyncLog(
            user_id=user_id,
            device_id=ledger_device_id(device_id),
            sync_type=sync_type,
            items_synced=items_synced,
            last_sync_at=synced_at,
        ))

        with storage_errors(db, "record sync checkpoint"):
            db.commit()
