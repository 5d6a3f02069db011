"""Sync router: delta sync, update checks, download status and offline activity upload."""
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session

from mecasync.database import get_db
from mecasync.dependencies import RequestIdentity, get_request_identity
from mecasync.schemas import ActivityBatchRequest
from mecasync.services.activity import ActivityReconciler
from mecasync.services.downloads import DownloadLedger
from mecasync.services.sync import SyncService
from mecasync.timeutil import isoformat, parse_timestamp, utcnow

router = APIRouter(prefix="/api/sync", tags=["sync"])


@router.get("/full")
def full_sync(
    last_sync: Optional[str] = Query(None, alias="lastSync", description="ISO-8601 time of the previous sync"),
    identity: RequestIdentity = Depends(get_request_identity),
    db: Session = Depends(get_db),
):
    """
    Get every active module and meca aid changed since `lastSync`.

    Omit `lastSync` on first sync to receive the complete catalog.
    """
    since = parse_timestamp(last_sync)
    data = SyncService.compute_delta(db, identity.user_id, identity.device_id, since)
    return {"success": True, "data": data}


@router.get("/check")
def check_for_updates(
    last_sync: Optional[str] = Query(None, alias="lastSync", description="ISO-8601 time of the previous sync"),
    identity: RequestIdentity = Depends(get_request_identity),
    db: Session = Depends(get_db),
):
    """Lightweight check for whether a full sync would return anything."""
    since = parse_timestamp(last_sync)
    data = SyncService.check_for_updates(db, identity.user_id, identity.device_id, since)
    return {"success": True, "data": data}


@router.get("/downloads")
def download_status(
    identity: RequestIdentity = Depends(get_request_identity),
    db: Session = Depends(get_db),
):
    """Downloaded modules on this device and whether each needs re-downloading."""
    data = DownloadLedger.get_download_status(db, identity.user_id, identity.device_id)
    return {"success": True, "data": data}


@router.post("/activities")
def sync_activities(
    payload: ActivityBatchRequest,
    request: Request,
    identity: RequestIdentity = Depends(get_request_identity),
    db: Session = Depends(get_db),
):
    """
    Upload activities recorded while offline.

    Bad events are skipped; the response reports how many were stored.
    """
    result = ActivityReconciler.ingest_batch(
        db,
        identity.user_id,
        identity.device_id,
        payload.activities,
        ip_address=request.client.host if request.client else None,
    )

    return {
        "success": True,
        "message": f"{result.accepted_count} of {result.total_count} activities synced",
        "data": {
            "syncedCount": result.accepted_count,
            "totalCount": result.total_count,
            "duplicateCount": result.duplicate_count,
            "timedOut": result.timed_out,
            "failed": [
                {"index": r.index, "status": r.status, "error": r.error}
                for r in result.results
                if not r.ok
            ],
        },
    }


@router.get("/status")
def sync_status(
    identity: RequestIdentity = Depends(get_request_identity),
    db: Session = Depends(get_db),
):
    """Most recent sync checkpoint for this device."""
    return {
        "success": True,
        "data": {
            "lastSync": SyncService.get_sync_status(db, identity.user_id, identity.device_id),
            "serverTime": isoformat(utcnow()),
        },
    }
