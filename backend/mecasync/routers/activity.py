"""Activity router: activity logging, history and device registration."""
from typing import Any, Dict, Optional

from fastapi import APIRouter, Body, Depends, Query, Request
from sqlalchemy.orm import Session

from mecasync.database import get_db
from mecasync.dependencies import RequestIdentity, get_request_identity
from mecasync.schemas import ActivityBatchRequest, DeviceRegistration
from mecasync.services.activity import ActivityReconciler
from mecasync.services.devices import DeviceService
from mecasync.timeutil import isoformat, parse_timestamp

router = APIRouter(prefix="/api/activity", tags=["activity"])


def _client_ip(request: Request) -> Optional[str]:
    return request.client.host if request.client else None


@router.post("/log")
def log_activities(
    payload: ActivityBatchRequest,
    request: Request,
    identity: RequestIdentity = Depends(get_request_identity),
    db: Session = Depends(get_db),
):
    """Log a batch of activities. Same partial-success rules as /api/sync/activities."""
    result = ActivityReconciler.ingest_batch(
        db,
        identity.user_id,
        identity.device_id,
        payload.activities,
        ip_address=_client_ip(request),
    )
    return {
        "success": True,
        "message": f"{result.accepted_count} activities logged",
        "data": {
            "syncedCount": result.accepted_count,
            "totalCount": result.total_count,
        },
    }


@router.post("/single")
def log_single_activity(
    request: Request,
    event: Dict[str, Any] = Body(...),
    identity: RequestIdentity = Depends(get_request_identity),
    db: Session = Depends(get_db),
):
    """Log one activity. Fails with 400 if the activity is invalid."""
    activity = ActivityReconciler.ingest_one(
        db,
        identity.user_id,
        identity.device_id,
        event,
        ip_address=_client_ip(request),
    )
    return {
        "success": True,
        "message": "Activity logged",
        "data": {"id": activity.id, "createdAt": isoformat(activity.created_at)},
    }


@router.post("/device")
def register_device(
    payload: DeviceRegistration,
    identity: RequestIdentity = Depends(get_request_identity),
    db: Session = Depends(get_db),
):
    """Create or refresh the caller's device record."""
    DeviceService.register_device(
        db,
        identity.user_id,
        payload.device_id,
        device_name=payload.device_name,
        device_model=payload.device_model,
        os_version=payload.os_version,
        app_version=payload.app_version or identity.app_version,
        push_token=payload.push_token,
    )
    return {"success": True, "message": "Device info updated"}


@router.get("/history")
def activity_history(
    activity_type: Optional[str] = Query(None, alias="type", description="Filter by activity type"),
    start_date: Optional[str] = Query(None, alias="from", description="Activities at or after this time (ISO-8601)"),
    end_date: Optional[str] = Query(None, alias="to", description="Activities at or before this time (ISO-8601)"),
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=200),
    identity: RequestIdentity = Depends(get_request_identity),
    db: Session = Depends(get_db),
):
    """Get the caller's activity history, newest first."""
    activities = ActivityReconciler.get_history(
        db,
        identity.user_id,
        activity_type=activity_type,
        start_date=parse_timestamp(start_date, "from"),
        end_date=parse_timestamp(end_date, "to"),
        page=page,
        limit=limit,
    )
    return {"success": True, "data": activities}


@router.get("/devices")
def list_devices(
    identity: RequestIdentity = Depends(get_request_identity),
    db: Session = Depends(get_db),
):
    """Get the caller's devices, most recently active first."""
    return {"success": True, "data": DeviceService.list_devices(db, identity.user_id)}
