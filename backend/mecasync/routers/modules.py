"""Modules router: offline download of a module."""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from mecasync.database import get_db
from mecasync.dependencies import RequestIdentity, get_request_identity
from mecasync.services.downloads import DownloadLedger

router = APIRouter(prefix="/api/modules", tags=["modules"])


@router.post("/{uuid}/download")
def download_module(
    uuid: str,
    identity: RequestIdentity = Depends(get_request_identity),
    db: Session = Depends(get_db),
):
    """
    Mark a module as downloaded on this device at its current version.

    Returns 404 if the module is missing, inactive or not downloadable.
    """
    module = DownloadLedger.download_module(db, identity.user_id, identity.device_id, uuid)
    return {
        "success": True,
        "message": "Module marked for download",
        "data": {"module": module},
    }
