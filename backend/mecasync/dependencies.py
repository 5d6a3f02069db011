"""FastAPI dependencies for authentication and device identification."""
from dataclasses import dataclass
from typing import Optional

from fastapi import Depends, HTTPException, Request
from sqlalchemy.orm import Session

from mecasync.database import get_db
from mecasync.models import User


@dataclass
class RequestIdentity:
    """Authenticated user plus the device the request came from."""
    user: User
    device_id: Optional[str] = None
    app_version: Optional[str] = None

    @property
    def user_id(self) -> int:
        return self.user.id


def get_current_user(request: Request, db: Session = Depends(get_db)) -> User:
    """
    Get the currently authenticated user from the session.

    Raises HTTPException if no user is logged in or the user is inactive.
    """
    user_id = request.session.get("user_id")

    if not user_id:
        raise HTTPException(
            status_code=401,
            detail="Not authenticated. Please log in."
        )

    user = db.query(User).filter(User.id == user_id).first()

    if not user or not user.is_active:
        # Session points at a deleted or deactivated user
        request.session.clear()
        raise HTTPException(
            status_code=401,
            detail="User not found or inactive"
        )

    return user


def get_request_identity(request: Request, user: User = Depends(get_current_user)) -> RequestIdentity:
    """
    Attach the device headers to the authenticated user.

    The device id stays None when the header is missing; services map that
    to the shared "unknown" ledger key.
    """
    return RequestIdentity(
        user=user,
        device_id=request.headers.get("x-device-id") or None,
        app_version=request.headers.get("x-app-version") or None,
    )
