"""Activity reconciler: ingest activity events recorded on devices, often offline."""
import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

import pydantic
from loguru import logger
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from mecasync.config import settings
from mecasync.database import storage_errors
from mecasync.exceptions import StorageError, ValidationError
from mecasync.models import UserActivity
from mecasync.schemas import ActivityEventIn
from mecasync.timeutil import isoformat, utcnow

ACCEPTED = "accepted"
DUPLICATE = "duplicate"
INVALID = "invalid"
FAILED = "failed"
SKIPPED = "skipped"


@dataclass
class EventResult:
    """Outcome of one event in a batch."""
    index: int
    status: str
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status in (ACCEPTED, DUPLICATE)


@dataclass
class BatchResult:
    """Summary of a batch ingestion. Never raised; partial success is a normal outcome."""
    total_count: int
    results: List[EventResult] = field(default_factory=list)
    timed_out: bool = False

    @property
    def accepted_count(self) -> int:
        return sum(1 for r in self.results if r.ok)

    @property
    def duplicate_count(self) -> int:
        return sum(1 for r in self.results if r.status == DUPLICATE)

    @property
    def failed_count(self) -> int:
        return self.total_count - self.accepted_count


def _format_validation_error(error: pydantic.ValidationError) -> str:
    parts = []
    for detail in error.errors():
        location = ".".join(str(p) for p in detail.get("loc", ())) or "event"
        parts.append(f"{location}: {detail.get('msg')}")
    return "; ".join(parts)


class ActivityReconciler:
    """
    Validate and persist activity events.

    Stateless: every call is independent. Each event is written in its own
    transaction, so a failed event never rolls back the ones before it.
    """

    @staticmethod
    def validate_event(raw: Any) -> ActivityEventIn:
        """
        Validate one raw event.

        Raises:
            ValidationError: If the event is not an object or lacks activityType
        """
        if not isinstance(raw, dict):
            raise ValidationError("Activity must be an object")
        try:
            return ActivityEventIn.model_validate(raw)
        except pydantic.ValidationError as e:
            raise ValidationError(f"Invalid activity: {_format_validation_error(e)}") from e

    @staticmethod
    def ingest_batch(
        db: Session,
        user_id: int,
        device_id: Optional[str],
        activities: Any,
        ip_address: Optional[str] = None,
        deadline_seconds: Optional[float] = None,
    ) -> BatchResult:
        """
        Ingest a batch of events, skipping the ones that fail.

        Args:
            db: Database session
            user_id: Authenticated user id
            device_id: Device id from the request; events may carry their own
            activities: Raw list of event objects
            ip_address: Client address recorded on every event
            deadline_seconds: Time budget for the batch; events not yet
                written when it runs out are reported as skipped

        Returns:
            BatchResult with one EventResult per input event

        Raises:
            ValidationError: If `activities` is missing, not a list, empty,
                or larger than ACTIVITY_BATCH_MAX_SIZE
        """
        if activities is None or not isinstance(activities, list) or len(activities) == 0:
            raise ValidationError("Activities array required")
        if len(activities) > settings.ACTIVITY_BATCH_MAX_SIZE:
            raise ValidationError(f"At most {settings.ACTIVITY_BATCH_MAX_SIZE} activities per batch")

        if deadline_seconds is None:
            deadline_seconds = settings.ACTIVITY_BATCH_DEADLINE_SECONDS
        deadline = time.monotonic() + deadline_seconds

        result = BatchResult(total_count=len(activities))

        for index, raw in enumerate(activities):
            if time.monotonic() > deadline:
                result.timed_out = True
                result.results.extend(
                    EventResult(index=i, status=SKIPPED, error="Batch deadline exceeded")
                    for i in range(index, len(activities))
                )
                logger.warning(
                    f"Activity batch for user {user_id} hit its {deadline_seconds}s deadline; "
                    f"{len(activities) - index} of {len(activities)} events not processed"
                )
                break

            result.results.append(ActivityReconciler._ingest_event(db, index, user_id, device_id, raw, ip_address))

        if result.failed_count:
            logger.warning(
                f"Activity batch for user {user_id}: {result.accepted_count} of {result.total_count} accepted"
            )
        else:
            logger.info(f"✓ Activity batch for user {user_id}: {result.accepted_count} events accepted")

        return result

    @staticmethod
    def ingest_one(
        db: Session,
        user_id: int,
        device_id: Optional[str],
        raw: Any,
        ip_address: Optional[str] = None,
    ) -> UserActivity:
        """
        Ingest a single event. Unlike ingest_batch there is nothing to
        salvage, so any failure is raised to the caller.

        Raises:
            ValidationError: If the event is invalid
            StorageError: If the insert fails
        """
        activity = ActivityReconciler.stage(db, user_id, device_id, raw, ip_address)
        with storage_errors(db, f"store {activity.activity_type} activity"):
            db.commit()
            db.refresh(activity)
        return activity

    @staticmethod
    def stage(
        db: Session,
        user_id: int,
        device_id: Optional[str],
        raw: Any,
        ip_address: Optional[str] = None,
    ) -> UserActivity:
        """
        Validate an event and add it to the session without committing, so
        the caller can commit it together with its own writes. A resubmitted
        eventId returns the stored row and adds nothing.

        Raises:
            ValidationError: If the event is invalid
        """
        event = ActivityReconciler.validate_event(raw)

        existing = ActivityReconciler._find_duplicate(db, user_id, device_id, event)
        if existing is not None:
            return existing

        activity = ActivityReconciler._build(user_id, device_id, event, ip_address)
        db.add(activity)
        return activity

    @staticmethod
    def _ingest_event(
        db: Session,
        index: int,
        user_id: int,
        device_id: Optional[str],
        raw: Any,
        ip_address: Optional[str],
    ) -> EventResult:
        try:
            event = ActivityReconciler.validate_event(raw)
        except ValidationError as e:
            logger.warning(f"Skipping activity #{index} for user {user_id}: {e.message}")
            return EventResult(index=index, status=INVALID, error=e.message)

        try:
            if ActivityReconciler._find_duplicate(db, user_id, device_id, event) is not None:
                return EventResult(index=index, status=DUPLICATE)

            db.add(ActivityReconciler._build(user_id, device_id, event, ip_address))
            db.commit()
        except IntegrityError:
            # A concurrent request stored the same eventId first
            db.rollback()
            if event.event_id is not None:
                return EventResult(index=index, status=DUPLICATE)
            logger.error(f"Failed to store activity #{index} for user {user_id}: integrity error")
            return EventResult(index=index, status=FAILED, error="Integrity error")
        except (SQLAlchemyError, StorageError) as e:
            db.rollback()
            logger.error(f"Failed to store activity #{index} for user {user_id}: {e}")
            return EventResult(index=index, status=FAILED, error="Storage error")

        return EventResult(index=index, status=ACCEPTED)

    @staticmethod
    def _event_device_id(device_id: Optional[str], event: ActivityEventIn) -> Optional[str]:
        return device_id or event.device_id

    @staticmethod
    def _find_duplicate(
        db: Session,
        user_id: int,
        device_id: Optional[str],
        event: ActivityEventIn,
    ) -> Optional[UserActivity]:
        """Events are only deduplicated when the client sent an eventId."""
        if event.event_id is None:
            return None

        with storage_errors(db, "look up activity event id"):
            return (
                db.query(UserActivity)
                .filter(
                    UserActivity.user_id == user_id,
                    UserActivity.device_id == ActivityReconciler._event_device_id(device_id, event),
                    UserActivity.client_event_id == event.event_id,
                )
                .first()
            )

    @staticmethod
    def _build(
        user_id: int,
        device_id: Optional[str],
        event: ActivityEventIn,
        ip_address: Optional[str],
    ) -> UserActivity:
        received_at = utcnow()
        return UserActivity(
            user_id=user_id,
            device_id=ActivityReconciler._event_device_id(device_id, event),
            activity_type=event.activity_type,
            reference_id=event.reference_id,
            reference_type=event.reference_type,
            event_metadata=event.metadata,
            duration_seconds=event.duration_seconds,
            ip_address=ip_address,
            client_event_id=event.event_id,
            created_at=event.client_timestamp or received_at,
            received_at=received_at,
        )

    @staticmethod
    def get_history(
        db: Session,
        user_id: int,
        activity_type: Optional[str] = None,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
        page: int = 1,
        limit: int = 50,
    ) -> List[Dict]:
        """
        Get a user's activities, newest first, with optional filters.

        Args:
            db: Database session
            user_id: User to get activities for
            activity_type: Filter by activity type
            start_date: Filter activities at or after this time
            end_date: Filter activities at or before this time
            page: 1-based page number
            limit: Page size

        Returns:
            List of serialized activities
        """
        query = db.query(UserActivity).filter(UserActivity.user_id == user_id)

        if activity_type:
            query = query.filter(UserActivity.activity_type == activity_type)

        if start_date:
            query = query.filter(UserActivity.created_at >= start_date)

        if end_date:
            query = query.filter(UserActivity.created_at <= end_date)

        with storage_errors(db, "fetch activity history"):
            activities = (
                query.order_by(UserActivity.created_at.desc(), UserActivity.id.desc())
                .offset((page - 1) * limit)
                .limit(limit)
                .all()
            )

        return [
            {
                "id": activity.id,
                "deviceId": activity.device_id,
                "activityType": activity.activity_type,
                "referenceId": activity.reference_id,
                "referenceType": activity.reference_type,
                "metadata": activity.event_metadata,
                "durationSeconds": activity.duration_seconds,
                "createdAt": isoformat(activity.created_at),
                "receivedAt": isoformat(activity.received_at),
            }
            for activity in activities
        ]
