"""Request models for activity ingestion and device registration."""
from datetime import datetime, timezone
from typing import Any, Optional, Union

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator


class ActivityEventIn(BaseModel):
    """
    One activity event as recorded by a device, possibly while offline.

    Only `activityType` is required. The client timestamp is advisory and
    stored as sent (normalised to naive UTC), never checked against the
    server clock.
    """
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    activity_type: str = Field(alias="activityType", min_length=1)
    reference_id: Optional[Union[str, int]] = Field(default=None, alias="referenceId")
    reference_type: Optional[str] = Field(default=None, alias="referenceType")
    metadata: Optional[Any] = None
    duration_seconds: Optional[int] = Field(default=None, alias="durationSeconds", ge=0)
    device_id: Optional[str] = Field(default=None, alias="deviceId")
    event_id: Optional[str] = Field(default=None, alias="eventId", min_length=1)
    client_timestamp: Optional[datetime] = Field(
        default=None,
        validation_alias=AliasChoices("timestamp", "createdAt", "clientTimestamp"),
    )

    @field_validator("activity_type")
    @classmethod
    def _strip_activity_type(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("activityType must not be blank")
        return value

    @field_validator("duration_seconds", mode="before")
    @classmethod
    def _round_duration(cls, value):
        # Devices report measured durations, often fractional
        if isinstance(value, float):
            return round(value)
        return value

    @field_validator("reference_id")
    @classmethod
    def _reference_id_as_text(cls, value):
        return None if value is None else str(value)

    @field_validator("client_timestamp")
    @classmethod
    def _to_naive_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        if value is not None and value.tzinfo is not None:
            return value.astimezone(timezone.utc).replace(tzinfo=None)
        return value


class ActivityBatchRequest(BaseModel):
    """
    Body of a batch upload. `activities` is left untyped so that a malformed
    event is reported per item instead of failing the whole request.
    """
    activities: Any = None


class DeviceRegistration(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    device_id: Optional[str] = Field(default=None, alias="deviceId")
    device_name: Optional[str] = Field(default=None, alias="deviceName")
    device_model: Optional[str] = Field(default=None, alias="deviceModel")
    os_version: Optional[str] = Field(default=None, alias="osVersion")
    app_version: Optional[str] = Field(default=None, alias="appVersion")
    push_token: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("pushToken", "fcmToken"),
    )
