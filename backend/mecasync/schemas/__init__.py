"""Pydantic request models."""
from mecasync.schemas.activity import ActivityBatchRequest, ActivityEventIn, DeviceRegistration

__all__ = ["ActivityBatchRequest", "ActivityEventIn", "DeviceRegistration"]
