"""Database models for MecaSync."""
from mecasync.models.user import User
from mecasync.models.device import Device
from mecasync.models.content import (
    AppSetting,
    MecaAid,
    MecaAidCategory,
    MecaAidStep,
    Module,
    ModuleCategory,
)
from mecasync.models.download import DownloadedModule
from mecasync.models.sync_log import SyncLog
from mecasync.models.activity import UserActivity

__all__ = [
    "User",
    "Device",
    "AppSetting",
    "MecaAid",
    "MecaAidCategory",
    "MecaAidStep",
    "Module",
    "ModuleCategory",
    "DownloadedModule",
    "SyncLog",
    "UserActivity",
]
