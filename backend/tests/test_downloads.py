"""Tests for the download ledger."""
import pytest

from mecasync.exceptions import NotFoundError, StorageError
from mecasync.models import DownloadedModule, UserActivity
from mecasync.services.activity import ActivityReconciler
from mecasync.services.content import ContentRepository
from mecasync.services.downloads import DownloadLedger


def _status_for(db, user, device_id, module):
    rows = DownloadLedger.get_download_status(db, user.id, device_id)
    return next(row for row in rows if row["moduleId"] == module.id)


def test_fresh_download_does_not_need_update(db, user, make_module):
    module = make_module(version=2)

    DownloadLedger.record_download(db, user.id, module.id, "device-1", 2)

    status = _status_for(db, user, "device-1", module)
    assert status["downloadedVersion"] == 2
    assert status["currentVersion"] == 2
    assert status["needsUpdate"] is False


def test_module_update_after_download_needs_update(db, user, make_module):
    module = make_module(version=3)
    DownloadLedger.record_download(db, user.id, module.id, "device-1", 3)

    ContentRepository.update_content(db, module, content="Revised torque values")

    status = _status_for(db, user, "device-1", module)
    assert (status["moduleId"], status["downloadedVersion"], status["currentVersion"], status["needsUpdate"]) == (
        module.id, 3, 4, True,
    )


def test_repeat_download_overwrites_even_with_older_version(db, user, make_module):
    module = make_module(version=5)
    DownloadLedger.record_download(db, user.id, module.id, "device-1", 5)
    DownloadLedger.record_download(db, user.id, module.id, "device-1", 4)

    records = db.query(DownloadedModule).all()
    assert len(records) == 1
    assert records[0].downloaded_version == 4
    assert _status_for(db, user, "device-1", module)["needsUpdate"] is True


def test_ledger_is_per_device(db, user, make_module):
    module = make_module()
    DownloadLedger.record_download(db, user.id, module.id, "phone", 1)

    assert DownloadLedger.get_download_status(db, user.id, "tablet") == []
    assert len(DownloadLedger.get_download_status(db, user.id, "phone")) == 1


def test_missing_device_id_shares_unknown_key(db, user, make_module):
    module = make_module()
    DownloadLedger.record_download(db, user.id, module.id, None, 1)

    assert db.query(DownloadedModule).one().device_id == "unknown"
    assert len(DownloadLedger.get_download_status(db, user.id, "unknown")) == 1


def test_deactivated_module_stays_in_ledger(db, user, make_module):
    module = make_module()
    DownloadLedger.record_download(db, user.id, module.id, "device-1", 1)

    ContentRepository.deactivate(db, module)

    status = _status_for(db, user, "device-1", module)
    assert status["isActive"] is False
    assert status["needsUpdate"] is True


def test_download_module_records_current_version_and_activity(db, user, make_module):
    module = make_module(uuid="dl-me", version=7)

    data = DownloadLedger.download_module(db, user.id, "device-1", "dl-me")

    assert data["uuid"] == "dl-me"
    assert _status_for(db, user, "device-1", module)["downloadedVersion"] == 7
    activity = db.query(UserActivity).one()
    assert activity.activity_type == "module_download"
    assert activity.reference_id == str(module.id)


def test_failed_download_activity_leaves_no_ledger_row(db, user, make_module, monkeypatch):
    make_module(uuid="dl-broken")

    def build_without_type(user_id, device_id, event, ip_address):
        return UserActivity(user_id=user_id, device_id=device_id, activity_type=None)

    monkeypatch.setattr(ActivityReconciler, "_build", staticmethod(build_without_type))

    with pytest.raises(StorageError):
        DownloadLedger.download_module(db, user.id, "device-1", "dl-broken")

    assert db.query(DownloadedModule).count() == 0
    assert db.query(UserActivity).count() == 0


@pytest.mark.parametrize("kwargs", [{"is_active": False}, {"is_downloadable": False}])
def test_download_module_rejects_unavailable_modules(db, user, make_module, kwargs):
    make_module(uuid="nope", **kwargs)

    with pytest.raises(NotFoundError):
        DownloadLedger.download_module(db, user.id, "device-1", "nope")

    assert db.query(DownloadedModule).count() == 0
