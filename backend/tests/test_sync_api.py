"""HTTP tests for the sync, modules and activity routers."""
import pytest

from mecasync.services.content import ContentRepository


def test_health(client):
    assert client.get("/health").json()["status"] == "healthy"


def test_full_sync_without_last_sync(client, catalog):
    response = client.get("/api/sync/full")

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert sorted(m["uuid"] for m in body["data"]["modules"]) == ["m-new", "m-old"]
    assert {"syncedAt", "nextSyncRecommended", "settings", "moduleCategories"} <= body["data"].keys()


def test_full_sync_with_last_sync(client, catalog):
    response = client.get("/api/sync/full", params={"lastSync": "2024-02-01T00:00:00Z"})

    data = response.json()["data"]
    assert [m["uuid"] for m in data["modules"]] == ["m-new"]
    assert [a["uuid"] for a in data["mecaAids"]] == ["a-new"]


def test_invalid_last_sync_is_a_validation_error(client):
    response = client.get("/api/sync/full", params={"lastSync": "yesterday"})

    assert response.status_code == 400
    assert response.json()["success"] is False


def test_check_without_last_sync(client):
    data = client.get("/api/sync/check").json()["data"]

    assert data["hasUpdates"] is True
    assert data["message"] == "Initial sync required"


def test_check_with_last_sync(client, catalog):
    data = client.get("/api/sync/check", params={"lastSync": "2024-02-01T00:00:00Z"}).json()["data"]

    assert data["updates"] == {"modules": 1, "mecaAids": 1}


def test_status_after_sync(client, catalog):
    assert client.get("/api/sync/status").json()["data"]["lastSync"] is None

    client.get("/api/sync/full")

    last_sync = client.get("/api/sync/status").json()["data"]["lastSync"]
    assert last_sync["syncType"] == "full"
    assert last_sync["itemsSynced"] == 4


def test_download_then_status_scenario(client, db, make_module):
    module = make_module(uuid="manual-m", version=3)

    response = client.post("/api/modules/manual-m/download")
    assert response.status_code == 200
    assert response.json()["data"]["module"]["version"] == 3

    ContentRepository.update_content(db, module, title="Manual M (rev. 4)")

    downloads = client.get("/api/sync/downloads").json()["data"]
    assert len(downloads) == 1
    assert downloads[0]["moduleId"] == module.id
    assert downloads[0]["downloadedVersion"] == 3
    assert downloads[0]["currentVersion"] == 4
    assert downloads[0]["needsUpdate"] is True


def test_downloads_are_scoped_to_device_header(client, make_module):
    make_module(uuid="manual-x")
    client.post("/api/modules/manual-x/download")

    other = client.get("/api/sync/downloads", headers={"X-Device-ID": "device-2"})
    assert other.json()["data"] == []


def test_download_missing_module_is_not_found(client):
    response = client.post("/api/modules/missing/download")

    assert response.status_code == 404
    assert response.json() == {"success": False, "message": "Module not found or not downloadable"}


def test_activities_partial_success(client):
    response = client.post(
        "/api/sync/activities",
        json={"activities": [
            {"activityType": "module_view"},
            {"referenceId": 4},
            {"activityType": "module_complete", "timestamp": "2024-01-01T00:00:00Z"},
        ]},
    )

    assert response.status_code == 200
    body = response.json()
    assert body["data"]["syncedCount"] == 2
    assert body["data"]["totalCount"] == 3
    assert body["message"] == "2 of 3 activities synced"
    assert [f["index"] for f in body["data"]["failed"]] == [1]


def test_empty_activities_rejected(client):
    response = client.post("/api/sync/activities", json={"activities": []})

    assert response.status_code == 400
    assert response.json()["message"] == "Activities array required"


def test_missing_activities_rejected(client):
    assert client.post("/api/sync/activities", json={}).status_code == 400


@pytest.mark.parametrize("path", ["/api/sync/activities", "/api/activity/log"])
@pytest.mark.parametrize("kwargs", [{"json": [{"activityType": "module_view"}]}, {}])
def test_batch_routes_reject_non_object_or_missing_body_with_envelope(client, path, kwargs):
    response = client.post(path, **kwargs)

    assert response.status_code == 400
    body = response.json()
    assert body["success"] is False
    assert body["message"].startswith("Invalid request")
    assert "detail" not in body


def test_activity_log_and_history(client):
    client.post("/api/activity/log", json={"activities": [{"activityType": "module_view"}]})
    client.post("/api/activity/single", json={"activityType": "module_complete", "durationSeconds": 60})

    history = client.get("/api/activity/history").json()["data"]
    assert sorted(a["activityType"] for a in history) == ["module_complete", "module_view"]
    assert all(a["deviceId"] == "device-1" for a in history)


def test_single_activity_requires_type(client):
    response = client.post("/api/activity/single", json={"referenceId": 1})

    assert response.status_code == 400


def test_device_registration_keeps_existing_fields(client):
    client.post("/api/activity/device", json={"deviceId": "device-1", "deviceName": "Shop tablet", "osVersion": "14"})
    client.post("/api/activity/device", json={"deviceId": "device-1", "osVersion": "15"})

    devices = client.get("/api/activity/devices").json()["data"]
    assert len(devices) == 1
    assert devices[0]["deviceName"] == "Shop tablet"
    assert devices[0]["osVersion"] == "15"


def test_device_registration_requires_device_id(client):
    response = client.post("/api/activity/device", json={"deviceName": "No id"})

    assert response.status_code == 400
