import pytest
from fastapi.testclient import TestClient

from lockable_storage.core.config import LockRetryConfig
from lockable_storage.core.lockable_storage_manager import LockableStorageManager
from lockable_storage.plugins.memory_provider.memory_provider import (
    MemoryLockingProvider,
    MemoryStorageProvider,
)
from lockable_storage.server.app import app, config as server_config, get_lock_retry, get_manager


@pytest.fixture
def manager():
    return LockableStorageManager(
        storage_provider=MemoryStorageProvider(),
        locking_provider=MemoryLockingProvider(),
    )


@pytest.fixture
def client(manager):
    app.dependency_overrides[get_manager] = lambda: manager
    app.dependency_overrides[get_lock_retry] = lambda: LockRetryConfig(max_retry=2, retry_wait_ms=1)
    yield TestClient(app)
    app.dependency_overrides.clear()


def test_ready(client):
    assert client.get("/ready").json() == "Ready"


def test_storage_round_trip(client):
    assert client.get("/storage/reports/a.json").status_code == 404
    assert client.get("/exists/reports/a.json").json() == {"path": "reports/a.json", "exists": False}

    assert client.put("/storage/reports/a.json", json={"data": "hello"}).status_code == 204
    assert client.get("/storage/reports/a.json").json() == {"path": "reports/a.json", "data": "hello"}
    assert client.get("/exists/reports/a.json").json()["exists"]

    assert client.delete("/storage/reports/a.json").status_code == 204
    assert client.get("/storage/reports/a.json").status_code == 404


def test_delete_missing_item(client):
    assert client.delete("/storage/missing.json").status_code == 204


def test_lock_lifecycle(client):
    assert client.get("/lock/a.json").json() == {"path": "a.json", "locked": False}

    response = client.put("/lock/a.json")
    assert response.status_code == 200
    assert response.json() == {"path": "a.json", "locked": True}

    response = client.put("/lock/a.json")
    assert response.status_code == 409
    assert response.json()["path"] == "a.json"

    assert client.delete("/lock/a.json").json() == {"path": "a.json", "released": True}
    assert client.delete("/lock/a.json").json() == {"path": "a.json", "released": False}
    assert client.get("/lock/a.json").json()["locked"] is False


def test_missing_backend(client, manager):
    app.dependency_overrides[get_manager] = lambda: LockableStorageManager(
        storage_provider=manager.params.storage_provider,
    )

    response = client.put("/lock/a.json")
    assert response.status_code == 501
    assert response.json()["backend"] == "locking"

    assert client.put("/storage/a.json", json={"data": "hello"}).status_code == 204


def test_lifespan_loads_config_file(tmp_path, monkeypatch):
    location = tmp_path / "lockable-storage.yaml"
    location.write_text(
        "storage:\n"
        "  type: local\n"
        f"  folder: {tmp_path / 'data'}\n"
        "lock_retry:\n"
        "  max_retry: 1\n"
        "  retry_wait_ms: 0\n"
    )
    monkeypatch.setattr(server_config, "config_file", location)
    monkeypatch.setattr(server_config, "state_dir", tmp_path / "state")

    with TestClient(app) as client:
        assert client.put("/storage/a.txt", json={"data": "hello"}).status_code == 204
        assert client.put("/lock/a.txt").status_code == 501

    assert (tmp_path / "data" / "a.txt").read_text() == "hello"
