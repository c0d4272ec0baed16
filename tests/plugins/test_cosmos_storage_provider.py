from unittest.mock import MagicMock

import pytest

pytest.importorskip("azure.cosmos")

from azure.core.exceptions import ResourceNotFoundError  # noqa: E402
from pydantic import ValidationError  # noqa: E402

from lockable_storage.plugins.cosmos_storage_provider.cosmos_storage_provider import (  # noqa: E402
    CosmosStorageProvider,
)

pytestmark = pytest.mark.anyio


@pytest.fixture
def container():
    container = MagicMock()
    container.id = "container"
    return container


@pytest.fixture
def frozen_time(monkeypatch):
    monkeypatch.setattr(
        "lockable_storage.plugins.cosmos_storage_provider.cosmos_storage_provider.get_timestamp",
        lambda: 1_700_000_000,
    )


async def test_write(container, frozen_time):
    await CosmosStorageProvider(container).write("hello", "a.json")

    container.upsert_item.assert_called_once_with(
        {"id": "a.json", "path": "a.json", "data": "hello", "updatedAt": 1_700_000_000}
    )


async def test_pre_write_hook_cannot_override_reserved_attributes(container, frozen_time):
    provider = CosmosStorageProvider(
        container,
        append_pre_write=lambda data, path: {"owner": "reports", "data": "overridden", "id": "other"},
    )

    await provider.write("hello", "a.json")

    container.upsert_item.assert_called_once_with(
        {"owner": "reports", "id": "a.json", "path": "a.json", "data": "hello", "updatedAt": 1_700_000_000}
    )


async def test_read(container):
    container.read_item.return_value = {"id": "a.json", "path": "a.json", "data": "hello"}

    assert await CosmosStorageProvider(container).read("a.json", "fallback") == "hello"
    container.read_item.assert_called_once_with(item="a.json", partition_key="a.json")


async def test_read_missing_document_returns_default(container):
    container.read_item.side_effect = ResourceNotFoundError("Entity with the specified id does not exist")

    assert await CosmosStorageProvider(container).read("a.json", "fallback") == "fallback"


async def test_read_item_strips_system_attributes(container):
    container.read_item.return_value = {
        "id": "a.json",
        "path": "a.json",
        "data": "hello",
        "updatedAt": 1_700_000_000,
        "owner": "reports",
        "_rid": "abc",
        "_self": "dbs/abc/colls/def/docs/ghi/",
        "_etag": '"0000"',
        "_attachments": "attachments/",
        "_ts": 1_700_000_000,
    }

    item = await CosmosStorageProvider(container).read_item("a.json")

    assert item is not None
    assert item.data == "hello"
    assert item.updated_at == 1_700_000_000
    assert item.extra == {"owner": "reports"}


async def test_exists(container):
    container.read_item.side_effect = [{"id": "a.json", "data": ""}, ResourceNotFoundError("missing")]

    provider = CosmosStorageProvider(container)

    assert await provider.exists("a.json")
    assert not await provider.exists("a.json")


async def test_delete(container):
    container.delete_item.side_effect = [None, ResourceNotFoundError("missing")]

    provider = CosmosStorageProvider(container)
    await provider.delete("a.json")
    await provider.delete("a.json")

    container.delete_item.assert_called_with(item="a.json", partition_key="a.json")


async def test_from_config_requires_database(tmp_path):
    with pytest.raises(ValidationError):
        await CosmosStorageProvider.from_config(
            {"endpoint": "https://localhost:8081", "key": "key", "container_id": "container"},
            workdir=tmp_path,
        )
