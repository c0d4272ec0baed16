import asyncio
import logging
import pathlib
from typing import Any, Callable, Optional, Self
from typing_extensions import override

from azure.core.exceptions import ResourceNotFoundError
from azure.cosmos import ContainerProxy, CosmosClient
from pydantic import BaseModel, Field

from lockable_storage.core.storage_provider_base import StorageProviderProtocol
from lockable_storage.utils.timestamps import get_timestamp

logger = logging.getLogger(__name__)

RESERVED_ATTRIBUTES = frozenset({"id", "path", "data", "updatedAt"})

# added by Cosmos DB to every document
SYSTEM_ATTRIBUTES = frozenset({"_rid", "_self", "_etag", "_attachments", "_ts"})

PreWriteHook = Callable[[str, str], dict[str, Any]]


class CosmosStorageItem(BaseModel):
    """A stored document with its provenance metadata.

    Attributes:
        path: The path of the document - also its id and partition key.
        data: The stored payload.
        updated_at: Seconds since epoch of the last write.
        extra: Attributes added by the `append_pre_write` hook.
    """

    path: str
    data: str
    updated_at: Optional[int] = None
    extra: dict[str, Any] = {}


class CosmosStorageProviderInitConfig(BaseModel):
    """Initialization params required to initialize Cosmos DB storage provider.

    The container must be partitioned on `/id`.

    Attributes:
        endpoint: URL of the Cosmos DB account.
        key: Account key.
        database_id: The database that holds the container.
        container_id: The container that holds the documents.
    """

    endpoint: str = Field(min_length=1)
    key: str = Field(min_length=1)
    database_id: str = Field(min_length=1)
    container_id: str = Field(min_length=1)


class CosmosStorageProvider(StorageProviderProtocol):
    def __init__(self, container: ContainerProxy, append_pre_write: Optional[PreWriteHook] = None) -> None:
        """Store payloads as documents of a Cosmos DB container.

        Args:
            container: The container client.
            append_pre_write: Called with `(data, path)` before every write - the returned attributes
                are stored along with the document. `id`, `path`, `data` and `updatedAt` cannot be overridden.
        """
        self.container = container
        self.append_pre_write = append_pre_write

    @override
    @classmethod
    async def from_config(
        cls,
        raw_config: Any,
        *,
        workdir: pathlib.Path,
    ) -> Self:
        result = CosmosStorageProviderInitConfig.model_validate(raw_config)
        client = CosmosClient(result.endpoint, credential=result.key)
        container = client.get_database_client(result.database_id).get_container_client(result.container_id)
        return cls(container=container)

    async def _read_document(self, path: str) -> Optional[dict[str, Any]]:
        try:
            return await asyncio.to_thread(self.container.read_item, item=path, partition_key=path)

        except ResourceNotFoundError:
            return None

    @override
    async def write(self, data: str, path: str) -> None:
        document = dict(self.append_pre_write(data, path)) if self.append_pre_write else {}
        document.update(id=path, path=path, data=data, updatedAt=get_timestamp())
        await asyncio.to_thread(self.container.upsert_item, document)
        logger.debug("Document %s has been written to container %s", path, self.container.id)

    async def read_item(self, path: str) -> Optional[CosmosStorageItem]:
        document = await self._read_document(path)
        if document is None:
            return None

        return CosmosStorageItem(
            path=document.get("path", path),
            data=document.get("data", ""),
            updated_at=document.get("updatedAt"),
            extra={
                key: value
                for key, value in document.items()
                if key not in RESERVED_ATTRIBUTES and key not in SYSTEM_ATTRIBUTES
            },
        )

    @override
    async def read(self, path: str, default: str = "") -> str:
        item = await self.read_item(path)
        if item is None:
            logger.info("Document %s not found in container %s", path, self.container.id)
            return default

        return item.data

    @override
    async def delete(self, path: str) -> None:
        try:
            await asyncio.to_thread(self.container.delete_item, item=path, partition_key=path)

        except ResourceNotFoundError:
            return

        logger.debug("Document %s has been deleted from container %s", path, self.container.id)

    @override
    async def exists(self, path: str) -> bool:
        return await self._read_document(path) is not None
