import asyncio
import logging
import pathlib
from typing import Any, Self
from typing_extensions import override

from azure.core.exceptions import ResourceNotFoundError
from azure.storage.blob import ContainerClient
from pydantic import BaseModel, Field

from lockable_storage.core.storage_provider_base import StorageProviderProtocol

logger = logging.getLogger(__name__)


class AzureBlobStorageProviderInitConfig(BaseModel):
    """Initialization params required to initialize Azure Blob storage provider.

    Attributes:
        connection_string: Connection string of the storage account - found under "Access keys" in the portal.
        container_name: The container that holds the blobs.
    """

    connection_string: str = Field(min_length=1)
    container_name: str = Field(min_length=1)


class AzureBlobStorageProvider(StorageProviderProtocol):
    def __init__(self, container_client: ContainerClient) -> None:
        self.container_client = container_client

    @override
    @classmethod
    async def from_config(
        cls,
        raw_config: Any,
        *,
        workdir: pathlib.Path,
    ) -> Self:
        result = AzureBlobStorageProviderInitConfig.model_validate(raw_config)
        container_client = ContainerClient.from_connection_string(
            result.connection_string,
            container_name=result.container_name,
        )
        return cls(container_client=container_client)

    @override
    async def write(self, data: str, path: str) -> None:
        await asyncio.to_thread(
            self.container_client.upload_blob,
            name=path,
            data=data.encode("utf-8"),
            overwrite=True,
        )
        logger.debug("Blob %s has been written to container %s", path, self.container_client.container_name)

    @override
    async def read(self, path: str, default: str = "") -> str:
        try:
            downloader = await asyncio.to_thread(self.container_client.download_blob, path)
            content = await asyncio.to_thread(downloader.readall)

        except ResourceNotFoundError:
            logger.info("Blob %s not found in container %s", path, self.container_client.container_name)
            return default

        return content.decode("utf-8")

    @override
    async def delete(self, path: str) -> None:
        try:
            await asyncio.to_thread(self.container_client.delete_blob, path)

        except ResourceNotFoundError:
            return

        logger.debug("Blob %s has been deleted from container %s", path, self.container_client.container_name)

    @override
    async def exists(self, path: str) -> bool:
        blob_client = self.container_client.get_blob_client(path)
        return await asyncio.to_thread(blob_client.exists)
