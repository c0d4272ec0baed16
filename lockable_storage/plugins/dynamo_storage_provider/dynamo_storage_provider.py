import asyncio
import logging
import pathlib
from decimal import Decimal
from typing import Any, Callable, Optional, Self
from typing_extensions import override

import boto3
from boto3.dynamodb.types import TypeDeserializer, TypeSerializer
from pydantic import BaseModel, Field

from lockable_storage.core.storage_provider_base import StorageProviderProtocol
from lockable_storage.utils.timestamps import get_timestamp

logger = logging.getLogger(__name__)

RESERVED_ATTRIBUTES = frozenset({"path", "data", "updatedAt"})

PreWriteHook = Callable[[str, str], dict[str, Any]]


def floats_to_decimals(value: Any) -> Any:
    """DynamoDB numbers must be `Decimal` - boto3 refuses `float`."""
    if isinstance(value, float):
        return Decimal(str(value))

    if isinstance(value, dict):
        return {key: floats_to_decimals(item) for key, item in value.items()}

    if isinstance(value, (list, tuple)):
        return [floats_to_decimals(item) for item in value]

    return value


class DynamoStorageItem(BaseModel):
    """A stored item with its provenance metadata.

    Attributes:
        path: The path of the item.
        data: The stored payload.
        updated_at: Seconds since epoch of the last write.
        extra: Attributes added by the `append_pre_write` hook.
    """

    path: str
    data: str
    updated_at: Optional[int] = None
    extra: dict[str, Any] = {}


class DynamoStorageProviderInitConfig(BaseModel):
    """Initialization params required to initialize DynamoDB storage provider.

    The table must have a string partition key named `path`.

    Attributes:
        table_name: The DynamoDB table that holds the items.
        aws_access_key: AWS access key id - the default credential chain is used when omitted.
        aws_secret_key: AWS secret access key.
        aws_region: AWS region of the table.
        endpoint_url: Override the DynamoDB endpoint (e.g. DynamoDB local).
    """

    table_name: str = Field(min_length=1)
    aws_access_key: Optional[str] = None
    aws_secret_key: Optional[str] = None
    aws_region: Optional[str] = None
    endpoint_url: Optional[str] = None


class DynamoStorageProvider(StorageProviderProtocol):
    def __init__(
        self,
        table_name: str,
        append_pre_write: Optional[PreWriteHook] = None,
        client: Any = None,
    ) -> None:
        """Store payloads as items of a DynamoDB table.

        Args:
            table_name: The DynamoDB table name.
            append_pre_write: Called with `(data, path)` before every write - the returned attributes
                are stored along with the item. `path`, `data` and `updatedAt` cannot be overridden.
                Float values are stored as DynamoDB numbers.
            client: A boto3 DynamoDB client - created from the default session when omitted.
        """
        if not table_name:
            raise ValueError("[DynamoStorageProvider] The table name cannot be empty")

        self.table_name = table_name
        self.append_pre_write = append_pre_write
        self.client = client if client is not None else boto3.client("dynamodb")
        self._serializer = TypeSerializer()
        self._deserializer = TypeDeserializer()

    @override
    @classmethod
    async def from_config(
        cls,
        raw_config: Any,
        *,
        workdir: pathlib.Path,
    ) -> Self:
        result = DynamoStorageProviderInitConfig.model_validate(raw_config)
        client = boto3.client(
            "dynamodb",
            aws_access_key_id=result.aws_access_key,
            aws_secret_access_key=result.aws_secret_key,
            region_name=result.aws_region,
            endpoint_url=result.endpoint_url,
        )
        return cls(table_name=result.table_name, client=client)

    async def _get_item(self, path: str) -> Optional[dict[str, Any]]:
        response = await asyncio.to_thread(
            self.client.get_item,
            TableName=self.table_name,
            Key={"path": {"S": path}},
        )
        item = response.get("Item")
        if item is None:
            return None

        return {key: self._deserializer.deserialize(value) for key, value in item.items()}

    @override
    async def write(self, data: str, path: str) -> None:
        attributes = dict(self.append_pre_write(data, path)) if self.append_pre_write else {}
        attributes.update(path=path, data=data, updatedAt=get_timestamp())
        await asyncio.to_thread(
            self.client.put_item,
            TableName=self.table_name,
            Item={key: self._serializer.serialize(floats_to_decimals(value)) for key, value in attributes.items()},
        )
        logger.debug("Item %s has been written to table %s", path, self.table_name)

    async def read_item(self, path: str) -> Optional[DynamoStorageItem]:
        item = await self._get_item(path)
        if item is None:
            return None

        updated_at = item.get("updatedAt")
        return DynamoStorageItem(
            path=item.get("path", path),
            data=item.get("data", ""),
            updated_at=int(updated_at) if updated_at is not None else None,
            extra={key: value for key, value in item.items() if key not in RESERVED_ATTRIBUTES},
        )

    @override
    async def read(self, path: str, default: str = "") -> str:
        item = await self.read_item(path)
        if item is None:
            logger.info("Item %s not found in table %s", path, self.table_name)
            return default

        return item.data

    @override
    async def delete(self, path: str) -> None:
        await asyncio.to_thread(
            self.client.delete_item,
            TableName=self.table_name,
            Key={"path": {"S": path}},
        )
        logger.debug("Item %s has been deleted from table %s", path, self.table_name)

    @override
    async def exists(self, path: str) -> bool:
        return await self._get_item(path) is not None
