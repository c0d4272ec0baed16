import asyncio
import logging
import pathlib
from typing import Any, Optional, Self
from typing_extensions import override

import boto3
from botocore.exceptions import ClientError
from pydantic import BaseModel, Field

from lockable_storage.core.locking_provider_base import LockingProviderProtocol
from lockable_storage.utils.timestamps import get_timestamp

logger = logging.getLogger(__name__)

CONDITIONAL_CHECK_FAILED = "ConditionalCheckFailedException"

DEFAULT_TIME_TO_LIVE_SECONDS = 900


def is_conditional_check_failure(error: ClientError) -> bool:
    return error.response.get("Error", {}).get("Code") == CONDITIONAL_CHECK_FAILED


class DynamoLockingProviderInitConfig(BaseModel):
    """Initialization params required to initialize DynamoDB locking provider.

    The table must have a string partition key named `id`.
    Enabling DynamoDB TTL on the `expireAt` attribute lets the table clean up expired locks -
    expired locks are treated as released either way.

    Attributes:
        table_name: The DynamoDB table that holds the locks.
        aws_access_key: AWS access key id - the default credential chain is used when omitted.
        aws_secret_key: AWS secret access key.
        aws_region: AWS region of the table.
        endpoint_url: Override the DynamoDB endpoint (e.g. DynamoDB local).
        time_to_live_seconds: Lease of every lock - `None` keeps locks until unlocked.
    """

    table_name: str = Field(min_length=1)
    aws_access_key: Optional[str] = None
    aws_secret_key: Optional[str] = None
    aws_region: Optional[str] = None
    endpoint_url: Optional[str] = None
    time_to_live_seconds: Optional[int] = Field(default=DEFAULT_TIME_TO_LIVE_SECONDS, gt=0)


class DynamoLockingProvider(LockingProviderProtocol):
    """Distributed locks stored as items of a DynamoDB table.

    `lock` is a conditional put - DynamoDB guarantees only one caller creates the item.
    """

    def __init__(
        self,
        table_name: str,
        time_to_live_seconds: Optional[int] = DEFAULT_TIME_TO_LIVE_SECONDS,
        client: Any = None,
    ) -> None:
        if not table_name:
            raise ValueError("[DynamoLockingProvider] The table name cannot be empty")

        self.table_name = table_name
        self.time_to_live_seconds = time_to_live_seconds
        self.client = client if client is not None else boto3.client("dynamodb")

    @override
    @classmethod
    async def from_config(
        cls,
        raw_config: Any,
        *,
        workdir: pathlib.Path,
    ) -> Self:
        result = DynamoLockingProviderInitConfig.model_validate(raw_config)
        client = boto3.client(
            "dynamodb",
            aws_access_key_id=result.aws_access_key,
            aws_secret_access_key=result.aws_secret_key,
            region_name=result.aws_region,
            endpoint_url=result.endpoint_url,
        )
        return cls(
            table_name=result.table_name,
            time_to_live_seconds=result.time_to_live_seconds,
            client=client,
        )

    @override
    async def lock(self, path: str) -> bool:
        created_at = get_timestamp()
        item = {
            "id": {"S": path},
            "createdAt": {"N": str(created_at)},
        }
        if self.time_to_live_seconds:
            item["expireAt"] = {"N": str(created_at + self.time_to_live_seconds)}

        try:
            await asyncio.to_thread(
                self.client.put_item,
                TableName=self.table_name,
                Item=item,
                # an expired lease may be taken over before DynamoDB TTL removes it
                ConditionExpression="attribute_not_exists(#id) OR #expireAt <= :now",
                ExpressionAttributeNames={"#id": "id", "#expireAt": "expireAt"},
                ExpressionAttributeValues={":now": {"N": str(created_at)}},
            )

        except ClientError as e:
            if is_conditional_check_failure(e):
                logger.debug("Lock on %s is already held in table %s", path, self.table_name)
                return False

            raise

        return True

    @override
    async def unlock(self, path: str) -> bool:
        try:
            await asyncio.to_thread(
                self.client.delete_item,
                TableName=self.table_name,
                Key={"id": {"S": path}},
                ConditionExpression="attribute_exists(#id)",
                ExpressionAttributeNames={"#id": "id"},
            )

        except ClientError as e:
            if is_conditional_check_failure(e):
                return False

            raise

        return True

    @override
    async def is_locked(self, path: str) -> bool:
        response = await asyncio.to_thread(
            self.client.get_item,
            TableName=self.table_name,
            Key={"id": {"S": path}},
            ConsistentRead=True,
        )
        item = response.get("Item")
        if item is None:
            return False

        expire_at = item.get("expireAt")
        return expire_at is None or int(expire_at["N"]) > get_timestamp()
