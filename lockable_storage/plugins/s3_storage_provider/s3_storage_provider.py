import asyncio
import logging
import pathlib
import re
from typing import Any, Optional, Self
from typing_extensions import override

import boto3
from botocore.exceptions import ClientError
from pydantic import BaseModel, Field, field_validator

from lockable_storage.core.storage_provider_base import StorageProviderProtocol

logger = logging.getLogger(__name__)

PREFIX_PATTERN = re.compile(r"^([a-zA-Z0-9_-]+/)+$")

NOT_FOUND_CODES = frozenset({"NoSuchKey", "NotFound", "404"})


def validate_prefix(prefix: str) -> str:
    if prefix and not PREFIX_PATTERN.match(prefix):
        raise ValueError(f"Invalid prefix format. Please use a valid path like 'path/to/folder/'. Provided is {prefix}")

    return prefix


def is_not_found(error: ClientError) -> bool:
    return error.response.get("Error", {}).get("Code") in NOT_FOUND_CODES


class S3StorageProviderInitConfig(BaseModel):
    """Initialization params required to initialize S3 storage provider.

    Required permissions: s3:GetObject, s3:PutObject, s3:DeleteObject and s3:ListBucket
    (without ListBucket S3 answers 403 instead of 404 for missing objects).

    Attributes:
        bucket: The bucket name.
        prefix: Folder inside the bucket - format must be `path/to/folder/`.
        aws_access_key: AWS access key id - the default credential chain is used when omitted.
        aws_secret_key: AWS secret access key.
        aws_region: AWS region of the bucket.
        endpoint_url: Override the S3 endpoint (e.g. MinIO).
    """

    bucket: str = Field(min_length=1)
    prefix: str = ""
    aws_access_key: Optional[str] = None
    aws_secret_key: Optional[str] = None
    aws_region: Optional[str] = None
    endpoint_url: Optional[str] = None

    @field_validator("prefix")
    @classmethod
    def validate_prefix(cls, value: str) -> str:
        return validate_prefix(value)


class S3StorageProvider(StorageProviderProtocol):
    def __init__(self, bucket: str, prefix: str = "", client: Any = None) -> None:
        self.bucket = bucket
        self.prefix = validate_prefix(prefix)
        self.client = client if client is not None else boto3.client("s3")

    @override
    @classmethod
    async def from_config(
        cls,
        raw_config: Any,
        *,
        workdir: pathlib.Path,
    ) -> Self:
        result = S3StorageProviderInitConfig.model_validate(raw_config)
        client = boto3.client(
            "s3",
            aws_access_key_id=result.aws_access_key,
            aws_secret_access_key=result.aws_secret_key,
            region_name=result.aws_region,
            endpoint_url=result.endpoint_url,
        )
        return cls(bucket=result.bucket, prefix=result.prefix, client=client)

    def _key(self, path: str) -> str:
        return f"{self.prefix}{path}"

    @override
    async def write(self, data: str, path: str) -> None:
        key = self._key(path)
        await asyncio.to_thread(
            self.client.put_object,
            Bucket=self.bucket,
            Key=key,
            Body=data.encode("utf-8"),
        )
        logger.debug("Object %s has been written to bucket %s", key, self.bucket)

    @override
    async def read(self, path: str, default: str = "") -> str:
        key = self._key(path)
        try:
            response = await asyncio.to_thread(self.client.get_object, Bucket=self.bucket, Key=key)

        except ClientError as e:
            if is_not_found(e):
                logger.info("Object %s not found in bucket %s", key, self.bucket)
                return default

            raise

        body = await asyncio.to_thread(response["Body"].read)
        return body.decode("utf-8")

    @override
    async def delete(self, path: str) -> None:
        key = self._key(path)
        await asyncio.to_thread(self.client.delete_object, Bucket=self.bucket, Key=key)
        logger.debug("Object %s has been deleted from bucket %s", key, self.bucket)

    @override
    async def exists(self, path: str) -> bool:
        try:
            await asyncio.to_thread(self.client.head_object, Bucket=self.bucket, Key=self._key(path))

        except ClientError as e:
            if is_not_found(e):
                return False

            raise

        return True
