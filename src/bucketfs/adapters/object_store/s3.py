"""S3 object store client built on boto3.

Works against AWS S3 and S3-compatible services (custom ``endpoint_url``).
Every botocore failure is translated into the `ObjectStoreError` family so the
core never sees boto types.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, BinaryIO

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from bucketfs.domain.errors import ConfigurationError
from bucketfs.interfaces.object_store import (
    ListPage,
    ObjectBody,
    ObjectInfo,
    ObjectNotFound,
    ObjectStoreAccessDenied,
    ObjectStoreClient,
    ObjectStoreError,
    Visibility,
)

if TYPE_CHECKING:
    from bucketfs.config import MountConfig

log = logging.getLogger(__name__)

_ERROR_CODE_MAP: dict[str, type[ObjectStoreError]] = {
    "NoSuchKey": ObjectNotFound,
    "NotFound": ObjectNotFound,
    "404": ObjectNotFound,
    "AccessDenied": ObjectStoreAccessDenied,
    "403": ObjectStoreAccessDenied,
    "InvalidAccessKeyId": ObjectStoreAccessDenied,
    "SignatureDoesNotMatch": ObjectStoreAccessDenied,
}

_NOT_FOUND_CODES = {"NoSuchKey", "NotFound", "404"}


class Boto3ObjectStore(ObjectStoreClient):
    """`ObjectStoreClient` backed by a boto3 ``s3`` client.

    Args:
        bucket: Bucket name.
        client: A ready boto3 S3 client. Use `from_config` to build one from a
            `MountConfig`.
    """

    def __init__(self, bucket: str, client: Any) -> None:
        if not bucket:
            raise ConfigurationError("An S3 bucket name is required.")
        self._bucket = bucket
        self._client = client

    @classmethod
    def from_config(cls, config: MountConfig) -> Boto3ObjectStore:
        """Build a client from the mount configuration.

        Raises:
            ConfigurationError: if the configuration does not validate.
        """
        config.validate()

        client_config: dict[str, Any] = {
            "signature_version": "s3v4",
            "retries": {"max_attempts": 3, "mode": "standard"},
            "connect_timeout": config.connect_timeout,
            "read_timeout": config.read_timeout,
        }
        if config.region:
            client_config["region_name"] = config.region
        if config.proxy:
            proxy_url = f"http://{config.proxy}"
            client_config["proxies"] = {"http": proxy_url, "https": proxy_url}

        kwargs: dict[str, Any] = {"config": Config(**client_config)}
        if not config.use_instance_profile:
            kwargs["aws_access_key_id"] = config.access_key
            kwargs["aws_secret_access_key"] = config.secret_key
        if config.endpoint_url:
            kwargs["endpoint_url"] = config.endpoint_url

        log.debug(
            "Creating S3 client for bucket=%s region=%s endpoint=%s",
            config.bucket,
            config.region or "<default>",
            config.endpoint_url or "<aws>",
        )
        return cls(config.bucket, boto3.client("s3", **kwargs))

    # --- ObjectStoreClient ---

    def get(
        self, key: str, byte_range: tuple[int, int | None] | None = None
    ) -> ObjectBody:
        params: dict[str, Any] = {"Bucket": self._bucket, "Key": key}
        if byte_range is not None:
            start, end = byte_range
            params["Range"] = f"bytes={start}-{'' if end is None else end}"
        try:
            response = self._client.get_object(**params)
        except (ClientError, BotoCoreError) as e:
            raise self._translate_error(e, key) from e
        headers = {
            "Content-Type": response.get("ContentType", "application/octet-stream"),
        }
        if etag := response.get("ETag"):
            headers["ETag"] = etag
        return ObjectBody(
            stream=response["Body"],
            content_length=response.get("ContentLength"),
            headers=headers,
        )

    def put(
        self,
        key: str,
        body: BinaryIO,
        *,
        content_type: str,
        visibility: Visibility = Visibility.PUBLIC_READ,
    ) -> None:
        try:
            self._client.put_object(
                Bucket=self._bucket,
                Key=key,
                Body=body,
                ContentType=content_type,
                ACL=visibility.value,
            )
        except (ClientError, BotoCoreError) as e:
            raise self._translate_error(e, key) from e

    def delete(self, key: str) -> None:
        try:
            self._client.delete_object(Bucket=self._bucket, Key=key)
        except (ClientError, BotoCoreError) as e:
            raise self._translate_error(e, key) from e

    def copy(
        self,
        src_key: str,
        dst_key: str,
        *,
        visibility: Visibility = Visibility.PUBLIC_READ,
    ) -> None:
        try:
            self._client.copy_object(
                Bucket=self._bucket,
                Key=dst_key,
                CopySource={"Bucket": self._bucket, "Key": src_key},
                MetadataDirective="COPY",
                ACL=visibility.value,
            )
        except (ClientError, BotoCoreError) as e:
            raise self._translate_error(e, src_key) from e

    def head(self, key: str) -> ObjectInfo | None:
        try:
            response = self._client.head_object(Bucket=self._bucket, Key=key)
        except ClientError as e:
            if self._error_code(e) in _NOT_FOUND_CODES:
                return None
            raise self._translate_error(e, key) from e
        except BotoCoreError as e:
            raise self._translate_error(e, key) from e
        return ObjectInfo(
            key=key,
            size=response.get("ContentLength", 0),
            last_modified=response["LastModified"],
            is_prefix_marker=key.endswith("/"),
        )

    def list(
        self,
        prefix: str,
        page_size: int = 1000,
        continuation_token: str | None = None,
    ) -> ListPage:
        params: dict[str, Any] = {
            "Bucket": self._bucket,
            "Prefix": prefix,
            "MaxKeys": page_size,
            "FetchOwner": True,
        }
        if continuation_token:
            params["ContinuationToken"] = continuation_token
        try:
            response = self._client.list_objects_v2(**params)
        except (ClientError, BotoCoreError) as e:
            raise self._translate_error(e, prefix) from e

        entries = [
            ObjectInfo(
                key=item["Key"],
                size=item.get("Size", 0),
                last_modified=item["LastModified"],
                owner=item.get("Owner", {}).get("DisplayName")
                or item.get("Owner", {}).get("ID"),
                is_prefix_marker=item["Key"].endswith("/"),
            )
            for item in response.get("Contents", [])
        ]
        token = (
            response.get("NextContinuationToken")
            if response.get("IsTruncated")
            else None
        )
        return ListPage(entries=entries, continuation_token=token)

    # --- internals ---

    @staticmethod
    def _error_code(error: ClientError) -> str:
        return str(error.response.get("Error", {}).get("Code", ""))

    def _translate_error(
        self, error: ClientError | BotoCoreError, key: str | None = None
    ) -> ObjectStoreError:
        if isinstance(error, ClientError):
            exc_cls = _ERROR_CODE_MAP.get(self._error_code(error))
            if exc_cls is ObjectNotFound:
                return ObjectNotFound(key or "")
            if exc_cls is ObjectStoreAccessDenied:
                return ObjectStoreAccessDenied(key)
        log.warning("Object store error for key %s: %s", key, error)
        return ObjectStoreError(str(error), key=key)
