"""
S3-compatible Storage Adapter.

Implements StoragePort on top of boto3. Works against AWS S3 and MinIO
(set ``endpoint_url``). Signed URLs are S3 presigned GET URLs; a forced
download name is passed through ResponseContentDisposition.
"""

from __future__ import annotations

import hashlib
import logging
from typing import Any, BinaryIO
from urllib.parse import quote

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from src.core.ports.storage import (
    IntegrityError,
    KeyExistsError,
    KeyNotFoundError,
    StorageError,
    StoredObject,
)

logger = logging.getLogger(__name__)

_NOT_FOUND_CODES = {"404", "NoSuchKey", "NotFound"}


def _error_code(exc: ClientError) -> str:
    return str(exc.response.get("Error", {}).get("Code", ""))


def content_disposition(filename: str) -> str:
    """Attachment header value with an RFC 5987 encoded name for non-ASCII filenames."""
    ascii_name = filename.encode("ascii", "ignore").decode() or "download"
    ascii_name = ascii_name.replace('"', "")
    return f"attachment; filename=\"{ascii_name}\"; filename*=UTF-8''{quote(filename)}"


class S3Storage:
    """boto3-backed StoragePort."""

    def __init__(
        self,
        *,
        client: Any | None = None,
        endpoint_url: str | None = None,
        region_name: str = "us-east-1",
        access_key: str | None = None,
        secret_key: str | None = None,
        public_base_url: str | None = None,
        timeout_seconds: float | None = None,
    ) -> None:
        if client is None:
            config = None
            if timeout_seconds is not None:
                config = Config(
                    connect_timeout=timeout_seconds,
                    read_timeout=timeout_seconds,
                    retries={"max_attempts": 1},
                )
            client = boto3.client(
                "s3",
                endpoint_url=endpoint_url,
                region_name=region_name,
                aws_access_key_id=access_key,
                aws_secret_access_key=secret_key,
                config=config,
            )
        self._client = client
        self._endpoint_url = endpoint_url
        self._region_name = region_name
        self._public_base_url = public_base_url.rstrip("/") if public_base_url else None

    def put(
        self,
        bucket: str,
        key: str,
        data: bytes | BinaryIO,
        content_type: str,
    ) -> StoredObject:
        if self.exists(bucket, key):
            raise KeyExistsError(key)

        body = data if isinstance(data, bytes) else data.read()
        sha256_hex = hashlib.sha256(body).hexdigest()
        try:
            response = self._client.put_object(
                Bucket=bucket,
                Key=key,
                Body=body,
                ContentType=content_type,
                Metadata={"sha256": sha256_hex},
            )
        except (ClientError, BotoCoreError) as e:
            logger.error("S3 put failed for %s/%s: %s", bucket, key, e)
            raise StorageError(f"Failed to store {bucket}/{key}: {e}") from e

        return StoredObject(
            bucket=bucket,
            key=key,
            size_bytes=len(body),
            content_type=content_type,
            sha256=sha256_hex,
            etag=response.get("ETag", ""),
        )

    def get(self, bucket: str, key: str) -> tuple[bytes, StoredObject]:
        try:
            response = self._client.get_object(Bucket=bucket, Key=key)
        except ClientError as e:
            if _error_code(e) in _NOT_FOUND_CODES:
                raise KeyNotFoundError(key) from e
            raise StorageError(f"Failed to read {bucket}/{key}: {e}") from e
        except BotoCoreError as e:
            raise StorageError(f"Failed to read {bucket}/{key}: {e}") from e

        data = response["Body"].read()
        sha256_hex = hashlib.sha256(data).hexdigest()
        expected = response.get("Metadata", {}).get("sha256")
        if expected and expected != sha256_hex:
            raise IntegrityError(expected, sha256_hex)

        return data, StoredObject(
            bucket=bucket,
            key=key,
            size_bytes=len(data),
            content_type=response.get("ContentType", "application/octet-stream"),
            sha256=sha256_hex,
            etag=response.get("ETag", ""),
        )

    def exists(self, bucket: str, key: str) -> bool:
        try:
            self._client.head_object(Bucket=bucket, Key=key)
        except ClientError as e:
            if _error_code(e) in _NOT_FOUND_CODES:
                return False
            raise StorageError(f"Failed to stat {bucket}/{key}: {e}") from e
        except BotoCoreError as e:
            raise StorageError(f"Failed to stat {bucket}/{key}: {e}") from e
        return True

    def delete(self, bucket: str, key: str) -> bool:
        if not self.exists(bucket, key):
            return False
        try:
            self._client.delete_object(Bucket=bucket, Key=key)
        except (ClientError, BotoCoreError) as e:
            raise StorageError(f"Failed to delete {bucket}/{key}: {e}") from e
        return True

    def public_url(self, bucket: str, key: str) -> str:
        if self._public_base_url:
            return f"{self._public_base_url}/{bucket}/{quote(key)}"
        if self._endpoint_url:
            return f"{self._endpoint_url.rstrip('/')}/{bucket}/{quote(key)}"
        return f"https://{bucket}.s3.{self._region_name}.amazonaws.com/{quote(key)}"

    def signed_url(
        self,
        bucket: str,
        key: str,
        expires_in: int,
        *,
        download_filename: str | None = None,
    ) -> str:
        params: dict[str, str] = {"Bucket": bucket, "Key": key}
        if download_filename:
            params["ResponseContentDisposition"] = content_disposition(download_filename)
        try:
            url: str = self._client.generate_presigned_url(
                "get_object",
                Params=params,
                ExpiresIn=expires_in,
            )
        except (ClientError, BotoCoreError) as e:
            logger.error("Presign failed for %s/%s: %s", bucket, key, e)
            raise StorageError(f"Failed to sign {bucket}/{key}: {e}") from e
        return url
