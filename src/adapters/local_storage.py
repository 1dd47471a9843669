"""
Local Filesystem Storage Adapter.

Implements the StoragePort interface using the local filesystem.
Provides immutable blob storage for development and single-server deployments.

Signed URLs are HS256 JWTs carrying bucket, key, optional download filename
and expiry; the API verifies them before streaming bytes back.

Invariants:
- sha256 stored equals sha256 served
- Keys once written cannot be overwritten
- Resolved paths never escape {base_path}/{bucket}
"""

from __future__ import annotations

import hashlib
import json
import logging
import os
import re
from dataclasses import dataclass
from datetime import timedelta
from pathlib import Path
from typing import BinaryIO
from urllib.parse import quote

from jose import ExpiredSignatureError, JWTError, jwt

from src.adapters.clock import SystemClock
from src.core.ports.storage import (
    IntegrityError,
    InvalidSignatureError,
    KeyExistsError,
    KeyNotFoundError,
    StorageError,
    StoredObject,
)
from src.core.ports.time import TimePort

logger = logging.getLogger(__name__)

ALGORITHM = "HS256"
SIGNED_URL_AUDIENCE = "asset-files"
_BUCKET_RE = re.compile(r"^[a-z0-9][a-z0-9_.-]{1,62}$")


@dataclass(frozen=True)
class SignedTarget:
    """Decoded content of a signed URL token."""

    bucket: str
    key: str
    download_filename: str | None


class LocalFileStorage:
    """
    Local filesystem implementation of StoragePort.

    Stores objects as files with accompanying metadata JSON.
    Directory structure: {base_path}/{bucket}/{key}.bin + {key}.meta.json
    """

    def __init__(
        self,
        base_path: str | Path,
        *,
        base_url: str = "http://localhost:8000",
        secret_key: str = "dev-url-signing-unsafe",
        clock: TimePort | None = None,
        create_dirs: bool = True,
    ) -> None:
        """
        Initialize local file storage.

        Args:
            base_path: Root directory for storage
            base_url: Origin used to build public and signed URLs
            secret_key: HMAC key for signed URL tokens
            clock: Time source for token expiry
            create_dirs: Whether to create directories if they don't exist
        """
        self.base_path = Path(base_path).resolve()
        self.base_url = base_url.rstrip("/")
        self._secret_key = secret_key
        self._clock = clock or SystemClock()

        if create_dirs:
            self.base_path.mkdir(parents=True, exist_ok=True)

    def _key_to_paths(self, bucket: str, key: str) -> tuple[Path, Path]:
        """Convert bucket/key to file paths (data and metadata)."""
        if not _BUCKET_RE.match(bucket):
            raise StorageError(f"Invalid bucket name: {bucket}")
        root = (self.base_path / bucket).resolve()
        data_path = (root / f"{key}.bin").resolve()
        # Prevent traversal
        if root not in data_path.parents:
            raise StorageError(f"Path traversal attempt detected: {key}")
        meta_path = data_path.with_name(data_path.name[: -len(".bin")] + ".meta.json")
        return data_path, meta_path

    def _compute_sha256(self, data: bytes | BinaryIO) -> tuple[bytes, str]:
        """Compute SHA-256 hash of data, returning (bytes, hex_hash)."""
        hasher = hashlib.sha256()

        if isinstance(data, bytes):
            hasher.update(data)
            return data, hasher.hexdigest()

        # Stream from file-like object
        chunks = []
        while True:
            chunk = data.read(8192)
            if not chunk:
                break
            chunks.append(chunk)
            hasher.update(chunk)

        return b"".join(chunks), hasher.hexdigest()

    def _compute_etag(self, sha256_hex: str) -> str:
        return f'"{sha256_hex[:32]}"'

    def put(
        self,
        bucket: str,
        key: str,
        data: bytes | BinaryIO,
        content_type: str,
    ) -> StoredObject:
        """
        Store object bytes under the given key.

        Enforces immutability: raises KeyExistsError if key already exists.
        """
        data_path, meta_path = self._key_to_paths(bucket, key)

        if data_path.exists():
            raise KeyExistsError(key)

        data_bytes, sha256_hex = self._compute_sha256(data)

        data_path.parent.mkdir(parents=True, exist_ok=True)

        # "xb" fails if a concurrent writer created the file first
        try:
            with open(data_path, "xb") as f:
                f.write(data_bytes)
        except FileExistsError as e:
            raise KeyExistsError(key) from e

        metadata = StoredObject(
            bucket=bucket,
            key=key,
            size_bytes=len(data_bytes),
            content_type=content_type,
            sha256=sha256_hex,
            etag=self._compute_etag(sha256_hex),
        )

        with open(meta_path, "w") as f:
            json.dump(
                {
                    "bucket": metadata.bucket,
                    "key": metadata.key,
                    "size_bytes": metadata.size_bytes,
                    "content_type": metadata.content_type,
                    "sha256": metadata.sha256,
                    "etag": metadata.etag,
                },
                f,
            )

        logger.debug("Stored %s/%s (%d bytes)", bucket, key, metadata.size_bytes)
        return metadata

    def get(self, bucket: str, key: str) -> tuple[bytes, StoredObject]:
        """Retrieve object bytes by key."""
        data_path, meta_path = self._key_to_paths(bucket, key)

        if not data_path.exists():
            raise KeyNotFoundError(key)

        with open(data_path, "rb") as f:
            data = f.read()

        metadata = self._load_metadata(bucket, key, data_path, meta_path)

        # Verify integrity on read
        actual_sha256 = hashlib.sha256(data).hexdigest()
        if actual_sha256 != metadata.sha256:
            raise IntegrityError(metadata.sha256, actual_sha256)

        return data, metadata

    def exists(self, bucket: str, key: str) -> bool:
        data_path, _ = self._key_to_paths(bucket, key)
        return data_path.exists()

    def delete(self, bucket: str, key: str) -> bool:
        data_path, meta_path = self._key_to_paths(bucket, key)

        if not data_path.exists():
            return False

        data_path.unlink()
        if meta_path.exists():
            meta_path.unlink()

        return True

    def public_url(self, bucket: str, key: str) -> str:
        return f"{self.base_url}/files/public/{bucket}/{quote(key)}"

    def signed_url(
        self,
        bucket: str,
        key: str,
        expires_in: int,
        *,
        download_filename: str | None = None,
    ) -> str:
        self._key_to_paths(bucket, key)
        expires_at = self._clock.now_utc() + timedelta(seconds=expires_in)
        claims: dict[str, object] = {
            "b": bucket,
            "k": key,
            "exp": int(expires_at.timestamp()),
            "aud": SIGNED_URL_AUDIENCE,
        }
        if download_filename:
            claims["fn"] = download_filename
        token = jwt.encode(claims, self._secret_key, algorithm=ALGORITHM)
        return f"{self.base_url}/files/signed/{token}"

    def verify_signed_token(self, token: str) -> SignedTarget:
        """
        Decode a token produced by signed_url.

        Raises:
            InvalidSignatureError: If the token is expired, forged or malformed
        """
        try:
            claims = jwt.decode(
                token,
                self._secret_key,
                algorithms=[ALGORITHM],
                audience=SIGNED_URL_AUDIENCE,
                options={"require_aud": True},
            )
        except ExpiredSignatureError as e:
            raise InvalidSignatureError("Signed URL has expired") from e
        except JWTError as e:
            raise InvalidSignatureError("Signed URL is invalid") from e

        bucket = claims.get("b")
        key = claims.get("k")
        if not isinstance(bucket, str) or not isinstance(key, str):
            raise InvalidSignatureError("Signed URL is missing its target")
        filename = claims.get("fn")
        return SignedTarget(
            bucket=bucket,
            key=key,
            download_filename=filename if isinstance(filename, str) else None,
        )

    def _load_metadata(
        self, bucket: str, key: str, data_path: Path, meta_path: Path
    ) -> StoredObject:
        if not meta_path.exists():
            # Reconstruct metadata if missing
            with open(data_path, "rb") as f:
                data = f.read()
            sha256_hex = hashlib.sha256(data).hexdigest()
            return StoredObject(
                bucket=bucket,
                key=key,
                size_bytes=len(data),
                content_type="application/octet-stream",
                sha256=sha256_hex,
                etag=self._compute_etag(sha256_hex),
            )

        with open(meta_path) as f:
            meta = json.load(f)

        return StoredObject(
            bucket=meta.get("bucket", bucket),
            key=meta["key"],
            size_bytes=meta["size_bytes"],
            content_type=meta["content_type"],
            sha256=meta["sha256"],
            etag=meta["etag"],
        )


def create_local_storage(
    base_path: str | Path | None = None,
    *,
    env_var: str = "ASSET_STORAGE_PATH",
    default_path: str = "./data/blobs",
    base_url: str = "http://localhost:8000",
    secret_key: str = "dev-url-signing-unsafe",
) -> LocalFileStorage:
    """
    Factory function to create LocalFileStorage from config.

    Args:
        base_path: Explicit base path (overrides env var)
        env_var: Environment variable name for storage path
        default_path: Default path if not configured
        base_url: Origin for generated URLs
        secret_key: Signing key for signed URLs

    Returns:
        Configured LocalFileStorage instance
    """
    if base_path is None:
        base_path = os.environ.get(env_var, default_path)

    return LocalFileStorage(base_path, base_url=base_url, secret_key=secret_key)
