"""
Object Storage Port.

Protocol-based interface for blob storage addressed by (bucket, key).
Implementations: local filesystem (dev/single node) and S3-compatible.

Invariants:
- Keys once written cannot be overwritten
- sha256 stored equals sha256 served
- Signed URLs always carry an expiry; public URLs never do
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import BinaryIO, Protocol


@dataclass
class StoredObject:
    """Metadata for a stored object."""

    bucket: str
    key: str
    size_bytes: int
    content_type: str
    sha256: str
    etag: str


class StoragePort(Protocol):
    """
    Object storage port interface.

    Every call may block on I/O; callers that need a deadline wrap the
    call themselves.
    """

    def put(
        self,
        bucket: str,
        key: str,
        data: bytes | BinaryIO,
        content_type: str,
    ) -> StoredObject:
        """
        Store object bytes under the given key.

        Raises:
            KeyExistsError: If key already exists in the bucket
        """
        ...

    def get(self, bucket: str, key: str) -> tuple[bytes, StoredObject]:
        """
        Retrieve object bytes by key.

        Raises:
            KeyNotFoundError: If key doesn't exist
        """
        ...

    def exists(self, bucket: str, key: str) -> bool:
        """Check if key exists in the bucket."""
        ...

    def delete(self, bucket: str, key: str) -> bool:
        """Delete object. Returns False if the key didn't exist."""
        ...

    def public_url(self, bucket: str, key: str) -> str:
        """Permanent URL for an object in a publicly readable bucket."""
        ...

    def signed_url(
        self,
        bucket: str,
        key: str,
        expires_in: int,
        *,
        download_filename: str | None = None,
    ) -> str:
        """
        Time-bounded read URL for the object.

        ``download_filename`` forces a Content-Disposition attachment name.
        """
        ...


class StorageError(Exception):
    """Base class for storage errors."""


class KeyExistsError(StorageError):
    """Raised when attempting to write to an existing key."""

    def __init__(self, key: str) -> None:
        self.key = key
        super().__init__(f"Key already exists (immutable): {key}")


class KeyNotFoundError(StorageError):
    """Raised when key doesn't exist."""

    def __init__(self, key: str) -> None:
        self.key = key
        super().__init__(f"Key not found: {key}")


class IntegrityError(StorageError):
    """Raised when data integrity check fails."""

    def __init__(self, expected: str, actual: str) -> None:
        self.expected = expected
        self.actual = actual
        super().__init__(f"Integrity check failed: expected {expected}, got {actual}")


class InvalidSignatureError(StorageError):
    """Raised when a signed URL token is forged, malformed or expired."""
