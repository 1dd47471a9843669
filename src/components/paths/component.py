"""
Paths component - canonical storage locations for new assets.

Layout: {entity_type}/{entity_id}/{subfolder?}/{timestamp}-{random}-{filename}
inside the public bucket for public assets and the private bucket otherwise.

Invariants:
- I1: Pure; never touches the storage backend
- I2: Unsafe filenames are rejected, never rewritten
- I3: Every path segment comes from a validated value
- I4: Two calls never share a key (timestamp plus random token)
"""

from __future__ import annotations

import re
import secrets
import string
from collections.abc import Callable
from datetime import datetime

from src.core.entities import Visibility, utc_now
from src.core.errors import ValidationError

from .models import BucketConfig, PathConfig, ResolvedPath, ResolvePathInput

SEGMENT_RE = re.compile(r"^[A-Za-z0-9][A-Za-z0-9_-]{0,127}$")
_DRIVE_RE = re.compile(r"^[A-Za-z]:")
_TOKEN_ALPHABET = string.ascii_lowercase + string.digits
TOKEN_LENGTH = 8


def random_token(length: int = TOKEN_LENGTH) -> str:
    return "".join(secrets.choice(_TOKEN_ALPHABET) for _ in range(length))


def validate_filename(filename: str, *, max_length: int = 255) -> str:
    """
    Check that an uploaded filename is a single safe path segment.

    Returns the filename unchanged; raises ValidationError otherwise.
    """
    if not filename or not filename.strip():
        raise ValidationError("Filename is required", field="filename")
    if filename in (".", ".."):
        raise ValidationError(f"Invalid filename: {filename!r}", field="filename")
    if "/" in filename or "\\" in filename:
        raise ValidationError(
            f"Filename must not contain path separators: {filename!r}", field="filename"
        )
    if ".." in filename:
        raise ValidationError(
            f"Filename must not contain '..': {filename!r}", field="filename"
        )
    if _DRIVE_RE.match(filename):
        raise ValidationError(
            f"Filename must not be an absolute path: {filename!r}", field="filename"
        )
    if any(ord(ch) < 32 or ord(ch) == 127 for ch in filename):
        raise ValidationError("Filename contains control characters", field="filename")
    if len(filename) > max_length:
        raise ValidationError(
            f"Filename exceeds {max_length} characters", field="filename"
        )
    return filename


def validate_segment(value: str, field: str) -> str:
    if not value or not SEGMENT_RE.match(value):
        raise ValidationError(f"Invalid {field}: {value!r}", field=field)
    return value


def select_bucket(visibility: str | Visibility, buckets: BucketConfig) -> str:
    try:
        vis = Visibility(visibility)
    except ValueError as e:
        raise ValidationError(f"Invalid visibility: {visibility!r}", field="visibility") from e
    return buckets.public if vis is Visibility.PUBLIC else buckets.private


def split_location(location: str) -> tuple[str, str]:
    """Split a stored location into (bucket, key)."""
    bucket, sep, key = location.partition("/")
    if not sep or not bucket or not key:
        raise ValidationError(f"Malformed location: {location!r}", field="location")
    return bucket, key


def resolve_path(
    inp: ResolvePathInput,
    *,
    buckets: BucketConfig,
    config: PathConfig,
    now: datetime | None = None,
    token_factory: Callable[[], str] = random_token,
) -> ResolvedPath:
    """
    Resolve the canonical bucket and key for a new blob.

    Args:
        inp: Entity, filename and visibility of the upload.
        buckets: Public/private bucket names.
        config: Allowed entity types and filename limits.
        now: Timestamp for the disambiguation prefix.
        token_factory: Source of the random disambiguation token.

    Raises:
        ValidationError: On any unsafe or unknown input.
    """
    validate_segment(inp.entity_type, "entity_type")
    if inp.entity_type not in config.entity_types:
        raise ValidationError(
            f"Unsupported entity type: {inp.entity_type!r}", field="entity_type"
        )
    validate_segment(inp.entity_id, "entity_id")
    if inp.subfolder is not None:
        validate_segment(inp.subfolder, "subfolder")
    original = validate_filename(inp.filename, max_length=config.max_filename_length)
    bucket = select_bucket(inp.visibility, buckets)

    stamp = int((now or utc_now()).timestamp() * 1000)
    disambiguated = f"{stamp}-{token_factory()}-{original}"

    parts = [inp.entity_type, inp.entity_id]
    if inp.subfolder:
        parts.append(inp.subfolder)
    parts.append(disambiguated)

    return ResolvedPath(
        bucket=bucket,
        key="/".join(parts),
        filename=disambiguated,
        original_filename=original,
    )
