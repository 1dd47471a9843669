"""
Blob serving routes for the local storage backend.

- /files/public/{bucket}/{key}: permanent URLs, public bucket only
- /files/signed/{token}: signed URLs; the token carries target and expiry

Keys are immutable, so public responses are cached for a year and ETags
come from the stored SHA-256.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import Response

from src.adapters.local_storage import LocalFileStorage
from src.adapters.s3_storage import content_disposition
from src.api.deps import get_rules, get_storage_backend
from src.core.ports.storage import (
    IntegrityError,
    InvalidSignatureError,
    KeyNotFoundError,
    StorageError,
    StoragePort,
    StoredObject,
)
from src.rules.models import Rules

logger = logging.getLogger(__name__)

router = APIRouter()

CACHE_CONTROL_IMMUTABLE = "public, max-age=31536000, immutable"
CACHE_CONTROL_SIGNED = "private, no-store"


def build_etag(sha256: str) -> str:
    return f'"{sha256[:16]}"'


def check_if_none_match(request: Request, etag: str) -> bool:
    """True if the client already holds this version (answer 304)."""
    if_none_match = request.headers.get("if-none-match")
    if if_none_match:
        client_etags = [e.strip() for e in if_none_match.split(",")]
        return etag in client_etags or "*" in client_etags
    return False


def _local(storage: StoragePort) -> LocalFileStorage:
    if not isinstance(storage, LocalFileStorage):
        # Other backends serve their own URLs
        raise HTTPException(status_code=404, detail="Not found")
    return storage


def _read_blob(storage: LocalFileStorage, bucket: str, key: str) -> tuple[bytes, StoredObject]:
    try:
        return storage.get(bucket, key)
    except KeyNotFoundError as e:
        raise HTTPException(status_code=404, detail="File not found") from e
    except IntegrityError as e:
        logger.error("Integrity check failed serving %s/%s: %s", bucket, key, e)
        raise HTTPException(status_code=503, detail="Stored file failed integrity check") from e
    except StorageError as e:
        raise HTTPException(status_code=404, detail="File not found") from e


@router.get("/public/{bucket}/{key:path}")
def serve_public(
    bucket: str,
    key: str,
    request: Request,
    storage: StoragePort = Depends(get_storage_backend),
    rules: Rules = Depends(get_rules),
) -> Response:
    local = _local(storage)
    if bucket != rules.buckets.public:
        raise HTTPException(status_code=404, detail="File not found")

    data, meta = _read_blob(local, bucket, key)
    etag = build_etag(meta.sha256)
    if check_if_none_match(request, etag):
        return Response(
            status_code=304, headers={"ETag": etag, "Cache-Control": CACHE_CONTROL_IMMUTABLE}
        )
    return Response(
        content=data,
        media_type=meta.content_type,
        headers={
            "ETag": etag,
            "Cache-Control": CACHE_CONTROL_IMMUTABLE,
            "X-Content-SHA256": meta.sha256,
        },
    )


@router.get("/signed/{token}")
def serve_signed(
    token: str,
    storage: StoragePort = Depends(get_storage_backend),
) -> Response:
    local = _local(storage)
    try:
        target = local.verify_signed_token(token)
    except InvalidSignatureError as e:
        raise HTTPException(status_code=403, detail=str(e)) from e

    data, meta = _read_blob(local, target.bucket, target.key)
    headers = {
        "ETag": build_etag(meta.sha256),
        "Cache-Control": CACHE_CONTROL_SIGNED,
        "X-Content-SHA256": meta.sha256,
    }
    if target.download_filename:
        headers["Content-Disposition"] = content_disposition(target.download_filename)
    return Response(content=data, media_type=meta.content_type, headers=headers)
