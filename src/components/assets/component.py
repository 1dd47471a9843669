"""
Assets component - the asset metadata store.

Records asset rows, answers filtered queries and manages the soft-delete
lifecycle. Blob bytes are only touched by purge.

Invariants:
- I1: Soft-deleted assets never appear in default reads or listings
- I2: A second soft delete is a no-op that keeps the first deleted_at
- I3: location is fixed at insert; patches cannot change it
- I4: Enum values are validated before the repository sees them
- I5: Every repository and storage call goes through the backend guard
"""

from __future__ import annotations

import logging
from typing import Any
from uuid import UUID

from pydantic import ValidationError as PydanticValidationError

from src.components.paths import split_location
from src.core.backend import BackendGuard
from src.core.entities import Asset, AssetMetadata, AssetType, Visibility
from src.core.errors import NotFoundError, ValidationError

from .models import (
    MAX_PAGE_SIZE,
    SORT_ORDERS,
    SORTABLE_FIELDS,
    AssetListOutput,
    AssetPatch,
    AssetQuery,
    AssetStats,
    InsertAssetInput,
    PurgeOutput,
    StateChangeOutput,
)
from .ports import AssetRepoPort, StoragePort, TimePort

logger = logging.getLogger(__name__)

_DIRECT = BackendGuard()


# --- Validation Functions ---


def coerce_type(value: AssetType | str) -> AssetType:
    try:
        return AssetType(value)
    except ValueError as e:
        raise ValidationError(f"Unknown asset type: {value!r}", field="type") from e


def coerce_visibility(value: Visibility | str) -> Visibility:
    try:
        return Visibility(value)
    except ValueError as e:
        raise ValidationError(f"Invalid visibility: {value!r}", field="visibility") from e


def coerce_metadata(value: AssetMetadata | dict[str, Any] | None) -> AssetMetadata:
    if isinstance(value, AssetMetadata):
        return value
    try:
        return AssetMetadata.model_validate(value or {})
    except PydanticValidationError as e:
        first = e.errors()[0]
        where = ".".join(str(p) for p in first["loc"]) or "metadata"
        raise ValidationError(f"Invalid metadata {where}: {first['msg']}", field="metadata") from e


def validate_query(q: AssetQuery) -> AssetQuery:
    if not 1 <= q.limit <= MAX_PAGE_SIZE:
        raise ValidationError(f"limit must be between 1 and {MAX_PAGE_SIZE}", field="limit")
    if q.offset < 0:
        raise ValidationError("offset must not be negative", field="offset")
    if q.sort_by not in SORTABLE_FIELDS:
        raise ValidationError(
            f"sort_by must be one of: {', '.join(SORTABLE_FIELDS)}", field="sort_by"
        )
    if q.sort_order not in SORT_ORDERS:
        raise ValidationError("sort_order must be 'asc' or 'desc'", field="sort_order")
    if q.type is not None:
        coerce_type(q.type)
    if q.visibility is not None:
        coerce_visibility(q.visibility)
    return q


def _require_active(
    repo: AssetRepoPort, asset_id: UUID, guard: BackendGuard, *, include_deleted: bool = False
) -> Asset:
    asset = guard.read("assets.get", repo.get_by_id, asset_id, include_deleted=include_deleted)
    if asset is None:
        raise NotFoundError(asset_id)
    return asset


# --- Component Entry Points ---


def run_insert(
    inp: InsertAssetInput,
    *,
    repo: AssetRepoPort,
    clock: TimePort,
    guard: BackendGuard = _DIRECT,
) -> Asset:
    """
    Record a new asset and return it with its assigned id.

    Raises:
        ValidationError: Empty owner, malformed metadata, unknown type or visibility.
        BackendError: The metadata store failed.
    """
    if not inp.owner_id:
        raise ValidationError("owner_id is required", field="owner_id")
    split_location(inp.location)

    metadata = coerce_metadata(inp.metadata)

    now = clock.now_utc()
    asset = Asset(
        owner_id=inp.owner_id,
        type=coerce_type(inp.type),
        related_id=inp.related_id,
        location=inp.location,
        metadata=metadata,
        visibility=coerce_visibility(inp.visibility),
        created_at=now,
        updated_at=now,
    )
    created = guard.call("assets.insert", repo.insert, asset)
    logger.info("Recorded asset %s (%s) for owner %s", created.id, created.type.value, created.owner_id)
    return created


def run_get(
    asset_id: UUID,
    *,
    repo: AssetRepoPort,
    include_deleted: bool = False,
    guard: BackendGuard = _DIRECT,
) -> Asset:
    return _require_active(repo, asset_id, guard, include_deleted=include_deleted)


def run_query(
    q: AssetQuery,
    *,
    repo: AssetRepoPort,
    guard: BackendGuard = _DIRECT,
) -> AssetListOutput:
    validate_query(q)
    items, total = guard.read("assets.query", repo.query, q)
    return AssetListOutput(items=items, total=total, limit=q.limit, offset=q.offset)


def run_soft_delete(
    asset_id: UUID,
    *,
    repo: AssetRepoPort,
    clock: TimePort,
    guard: BackendGuard = _DIRECT,
) -> StateChangeOutput:
    """
    Mark an asset deleted.

    Deleting an already-deleted asset succeeds without touching deleted_at.
    """
    asset = _require_active(repo, asset_id, guard, include_deleted=True)
    if asset.is_deleted:
        return StateChangeOutput(asset=asset, changed=False)

    now = clock.now_utc()
    changed = guard.call("assets.soft_delete", repo.set_deleted_at, asset_id, now, now)
    current = _require_active(repo, asset_id, guard, include_deleted=True)
    if changed:
        logger.info("Soft-deleted asset %s", asset_id)
    return StateChangeOutput(asset=current, changed=changed)


def run_restore(
    asset_id: UUID,
    *,
    repo: AssetRepoPort,
    clock: TimePort,
    guard: BackendGuard = _DIRECT,
) -> StateChangeOutput:
    asset = _require_active(repo, asset_id, guard, include_deleted=True)
    if not asset.is_deleted:
        return StateChangeOutput(asset=asset, changed=False)

    changed = guard.call("assets.restore", repo.set_deleted_at, asset_id, None, clock.now_utc())
    current = _require_active(repo, asset_id, guard, include_deleted=True)
    if changed:
        logger.info("Restored asset %s", asset_id)
    return StateChangeOutput(asset=current, changed=changed)


def run_update(
    asset_id: UUID,
    patch: AssetPatch | dict[str, Any],
    *,
    repo: AssetRepoPort,
    clock: TimePort,
    guard: BackendGuard = _DIRECT,
) -> Asset:
    """
    Apply a partial update.

    Metadata is merged shallowly into the existing bag. Updating a
    soft-deleted asset raises NotFoundError.
    """
    if isinstance(patch, dict):
        if "location" in patch:
            raise ValidationError("location cannot be changed", field="location")
        try:
            patch = AssetPatch.model_validate(patch)
        except ValueError as e:
            raise ValidationError(f"Invalid patch: {e}") from e

    asset = _require_active(repo, asset_id, guard)
    changes: dict[str, Any] = {}
    fields_set = patch.model_fields_set

    if "metadata" in fields_set and patch.metadata is not None:
        changes["metadata"] = asset.metadata.merged(coerce_metadata(patch.metadata))
    if "visibility" in fields_set and patch.visibility is not None:
        changes["visibility"] = coerce_visibility(patch.visibility)
    if "type" in fields_set and patch.type is not None:
        changes["type"] = coerce_type(patch.type)
    if "related_id" in fields_set:
        changes["related_id"] = patch.related_id

    changes["updated_at"] = clock.now_utc()
    updated = guard.call("assets.update", repo.update, asset.model_copy(update=changes))
    if updated is None:
        raise NotFoundError(asset_id)
    logger.info("Updated asset %s fields=%s", asset_id, sorted(fields_set))
    return updated


def run_purge(
    asset_id: UUID,
    *,
    repo: AssetRepoPort,
    storage: StoragePort,
    guard: BackendGuard = _DIRECT,
) -> PurgeOutput:
    """
    Administrative hard delete: remove the blob, then the row.

    If the blob removal fails the row is kept so the purge can be retried.
    """
    asset = _require_active(repo, asset_id, guard, include_deleted=True)
    bucket, key = split_location(asset.location)
    blob_deleted = guard.call("storage.delete", storage.delete, bucket, key)
    if not blob_deleted:
        logger.warning("Purging asset %s whose blob %s was already gone", asset_id, asset.location)
    guard.call("assets.purge", repo.purge, asset_id)
    logger.info("Purged asset %s", asset_id)
    return PurgeOutput(asset_id=asset_id, blob_deleted=blob_deleted)


def run_stats(
    owner_id: str | None = None,
    *,
    repo: AssetRepoPort,
    guard: BackendGuard = _DIRECT,
) -> AssetStats:
    return guard.read("assets.stats", repo.stats, owner_id)


# --- Service Class ---


class AssetStore:
    """Class-based wrapper binding the entry points to their ports."""

    def __init__(
        self,
        repo: AssetRepoPort,
        clock: TimePort,
        *,
        storage: StoragePort | None = None,
        guard: BackendGuard | None = None,
    ) -> None:
        self.repo = repo
        self.clock = clock
        self.storage = storage
        self.guard = guard or _DIRECT

    def insert(
        self,
        owner_id: str,
        type: AssetType | str,
        location: str,
        metadata: AssetMetadata | dict[str, Any] | None = None,
        visibility: Visibility | str = Visibility.PRIVATE,
        related_id: str | None = None,
    ) -> Asset:
        inp = InsertAssetInput(
            owner_id=owner_id,
            type=type,
            location=location,
            metadata=metadata,
            visibility=visibility,
            related_id=related_id,
        )
        return run_insert(inp, repo=self.repo, clock=self.clock, guard=self.guard)

    def get(self, asset_id: UUID, *, include_deleted: bool = False) -> Asset:
        return run_get(asset_id, repo=self.repo, include_deleted=include_deleted, guard=self.guard)

    def query(self, q: AssetQuery) -> AssetListOutput:
        return run_query(q, repo=self.repo, guard=self.guard)

    def soft_delete(self, asset_id: UUID) -> StateChangeOutput:
        return run_soft_delete(asset_id, repo=self.repo, clock=self.clock, guard=self.guard)

    def restore(self, asset_id: UUID) -> StateChangeOutput:
        return run_restore(asset_id, repo=self.repo, clock=self.clock, guard=self.guard)

    def update(self, asset_id: UUID, patch: AssetPatch | dict[str, Any]) -> Asset:
        return run_update(asset_id, patch, repo=self.repo, clock=self.clock, guard=self.guard)

    def purge(self, asset_id: UUID) -> PurgeOutput:
        if self.storage is None:
            raise ValueError("StoragePort is required for purge")
        return run_purge(asset_id, repo=self.repo, storage=self.storage, guard=self.guard)

    def stats(self, owner_id: str | None = None) -> AssetStats:
        return run_stats(owner_id, repo=self.repo, guard=self.guard)
