"""
Assets component input/output models.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict

from src.core.entities import Asset, AssetMetadata, AssetType, Visibility

SORTABLE_FIELDS = ("created_at", "updated_at", "type")
SORT_ORDERS = ("asc", "desc")
MAX_PAGE_SIZE = 100
DEFAULT_PAGE_SIZE = 50


# --- Input Models ---


@dataclass(frozen=True)
class InsertAssetInput:
    """Input for recording a new asset row."""

    owner_id: str
    type: AssetType | str
    location: str
    metadata: AssetMetadata | dict[str, Any] | None = None
    visibility: Visibility | str = Visibility.PRIVATE
    related_id: str | None = None


@dataclass(frozen=True)
class AssetQuery:
    """Filters and paging for listing assets."""

    owner_id: str | None = None
    type: AssetType | None = None
    related_id: str | None = None
    visibility: Visibility | None = None
    include_deleted: bool = False
    only_deleted: bool = False
    limit: int = DEFAULT_PAGE_SIZE
    offset: int = 0
    sort_by: str = "created_at"
    sort_order: str = "desc"


class AssetPatch(BaseModel):
    """
    Partial update of an asset.

    Only fields explicitly set are applied. ``location`` is not a field, so
    a patch carrying it is rejected.
    """

    model_config = ConfigDict(extra="forbid")

    metadata: dict[str, Any] | None = None
    visibility: Visibility | None = None
    type: AssetType | None = None
    related_id: str | None = None


# --- Output Models ---


@dataclass(frozen=True)
class AssetListOutput:
    items: list[Asset]
    total: int
    limit: int
    offset: int


@dataclass(frozen=True)
class StateChangeOutput:
    """Result of soft delete or restore. ``changed`` is False for a no-op."""

    asset: Asset
    changed: bool


@dataclass(frozen=True)
class PurgeOutput:
    asset_id: UUID
    blob_deleted: bool


@dataclass(frozen=True)
class AssetStats:
    """Counts over active assets."""

    total: int
    total_bytes: int
    by_type: dict[str, int] = field(default_factory=dict)
    by_visibility: dict[str, int] = field(default_factory=dict)
