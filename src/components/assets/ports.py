"""
Assets component port definitions.
"""

from __future__ import annotations

from datetime import datetime
from typing import Protocol
from uuid import UUID

from src.core.entities import Asset
from src.core.ports.storage import StoragePort
from src.core.ports.time import TimePort

from .models import AssetQuery, AssetStats


class AssetRepoPort(Protocol):
    """Repository interface for asset rows.

    Adapters raise ``RepoError`` when the underlying store fails.
    """

    def insert(self, asset: Asset) -> Asset:
        """Insert a new row. The id must not already exist."""
        ...

    def get_by_id(self, asset_id: UUID, *, include_deleted: bool = False) -> Asset | None:
        """Get an asset. Soft-deleted rows are hidden unless include_deleted."""
        ...

    def query(self, q: AssetQuery) -> tuple[list[Asset], int]:
        """List assets with filters. Returns (items, total_count)."""
        ...

    def update(self, asset: Asset) -> Asset | None:
        """Overwrite mutable columns of an active row. None if missing or deleted."""
        ...

    def set_deleted_at(
        self, asset_id: UUID, deleted_at: datetime | None, updated_at: datetime
    ) -> bool:
        """
        Atomically flip the soft-delete marker.

        Setting a timestamp only affects active rows; clearing it only
        affects deleted rows. Returns True when a row changed.
        """
        ...

    def purge(self, asset_id: UUID) -> bool:
        """Hard-delete the row. Returns True if it existed."""
        ...

    def stats(self, owner_id: str | None = None) -> AssetStats:
        """Aggregate counts over active assets."""
        ...


__all__ = ["AssetRepoPort", "StoragePort", "TimePort"]
