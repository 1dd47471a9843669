"""
In-memory asset repository.

Thread-safe dict store implementing AssetRepoPort with the same filtering,
paging and soft-delete semantics as the SQLite repository. Test double only;
the app always wires SQLiteAssetRepo.
"""

import threading
from datetime import datetime
from uuid import UUID

from src.components.assets.models import AssetQuery, AssetStats
from src.core.backend import RepoError
from src.core.entities import Asset


class InMemoryAssetRepo:
    def __init__(self) -> None:
        self._rows: dict[UUID, Asset] = {}
        self._lock = threading.Lock()

    def insert(self, asset: Asset) -> Asset:
        with self._lock:
            if asset.id in self._rows:
                raise RepoError(f"Duplicate asset id {asset.id}")
            self._rows[asset.id] = asset.model_copy(deep=True)
        return asset

    def get_by_id(self, asset_id: UUID, *, include_deleted: bool = False) -> Asset | None:
        with self._lock:
            asset = self._rows.get(asset_id)
        if asset is None or (asset.is_deleted and not include_deleted):
            return None
        return asset.model_copy(deep=True)

    def query(self, q: AssetQuery) -> tuple[list[Asset], int]:
        with self._lock:
            rows = list(self._rows.values())

        def keep(a: Asset) -> bool:
            if q.owner_id and a.owner_id != q.owner_id:
                return False
            if q.type and a.type != q.type:
                return False
            if q.related_id and a.related_id != q.related_id:
                return False
            if q.visibility and a.visibility != q.visibility:
                return False
            if q.only_deleted:
                return a.is_deleted
            return q.include_deleted or not a.is_deleted

        matched = [a for a in rows if keep(a)]
        reverse = q.sort_order == "desc"
        if q.sort_by == "type":
            matched.sort(key=lambda a: (a.type.value, str(a.id)), reverse=reverse)
        else:
            matched.sort(key=lambda a: (getattr(a, q.sort_by), str(a.id)), reverse=reverse)

        page = matched[q.offset : q.offset + q.limit]
        return [a.model_copy(deep=True) for a in page], len(matched)

    def update(self, asset: Asset) -> Asset | None:
        with self._lock:
            current = self._rows.get(asset.id)
            if current is None or current.is_deleted:
                return None
            # location, owner and creation time are fixed at insert
            self._rows[asset.id] = current.model_copy(
                update={
                    "type": asset.type,
                    "related_id": asset.related_id,
                    "metadata": asset.metadata.model_copy(deep=True),
                    "visibility": asset.visibility,
                    "updated_at": asset.updated_at,
                }
            )
            return self._rows[asset.id].model_copy(deep=True)

    def set_deleted_at(
        self, asset_id: UUID, deleted_at: datetime | None, updated_at: datetime
    ) -> bool:
        with self._lock:
            current = self._rows.get(asset_id)
            if current is None:
                return False
            if (deleted_at is not None) == current.is_deleted:
                return False
            self._rows[asset_id] = current.model_copy(
                update={"deleted_at": deleted_at, "updated_at": updated_at}
            )
            return True

    def purge(self, asset_id: UUID) -> bool:
        with self._lock:
            return self._rows.pop(asset_id, None) is not None

    def stats(self, owner_id: str | None = None) -> AssetStats:
        with self._lock:
            rows = [
                a
                for a in self._rows.values()
                if not a.is_deleted and (owner_id is None or a.owner_id == owner_id)
            ]
        by_type: dict[str, int] = {}
        by_visibility: dict[str, int] = {}
        for a in rows:
            by_type[a.type.value] = by_type.get(a.type.value, 0) + 1
            by_visibility[a.visibility.value] = by_visibility.get(a.visibility.value, 0) + 1
        return AssetStats(
            total=len(rows),
            total_bytes=sum(a.metadata.size or 0 for a in rows),
            by_type=by_type,
            by_visibility=by_visibility,
        )
