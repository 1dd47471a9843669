import json
import logging
import sqlite3
from datetime import datetime
from typing import Any
from uuid import UUID

from src.components.assets.models import SORTABLE_FIELDS, AssetQuery, AssetStats
from src.core.backend import RepoError
from src.core.entities import Asset, AssetMetadata

logger = logging.getLogger(__name__)


def _dt(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


def _parse_dt(value: str | None) -> datetime | None:
    return datetime.fromisoformat(value) if value else None


class SQLiteAssetRepo:
    def __init__(self, db_path: str, *, timeout_seconds: float = 5.0):
        self.db_path = db_path
        self.timeout_seconds = timeout_seconds

    def _get_conn(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path, timeout=self.timeout_seconds)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON;")
        return conn

    def _map_row(self, row: sqlite3.Row) -> Asset:
        return Asset(
            id=UUID(row["id"]),
            owner_id=row["owner_id"],
            type=row["type"],
            related_id=row["related_id"],
            location=row["location"],
            metadata=AssetMetadata.model_validate(json.loads(row["metadata"] or "{}")),
            visibility=row["visibility"],
            created_at=datetime.fromisoformat(row["created_at"]),
            updated_at=datetime.fromisoformat(row["updated_at"]),
            deleted_at=_parse_dt(row["deleted_at"]),
        )

    def insert(self, asset: Asset) -> Asset:
        conn = self._get_conn()
        try:
            conn.execute(
                """
                INSERT INTO assets (
                    id, owner_id, type, related_id, location, metadata,
                    visibility, created_at, updated_at, deleted_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
                (
                    str(asset.id),
                    asset.owner_id,
                    asset.type.value,
                    asset.related_id,
                    asset.location,
                    asset.metadata.model_dump_json(exclude_none=True),
                    asset.visibility.value,
                    _dt(asset.created_at),
                    _dt(asset.updated_at),
                    _dt(asset.deleted_at),
                ),
            )
            conn.commit()
            return asset
        except sqlite3.Error as e:
            logger.error("Asset insert failed for %s: %s", asset.id, e)
            raise RepoError(str(e)) from e
        finally:
            conn.close()

    def get_by_id(self, asset_id: UUID, *, include_deleted: bool = False) -> Asset | None:
        conn = self._get_conn()
        try:
            sql = "SELECT * FROM assets WHERE id = ?"
            if not include_deleted:
                sql += " AND deleted_at IS NULL"
            row = conn.execute(sql, (str(asset_id),)).fetchone()
            if not row:
                return None
            return self._map_row(row)
        except sqlite3.Error as e:
            raise RepoError(str(e)) from e
        finally:
            conn.close()

    def query(self, q: AssetQuery) -> tuple[list[Asset], int]:
        conn = self._get_conn()
        try:
            where = "WHERE 1=1"
            params: list[Any] = []

            if q.owner_id:
                where += " AND owner_id = ?"
                params.append(q.owner_id)
            if q.type:
                where += " AND type = ?"
                params.append(q.type.value)
            if q.related_id:
                where += " AND related_id = ?"
                params.append(q.related_id)
            if q.visibility:
                where += " AND visibility = ?"
                params.append(q.visibility.value)
            if q.only_deleted:
                where += " AND deleted_at IS NOT NULL"
            elif not q.include_deleted:
                where += " AND deleted_at IS NULL"

            row_count = conn.execute(f"SELECT COUNT(*) AS cnt FROM assets {where}", params).fetchone()
            total = row_count["cnt"] if row_count else 0

            # sort_by is checked against a whitelist before it reaches SQL
            sort_by = q.sort_by if q.sort_by in SORTABLE_FIELDS else "created_at"
            order = "ASC" if q.sort_order == "asc" else "DESC"
            rows = conn.execute(
                f"SELECT * FROM assets {where} ORDER BY {sort_by} {order}, id {order} LIMIT ? OFFSET ?",
                [*params, q.limit, q.offset],
            ).fetchall()
            return [self._map_row(row) for row in rows], total
        except sqlite3.Error as e:
            raise RepoError(str(e)) from e
        finally:
            conn.close()

    def update(self, asset: Asset) -> Asset | None:
        conn = self._get_conn()
        try:
            cursor = conn.execute(
                """
                UPDATE assets SET
                    type = ?, related_id = ?, metadata = ?, visibility = ?, updated_at = ?
                WHERE id = ? AND deleted_at IS NULL
            """,
                (
                    asset.type.value,
                    asset.related_id,
                    asset.metadata.model_dump_json(exclude_none=True),
                    asset.visibility.value,
                    _dt(asset.updated_at),
                    str(asset.id),
                ),
            )
            conn.commit()
            if cursor.rowcount == 0:
                return None
            return asset
        except sqlite3.Error as e:
            logger.error("Asset update failed for %s: %s", asset.id, e)
            raise RepoError(str(e)) from e
        finally:
            conn.close()

    def set_deleted_at(
        self, asset_id: UUID, deleted_at: datetime | None, updated_at: datetime
    ) -> bool:
        conn = self._get_conn()
        try:
            if deleted_at is not None:
                sql = (
                    "UPDATE assets SET deleted_at = ?, updated_at = ? "
                    "WHERE id = ? AND deleted_at IS NULL"
                )
            else:
                sql = (
                    "UPDATE assets SET deleted_at = ?, updated_at = ? "
                    "WHERE id = ? AND deleted_at IS NOT NULL"
                )
            cursor = conn.execute(sql, (_dt(deleted_at), _dt(updated_at), str(asset_id)))
            conn.commit()
            return cursor.rowcount > 0
        except sqlite3.Error as e:
            raise RepoError(str(e)) from e
        finally:
            conn.close()

    def purge(self, asset_id: UUID) -> bool:
        conn = self._get_conn()
        try:
            cursor = conn.execute("DELETE FROM assets WHERE id = ?", (str(asset_id),))
            conn.commit()
            return cursor.rowcount > 0
        except sqlite3.Error as e:
            raise RepoError(str(e)) from e
        finally:
            conn.close()

    def stats(self, owner_id: str | None = None) -> AssetStats:
        conn = self._get_conn()
        try:
            where = "WHERE deleted_at IS NULL"
            params: list[Any] = []
            if owner_id:
                where += " AND owner_id = ?"
                params.append(owner_id)

            totals = conn.execute(
                "SELECT COUNT(*) AS cnt, "
                "COALESCE(SUM(json_extract(metadata, '$.size')), 0) AS bytes "
                f"FROM assets {where}",
                params,
            ).fetchone()
            by_type = {
                row["type"]: row["cnt"]
                for row in conn.execute(
                    f"SELECT type, COUNT(*) AS cnt FROM assets {where} GROUP BY type", params
                )
            }
            by_visibility = {
                row["visibility"]: row["cnt"]
                for row in conn.execute(
                    f"SELECT visibility, COUNT(*) AS cnt FROM assets {where} GROUP BY visibility",
                    params,
                )
            }
            return AssetStats(
                total=totals["cnt"],
                total_bytes=int(totals["bytes"]),
                by_type=by_type,
                by_visibility=by_visibility,
            )
        except sqlite3.Error as e:
            raise RepoError(str(e)) from e
        finally:
            conn.close()
