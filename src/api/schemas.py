from datetime import datetime
from typing import Any, Literal
from uuid import UUID

from pydantic import BaseModel, Field

from src.components.access_links import BulkIssueResult, IssuedUrl
from src.components.assets import AssetListOutput, AssetStats, StateChangeOutput
from src.components.uploads import UploadOutput
from src.core.entities import Asset, AssetType, Visibility

SortField = Literal["created_at", "updated_at", "type"]
SortOrder = Literal["asc", "desc"]


# --- Assets ---
class AssetResponse(BaseModel):
    id: UUID
    owner_id: str
    type: AssetType
    related_id: str | None = None
    location: str
    metadata: dict[str, Any]
    visibility: Visibility
    created_at: datetime
    updated_at: datetime
    deleted_at: datetime | None = None

    @classmethod
    def from_asset(cls, asset: Asset) -> "AssetResponse":
        return cls(
            id=asset.id,
            owner_id=asset.owner_id,
            type=asset.type,
            related_id=asset.related_id,
            location=asset.location,
            metadata=asset.metadata.model_dump(exclude_none=True),
            visibility=asset.visibility,
            created_at=asset.created_at,
            updated_at=asset.updated_at,
            deleted_at=asset.deleted_at,
        )


class AssetListResponse(BaseModel):
    items: list[AssetResponse]
    total: int
    limit: int
    offset: int

    @classmethod
    def from_output(cls, out: AssetListOutput) -> "AssetListResponse":
        return cls(
            items=[AssetResponse.from_asset(a) for a in out.items],
            total=out.total,
            limit=out.limit,
            offset=out.offset,
        )


class StateChangeResponse(BaseModel):
    asset: AssetResponse
    changed: bool

    @classmethod
    def from_output(cls, out: StateChangeOutput) -> "StateChangeResponse":
        return cls(asset=AssetResponse.from_asset(out.asset), changed=out.changed)


class PurgeResponse(BaseModel):
    asset_id: UUID
    blob_deleted: bool


class StatsResponse(BaseModel):
    total: int
    total_bytes: int
    by_type: dict[str, int]
    by_visibility: dict[str, int]

    @classmethod
    def from_stats(cls, stats: AssetStats) -> "StatsResponse":
        return cls(
            total=stats.total,
            total_bytes=stats.total_bytes,
            by_type=stats.by_type,
            by_visibility=stats.by_visibility,
        )


# --- Batches ---
class BatchSummary(BaseModel):
    total: int
    successful: int
    failed: int


class UploadItemResponse(BaseModel):
    index: int
    filename: str
    success: bool
    asset: AssetResponse | None = None
    error_code: str | None = None
    error: str | None = None


class UploadResponse(BaseModel):
    results: list[UploadItemResponse]
    summary: BatchSummary

    @classmethod
    def from_output(cls, out: UploadOutput) -> "UploadResponse":
        results = [
            UploadItemResponse(
                index=r.index,
                filename=r.filename,
                success=r.success,
                asset=AssetResponse.from_asset(r.asset) if r.asset else None,
                error_code=r.error_code,
                error=r.error,
            )
            for r in out.results
        ]
        successful = sum(1 for r in results if r.success)
        return cls(
            results=results,
            summary=BatchSummary(
                total=len(results), successful=successful, failed=len(results) - successful
            ),
        )


# --- Access links ---
class GenerateAccessRequest(BaseModel):
    asset_id: str
    expires_in: int | None = Field(default=None, description="Requested TTL in seconds")


class BulkGenerateRequest(BaseModel):
    asset_ids: list[str]
    expires_in: int | None = None


class EntityGenerateRequest(BaseModel):
    related_id: str
    type: str | None = None
    expires_in: int | None = None


class DownloadRequest(BaseModel):
    asset_id: str
    filename: str | None = None
    expires_in: int | None = None


class AccessUrlResponse(BaseModel):
    asset_id: UUID
    url: str
    expires_at: datetime | None = None
    expires_in: int | None = None
    download_filename: str | None = None

    @classmethod
    def from_issued(cls, issued: IssuedUrl) -> "AccessUrlResponse":
        return cls(
            asset_id=issued.asset_id,
            url=issued.url,
            expires_at=issued.expires_at,
            expires_in=issued.ttl_seconds,
            download_filename=issued.download_filename,
        )


class BulkAccessItem(BaseModel):
    asset_id: str
    success: bool
    url: str | None = None
    expires_at: datetime | None = None
    error_code: str | None = None
    error: str | None = None


class BulkAccessResponse(BaseModel):
    results: list[BulkAccessItem]
    summary: BatchSummary

    @classmethod
    def from_result(cls, result: BulkIssueResult) -> "BulkAccessResponse":
        return cls(
            results=[
                BulkAccessItem(
                    asset_id=r.asset_id,
                    success=r.success,
                    url=r.url,
                    expires_at=r.expires_at,
                    error_code=r.error_code,
                    error=r.error,
                )
                for r in result.results
            ],
            summary=BatchSummary(
                total=result.summary.total,
                successful=result.summary.successful,
                failed=result.summary.failed,
            ),
        )
