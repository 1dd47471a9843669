"""
Access links component input/output models.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from uuid import UUID

from src.rules.models import Rules


@dataclass(frozen=True)
class SignedUrlConfig:
    public_bucket: str
    min_ttl_seconds: int = 60
    max_ttl_seconds: int = 86400
    default_ttl_seconds: int = 3600
    max_bulk_ids: int = 50
    max_workers: int = 8
    max_filename_length: int = 255

    @classmethod
    def from_rules(cls, rules: Rules) -> SignedUrlConfig:
        s = rules.signed_urls
        return cls(
            public_bucket=rules.buckets.public,
            min_ttl_seconds=s.min_ttl_seconds,
            max_ttl_seconds=s.max_ttl_seconds,
            default_ttl_seconds=s.default_ttl_seconds,
            max_bulk_ids=s.max_bulk_ids,
            max_workers=s.max_workers,
            max_filename_length=rules.paths.max_filename_length,
        )


# --- Input Models ---


@dataclass(frozen=True)
class IssueInput:
    asset_id: UUID | str
    requester_id: str | None
    requester_role: str | None = None
    ttl_seconds: int | None = None


@dataclass(frozen=True)
class DownloadInput:
    asset_id: UUID | str
    requester_id: str | None
    requester_role: str | None = None
    ttl_seconds: int | None = None
    download_filename: str | None = None


@dataclass(frozen=True)
class BulkIssueInput:
    asset_ids: list[UUID | str]
    requester_id: str | None
    requester_role: str | None = None
    ttl_seconds: int | None = None


@dataclass(frozen=True)
class EntityIssueInput:
    """Issue URLs for every active asset attached to one business object."""

    related_id: str
    requester_id: str | None
    requester_role: str | None = None
    ttl_seconds: int | None = None
    asset_type: str | None = None


# --- Output Models ---


@dataclass(frozen=True)
class IssuedUrl:
    """A URL for one asset. ``expires_at`` is None for permanent public URLs."""

    asset_id: UUID
    url: str
    expires_at: datetime | None
    ttl_seconds: int | None
    download_filename: str | None = None

    @property
    def signed(self) -> bool:
        return self.expires_at is not None


@dataclass(frozen=True)
class BulkItemResult:
    asset_id: str
    url: str | None = None
    expires_at: datetime | None = None
    error_code: str | None = None
    error: str | None = None

    @property
    def success(self) -> bool:
        return self.url is not None


@dataclass(frozen=True)
class BulkSummary:
    total: int
    successful: int
    failed: int


@dataclass(frozen=True)
class BulkIssueResult:
    results: list[BulkItemResult] = field(default_factory=list)
    summary: BulkSummary = field(default_factory=lambda: BulkSummary(0, 0, 0))
