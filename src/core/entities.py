"""
Domain entities for the asset storage subsystem.

Asset is the only first-class entity. Its metadata bag is typed: a reserved
set of known fields plus an explicit ``extra`` map for everything else.

Invariants:
- id is assigned once at insert and never reused
- location is produced by the path resolver, never taken from a caller
- deleted_at is the only soft-delete marker
"""

from __future__ import annotations

from datetime import UTC, datetime
from enum import Enum
from typing import Any
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field, model_validator

__all__ = [
    "Asset",
    "AssetMetadata",
    "AssetType",
    "Visibility",
    "utc_now",
]


def utc_now() -> datetime:
    return datetime.now(UTC)


class AssetType(str, Enum):
    """Closed set of asset types."""

    CUSTOMER_PHOTO = "customer_photo"
    CATALOG_IMAGE = "catalog_image"
    PRODUCTION_IMAGE = "production_image"
    DESIGN_FILE = "design_file"
    ORDER_ATTACHMENT = "order_attachment"
    PROFILE_IMAGE = "profile_image"
    LOGO = "logo"
    THUMBNAIL = "thumbnail"
    VARIANT = "variant"


class Visibility(str, Enum):
    PUBLIC = "public"
    PRIVATE = "private"


class AssetMetadata(BaseModel):
    """
    Typed metadata for an asset.

    Unknown keys passed at construction are folded into ``extra`` rather
    than rejected, so callers can attach arbitrary context.
    """

    model_config = ConfigDict(extra="forbid")

    filename: str | None = None
    size: int | None = None
    content_type: str | None = None
    format: str | None = None
    width: int | None = None
    height: int | None = None
    caption: str | None = None
    alt_text: str | None = None
    stage: str | None = None
    variant: str | None = None
    processing_status: str | None = None
    uploaded_by_user_id: str | None = None
    upload_session_id: str | None = None
    extra: dict[str, Any] = Field(default_factory=dict)

    @model_validator(mode="before")
    @classmethod
    def _fold_unknown_keys(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        known = set(cls.model_fields)
        unknown = {k: v for k, v in data.items() if k not in known}
        if not unknown:
            return data
        folded = {k: v for k, v in data.items() if k in known}
        extra = dict(folded.get("extra") or {})
        extra.update(unknown)
        folded["extra"] = extra
        return folded

    def merged(self, patch: AssetMetadata | dict[str, Any]) -> AssetMetadata:
        """Shallow merge: set fields in ``patch`` win, ``extra`` maps are combined."""
        if isinstance(patch, dict):
            patch = AssetMetadata.model_validate(patch)
        changes = patch.model_dump(exclude_unset=True, exclude={"extra"})
        extra = {**self.extra, **patch.extra}
        return self.model_copy(update={**changes, "extra": extra})


class Asset(BaseModel):
    id: UUID = Field(default_factory=uuid4)
    owner_id: str = Field(min_length=1)
    type: AssetType
    related_id: str | None = None
    location: str
    metadata: AssetMetadata = Field(default_factory=AssetMetadata)
    visibility: Visibility = Visibility.PRIVATE
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)
    deleted_at: datetime | None = None

    @property
    def bucket(self) -> str:
        return self.location.split("/", 1)[0]

    @property
    def key(self) -> str:
        parts = self.location.split("/", 1)
        return parts[1] if len(parts) == 2 else ""

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None
