"""
Uploads component input/output models.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from src.core.entities import Asset, AssetType, Visibility


@dataclass(frozen=True)
class UploadLimits:
    """Type whitelist and size/count limits for one upload batch."""

    allowed_mime_prefixes: tuple[str, ...]
    allowed_mime_types: tuple[str, ...]
    max_file_bytes: int
    max_files: int
    max_filename_length: int = 255


@dataclass(frozen=True)
class FileCandidate:
    """One file of an incoming batch."""

    filename: str
    content_type: str
    data: bytes = b""
    size: int | None = None

    @property
    def size_bytes(self) -> int:
        return self.size if self.size is not None else len(self.data)


@dataclass(frozen=True)
class FileDecision:
    index: int
    filename: str
    accepted: bool
    code: str | None = None
    reason: str | None = None


@dataclass(frozen=True)
class ValidationReport:
    """Per-file decisions. ``batch_error`` is set when the whole batch was refused."""

    decisions: list[FileDecision]
    batch_error: str | None = None

    @property
    def accepted(self) -> list[FileDecision]:
        return [d for d in self.decisions if d.accepted]

    @property
    def rejected(self) -> list[FileDecision]:
        return [d for d in self.decisions if not d.accepted]


@dataclass(frozen=True)
class UploadInput:
    """Input for storing a batch of files against one business entity."""

    owner_id: str
    entity_type: str
    entity_id: str
    asset_type: AssetType | str
    files: list[FileCandidate]
    visibility: Visibility | str = Visibility.PRIVATE
    subfolder: str | None = None
    related_id: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)
    upload_session_id: str | None = None


@dataclass(frozen=True)
class UploadFileResult:
    index: int
    filename: str
    asset: Asset | None = None
    error_code: str | None = None
    error: str | None = None

    @property
    def success(self) -> bool:
        return self.asset is not None


@dataclass(frozen=True)
class UploadOutput:
    results: list[UploadFileResult]
    batch_error: str | None = None

    @property
    def created(self) -> list[Asset]:
        return [r.asset for r in self.results if r.asset is not None]

    @property
    def failed(self) -> list[UploadFileResult]:
        return [r for r in self.results if r.asset is None]

    @property
    def success(self) -> bool:
        return self.batch_error is None and not self.failed
