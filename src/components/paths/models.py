"""
Paths component models.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class BucketConfig:
    """Public and private bucket names. Chosen once, at creation time."""

    public: str
    private: str


@dataclass(frozen=True)
class PathConfig:
    """Which entity folders exist and how long a filename may be."""

    entity_types: tuple[str, ...]
    max_filename_length: int = 255


@dataclass(frozen=True)
class ResolvePathInput:
    """Input for resolving a storage location."""

    entity_type: str
    entity_id: str
    filename: str
    visibility: str
    subfolder: str | None = None


@dataclass(frozen=True)
class ResolvedPath:
    """Canonical storage location for a new blob."""

    bucket: str
    key: str
    filename: str  # disambiguated filename, last key segment
    original_filename: str

    @property
    def location(self) -> str:
        return f"{self.bucket}/{self.key}"
