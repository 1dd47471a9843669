"""
Paths component - canonical, traversal-safe storage locations.
"""

from .component import (
    SEGMENT_RE,
    random_token,
    resolve_path,
    select_bucket,
    split_location,
    validate_filename,
    validate_segment,
)
from .models import BucketConfig, PathConfig, ResolvedPath, ResolvePathInput

__all__ = [
    # Entry points
    "resolve_path",
    # Helper functions
    "random_token",
    "select_bucket",
    "split_location",
    "validate_filename",
    "validate_segment",
    "SEGMENT_RE",
    # Models
    "BucketConfig",
    "PathConfig",
    "ResolvedPath",
    "ResolvePathInput",
]
