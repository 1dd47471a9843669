"""
Uploads component - batch validation and storage of incoming files.
"""

from .component import (
    check_file,
    is_allowed_type,
    limits_from_rules,
    normalize_content_type,
    run_upload,
    run_validate,
)
from .models import (
    FileCandidate,
    FileDecision,
    UploadFileResult,
    UploadInput,
    UploadLimits,
    UploadOutput,
    ValidationReport,
)

__all__ = [
    # Entry points
    "run_upload",
    "run_validate",
    # Helper functions
    "check_file",
    "is_allowed_type",
    "limits_from_rules",
    "normalize_content_type",
    # Input models
    "FileCandidate",
    "UploadInput",
    "UploadLimits",
    # Output models
    "FileDecision",
    "UploadFileResult",
    "UploadOutput",
    "ValidationReport",
]
