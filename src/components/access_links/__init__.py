"""
Access links component - signed and public URLs for stored assets.
"""

from .component import (
    SignedUrlIssuer,
    clamp_ttl,
    default_download_name,
    parse_asset_id,
    run_issue_bulk,
    run_issue_download,
    run_issue_for_entity,
    run_issue_single,
    url_for_asset,
)
from .models import (
    BulkIssueInput,
    BulkIssueResult,
    BulkItemResult,
    BulkSummary,
    DownloadInput,
    EntityIssueInput,
    IssuedUrl,
    IssueInput,
    SignedUrlConfig,
)

__all__ = [
    # Entry points
    "run_issue_bulk",
    "run_issue_download",
    "run_issue_for_entity",
    "run_issue_single",
    # Helper functions
    "clamp_ttl",
    "default_download_name",
    "parse_asset_id",
    "url_for_asset",
    # Service class
    "SignedUrlIssuer",
    # Configuration
    "SignedUrlConfig",
    # Input models
    "BulkIssueInput",
    "DownloadInput",
    "EntityIssueInput",
    "IssueInput",
    # Output models
    "BulkIssueResult",
    "BulkItemResult",
    "BulkSummary",
    "IssuedUrl",
]
