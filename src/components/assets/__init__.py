"""
Assets component - asset metadata store and soft-delete lifecycle.
"""

from .component import (
    AssetStore,
    coerce_metadata,
    coerce_type,
    coerce_visibility,
    run_get,
    run_insert,
    run_purge,
    run_query,
    run_restore,
    run_soft_delete,
    run_stats,
    run_update,
    validate_query,
)
from .models import (
    DEFAULT_PAGE_SIZE,
    MAX_PAGE_SIZE,
    SORT_ORDERS,
    SORTABLE_FIELDS,
    AssetListOutput,
    AssetPatch,
    AssetQuery,
    AssetStats,
    InsertAssetInput,
    PurgeOutput,
    StateChangeOutput,
)
from .ports import AssetRepoPort

__all__ = [
    # Entry points
    "run_get",
    "run_insert",
    "run_purge",
    "run_query",
    "run_restore",
    "run_soft_delete",
    "run_stats",
    "run_update",
    # Helper functions
    "coerce_metadata",
    "coerce_type",
    "coerce_visibility",
    "validate_query",
    # Service class
    "AssetStore",
    # Input models
    "AssetPatch",
    "AssetQuery",
    "InsertAssetInput",
    # Output models
    "AssetListOutput",
    "AssetStats",
    "PurgeOutput",
    "StateChangeOutput",
    # Constants
    "DEFAULT_PAGE_SIZE",
    "MAX_PAGE_SIZE",
    "SORT_ORDERS",
    "SORTABLE_FIELDS",
    # Ports
    "AssetRepoPort",
]
