"""
Error taxonomy shared by every asset component.

Batched operations never raise these for a single item; they report the
item's ``code`` and ``message`` in a per-item result instead.
"""

from __future__ import annotations


class AssetError(Exception):
    """Base class for asset subsystem errors."""

    code = "asset_error"
    retryable = False

    def __init__(self, message: str, *, field: str | None = None) -> None:
        self.message = message
        self.field = field
        super().__init__(message)

    def to_dict(self) -> dict[str, object]:
        data: dict[str, object] = {"code": self.code, "message": self.message}
        if self.field:
            data["field"] = self.field
        if self.retryable:
            data["retryable"] = True
        return data


class ValidationError(AssetError):
    """Malformed input: bad enum, unsafe filename, wrong type or size."""

    code = "validation_error"


class NotFoundError(AssetError):
    """Unknown or soft-deleted asset id."""

    code = "not_found"

    def __init__(self, asset_id: object) -> None:
        self.asset_id = asset_id
        super().__init__(f"Asset {asset_id} not found", field="asset_id")


class AccessDeniedError(AssetError):
    """The access policy denied the requester."""

    code = "access_denied"

    def __init__(self, asset_id: object = None, message: str | None = None) -> None:
        self.asset_id = asset_id
        super().__init__(message or f"Access to asset {asset_id} denied", field="asset_id")


class BackendError(AssetError):
    """Storage backend or metadata store failure, including timeouts."""

    code = "backend_error"


class ConflictError(AssetError):
    """Storage key collision that disambiguation failed to avoid."""

    code = "conflict"
    retryable = True
