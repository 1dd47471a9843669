"""
Assets API routes.

Upload, listing, metadata updates and the soft-delete lifecycle. Admin-only
purge and stats live here too.
"""

from uuid import UUID

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile

from src.api.deps import (
    Requester,
    get_asset_repo,
    get_asset_store,
    get_backend_guard,
    get_clock,
    get_current_requester,
    get_policy,
    get_rules,
    get_storage_backend,
)
from src.api.schemas import (
    AssetListResponse,
    AssetResponse,
    PurgeResponse,
    SortField,
    SortOrder,
    StateChangeResponse,
    StatsResponse,
    UploadResponse,
)
from src.components.assets import (
    DEFAULT_PAGE_SIZE,
    AssetPatch,
    AssetQuery,
    AssetStore,
    coerce_type,
    coerce_visibility,
)
from src.components.assets.ports import AssetRepoPort
from src.components.uploads import FileCandidate, UploadInput, run_upload
from src.core.backend import BackendGuard
from src.core.entities import Asset
from src.core.errors import AccessDeniedError, ValidationError
from src.core.ports.storage import StoragePort
from src.core.ports.time import TimePort
from src.domain.policy import AccessPolicyEngine
from src.rules.models import Rules

router = APIRouter()


def _require_manage(asset: Asset, requester: Requester, policy: AccessPolicyEngine) -> None:
    if not policy.can_manage(asset, requester.id, requester.role):
        raise AccessDeniedError(asset.id)


def _require_admin(requester: Requester, policy: AccessPolicyEngine) -> None:
    if not policy.is_admin(requester.role):
        raise AccessDeniedError(message="Admin role required")


@router.post("", response_model=UploadResponse)
def upload_assets(
    files: list[UploadFile] = File(...),
    entity_type: str = Form(...),
    entity_id: str = Form(...),
    type: str = Form(...),
    visibility: str = Form("private"),
    subfolder: str | None = Form(None),
    related_id: str | None = Form(None),
    upload_session_id: str | None = Form(None),
    requester: Requester = Depends(get_current_requester),
    repo: AssetRepoPort = Depends(get_asset_repo),
    storage: StoragePort = Depends(get_storage_backend),
    rules: Rules = Depends(get_rules),
    clock: TimePort = Depends(get_clock),
    guard: BackendGuard = Depends(get_backend_guard),
) -> UploadResponse:
    """Upload a batch of files. Each file succeeds or fails on its own."""
    candidates = [
        FileCandidate(
            filename=f.filename or "",
            content_type=f.content_type or "",
            data=f.file.read(),
        )
        for f in files
    ]
    inp = UploadInput(
        owner_id=requester.id,
        entity_type=entity_type,
        entity_id=entity_id,
        asset_type=type,
        files=candidates,
        visibility=visibility,
        subfolder=subfolder or None,
        related_id=related_id or None,
        upload_session_id=upload_session_id,
    )
    result = run_upload(inp, repo=repo, storage=storage, rules=rules, clock=clock, guard=guard)
    if result.batch_error:
        raise ValidationError(result.batch_error, field="files")
    return UploadResponse.from_output(result)


@router.get("", response_model=AssetListResponse)
def list_assets(
    owner_id: str | None = None,
    type: str | None = None,
    related_id: str | None = None,
    visibility: str | None = None,
    include_deleted: bool = False,
    only_deleted: bool = False,
    limit: int = Query(DEFAULT_PAGE_SIZE),
    offset: int = Query(0),
    sort_by: SortField = "created_at",
    sort_order: SortOrder = "desc",
    requester: Requester = Depends(get_current_requester),
    store: AssetStore = Depends(get_asset_store),
    policy: AccessPolicyEngine = Depends(get_policy),
) -> AssetListResponse:
    """
    List assets.

    Non-admin requesters only ever see their own assets.
    """
    if not policy.is_admin(requester.role):
        if owner_id and owner_id != requester.id:
            raise AccessDeniedError(message="Cannot list assets of another owner")
        owner_id = requester.id

    q = AssetQuery(
        owner_id=owner_id,
        type=coerce_type(type) if type else None,
        related_id=related_id,
        visibility=coerce_visibility(visibility) if visibility else None,
        include_deleted=include_deleted,
        only_deleted=only_deleted,
        limit=limit,
        offset=offset,
        sort_by=sort_by,
        sort_order=sort_order,
    )
    return AssetListResponse.from_output(store.query(q))


@router.get("/stats", response_model=StatsResponse)
def asset_stats(
    owner_id: str | None = None,
    requester: Requester = Depends(get_current_requester),
    store: AssetStore = Depends(get_asset_store),
    policy: AccessPolicyEngine = Depends(get_policy),
) -> StatsResponse:
    """Counts by type and visibility plus total bytes (admin)."""
    _require_admin(requester, policy)
    return StatsResponse.from_stats(store.stats(owner_id))


@router.get("/{asset_id}", response_model=AssetResponse)
def get_asset(
    asset_id: UUID,
    requester: Requester = Depends(get_current_requester),
    store: AssetStore = Depends(get_asset_store),
    policy: AccessPolicyEngine = Depends(get_policy),
) -> AssetResponse:
    asset = store.get(asset_id)
    if not policy.can_access(asset, requester.id, requester.role):
        raise AccessDeniedError(asset_id)
    return AssetResponse.from_asset(asset)


@router.patch("/{asset_id}", response_model=AssetResponse)
def update_asset(
    asset_id: UUID,
    patch: AssetPatch,
    requester: Requester = Depends(get_current_requester),
    store: AssetStore = Depends(get_asset_store),
    policy: AccessPolicyEngine = Depends(get_policy),
) -> AssetResponse:
    """Partial update; metadata is merged into the existing bag."""
    _require_manage(store.get(asset_id), requester, policy)
    return AssetResponse.from_asset(store.update(asset_id, patch))


@router.delete("/{asset_id}", response_model=StateChangeResponse)
def delete_asset(
    asset_id: UUID,
    requester: Requester = Depends(get_current_requester),
    store: AssetStore = Depends(get_asset_store),
    policy: AccessPolicyEngine = Depends(get_policy),
) -> StateChangeResponse:
    """Soft delete. Repeating it is a no-op reported with changed=false."""
    _require_manage(store.get(asset_id, include_deleted=True), requester, policy)
    return StateChangeResponse.from_output(store.soft_delete(asset_id))


@router.post("/{asset_id}/restore", response_model=StateChangeResponse)
def restore_asset(
    asset_id: UUID,
    requester: Requester = Depends(get_current_requester),
    store: AssetStore = Depends(get_asset_store),
    policy: AccessPolicyEngine = Depends(get_policy),
) -> StateChangeResponse:
    _require_manage(store.get(asset_id, include_deleted=True), requester, policy)
    return StateChangeResponse.from_output(store.restore(asset_id))


@router.delete("/{asset_id}/purge", response_model=PurgeResponse)
def purge_asset(
    asset_id: UUID,
    requester: Requester = Depends(get_current_requester),
    store: AssetStore = Depends(get_asset_store),
    policy: AccessPolicyEngine = Depends(get_policy),
) -> PurgeResponse:
    """Hard delete of row and blob (admin)."""
    _require_admin(requester, policy)
    out = store.purge(asset_id)
    return PurgeResponse(asset_id=out.asset_id, blob_deleted=out.blob_deleted)
