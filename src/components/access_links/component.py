"""
Access links component - signed and public URLs for stored assets.

Invariants:
- I1: The asset row is read and the policy evaluated on every issue call
- I2: Deleted or unknown assets yield not_found; denials yield access_denied
- I3: Expiring URLs always carry a TTL inside the configured bounds
- I4: Public assets in the public bucket get a permanent URL, no expiry
- I5: Bulk calls report per id, in input order, and never fail as a whole
  for a single bad id
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from datetime import timedelta
from uuid import UUID

from src.components.assets import AssetQuery, MAX_PAGE_SIZE, coerce_type
from src.components.assets.ports import AssetRepoPort, StoragePort, TimePort
from src.components.paths import split_location, validate_filename
from src.core.backend import BackendGuard
from src.core.entities import Asset, Visibility
from src.core.errors import AccessDeniedError, AssetError, NotFoundError, ValidationError
from src.domain.policy import AccessPolicyEngine

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

logger = logging.getLogger(__name__)


# --- Helper Functions ---


def clamp_ttl(ttl_seconds: int | None, config: SignedUrlConfig) -> int:
    """Clamp a requested TTL into [min, max]; None means the default."""
    if ttl_seconds is None:
        ttl_seconds = config.default_ttl_seconds
    return max(config.min_ttl_seconds, min(int(ttl_seconds), config.max_ttl_seconds))


def parse_asset_id(value: UUID | str) -> UUID:
    if isinstance(value, UUID):
        return value
    try:
        return UUID(str(value))
    except ValueError as e:
        raise ValidationError(f"Invalid asset id: {value!r}", field="asset_id") from e


def default_download_name(asset: Asset) -> str:
    if asset.metadata.filename:
        return asset.metadata.filename
    return asset.key.rsplit("/", 1)[-1]


def _load_authorized(
    asset_id: UUID | str,
    requester_id: str | None,
    requester_role: str | None,
    *,
    repo: AssetRepoPort,
    policy: AccessPolicyEngine,
    guard: BackendGuard,
) -> Asset:
    parsed = parse_asset_id(asset_id)
    asset = guard.read("assets.get", repo.get_by_id, parsed)
    if asset is None:
        raise NotFoundError(parsed)
    if not policy.can_access(asset, requester_id, requester_role):
        raise AccessDeniedError(parsed)
    return asset


def _sign(
    asset: Asset,
    ttl_seconds: int | None,
    *,
    storage: StoragePort,
    clock: TimePort,
    config: SignedUrlConfig,
    guard: BackendGuard,
    download_filename: str | None = None,
) -> IssuedUrl:
    ttl = clamp_ttl(ttl_seconds, config)
    bucket, key = split_location(asset.location)
    expires_at = clock.now_utc() + timedelta(seconds=ttl)
    url = guard.read(
        "storage.signed_url",
        storage.signed_url,
        bucket,
        key,
        ttl,
        download_filename=download_filename,
    )
    return IssuedUrl(
        asset_id=asset.id,
        url=url,
        expires_at=expires_at,
        ttl_seconds=ttl,
        download_filename=download_filename,
    )


def url_for_asset(
    asset: Asset,
    ttl_seconds: int | None,
    *,
    storage: StoragePort,
    clock: TimePort,
    config: SignedUrlConfig,
    guard: BackendGuard,
) -> IssuedUrl:
    """
    Pick the URL form for an already-authorized asset.

    A public asset whose blob sits in the private bucket (visibility flipped
    after upload) still needs a signed URL.
    """
    if asset.visibility is Visibility.PUBLIC and asset.bucket == config.public_bucket:
        bucket, key = split_location(asset.location)
        url = guard.read("storage.public_url", storage.public_url, bucket, key)
        return IssuedUrl(asset_id=asset.id, url=url, expires_at=None, ttl_seconds=None)
    return _sign(asset, ttl_seconds, storage=storage, clock=clock, config=config, guard=guard)


def _summarize(results: list[BulkItemResult]) -> BulkIssueResult:
    successful = sum(1 for r in results if r.success)
    return BulkIssueResult(
        results=results,
        summary=BulkSummary(total=len(results), successful=successful, failed=len(results) - successful),
    )


def _item_ok(asset_id: object, issued: IssuedUrl) -> BulkItemResult:
    return BulkItemResult(asset_id=str(asset_id), url=issued.url, expires_at=issued.expires_at)


def _item_error(asset_id: object, error: AssetError) -> BulkItemResult:
    return BulkItemResult(asset_id=str(asset_id), error_code=error.code, error=error.message)


# --- Component Entry Points ---


def run_issue_single(
    inp: IssueInput,
    *,
    repo: AssetRepoPort,
    storage: StoragePort,
    policy: AccessPolicyEngine,
    clock: TimePort,
    config: SignedUrlConfig,
    guard: BackendGuard,
) -> IssuedUrl:
    """
    Issue a URL for one asset.

    Raises:
        ValidationError: Malformed asset id.
        NotFoundError: Unknown or soft-deleted asset.
        AccessDeniedError: The policy denied the requester.
        BackendError: Lookup or signing failed after one retry.
    """
    asset = _load_authorized(
        inp.asset_id, inp.requester_id, inp.requester_role, repo=repo, policy=policy, guard=guard
    )
    return url_for_asset(
        asset, inp.ttl_seconds, storage=storage, clock=clock, config=config, guard=guard
    )


def run_issue_download(
    inp: DownloadInput,
    *,
    repo: AssetRepoPort,
    storage: StoragePort,
    policy: AccessPolicyEngine,
    clock: TimePort,
    config: SignedUrlConfig,
    guard: BackendGuard,
) -> IssuedUrl:
    """
    Issue a signed URL that forces a download under the given filename.

    Always signed, public assets included, so the disposition can be set.
    """
    if inp.download_filename is not None:
        validate_filename(inp.download_filename, max_length=config.max_filename_length)
    asset = _load_authorized(
        inp.asset_id, inp.requester_id, inp.requester_role, repo=repo, policy=policy, guard=guard
    )
    filename = inp.download_filename or default_download_name(asset)
    return _sign(
        asset,
        inp.ttl_seconds,
        storage=storage,
        clock=clock,
        config=config,
        guard=guard,
        download_filename=filename,
    )


def run_issue_bulk(
    inp: BulkIssueInput,
    *,
    repo: AssetRepoPort,
    storage: StoragePort,
    policy: AccessPolicyEngine,
    clock: TimePort,
    config: SignedUrlConfig,
    guard: BackendGuard,
) -> BulkIssueResult:
    """
    Issue URLs for many assets concurrently.

    Raises:
        ValidationError: Empty id list or more ids than max_bulk_ids.
    """
    if not inp.asset_ids:
        raise ValidationError("asset_ids must not be empty", field="asset_ids")
    if len(inp.asset_ids) > config.max_bulk_ids:
        raise ValidationError(
            f"At most {config.max_bulk_ids} asset ids per request", field="asset_ids"
        )

    def issue_one(asset_id: UUID | str) -> BulkItemResult:
        try:
            issued = run_issue_single(
                IssueInput(
                    asset_id=asset_id,
                    requester_id=inp.requester_id,
                    requester_role=inp.requester_role,
                    ttl_seconds=inp.ttl_seconds,
                ),
                repo=repo,
                storage=storage,
                policy=policy,
                clock=clock,
                config=config,
                guard=guard,
            )
        except AssetError as e:
            return _item_error(asset_id, e)
        return _item_ok(asset_id, issued)

    workers = max(1, min(config.max_workers, len(inp.asset_ids)))
    with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="asset-links") as executor:
        # map() yields in submission order
        results = list(executor.map(issue_one, inp.asset_ids))

    out = _summarize(results)
    logger.info(
        "Bulk issue for %s: %d/%d succeeded",
        inp.requester_id,
        out.summary.successful,
        out.summary.total,
    )
    return out


def run_issue_for_entity(
    inp: EntityIssueInput,
    *,
    repo: AssetRepoPort,
    storage: StoragePort,
    policy: AccessPolicyEngine,
    clock: TimePort,
    config: SignedUrlConfig,
    guard: BackendGuard,
) -> BulkIssueResult:
    """
    Issue URLs for every active asset related to one business object.

    Assets the requester may not read are left out entirely; their ids and
    their count never reach the caller.
    """
    if not inp.related_id:
        raise ValidationError("related_id is required", field="related_id")
    asset_type = coerce_type(inp.asset_type) if inp.asset_type else None

    assets: list[Asset] = []
    offset = 0
    while True:
        page, total = guard.read(
            "assets.query",
            repo.query,
            AssetQuery(
                related_id=inp.related_id,
                type=asset_type,
                limit=MAX_PAGE_SIZE,
                offset=offset,
                sort_by="created_at",
                sort_order="asc",
            ),
        )
        assets.extend(page)
        offset += len(page)
        if not page or offset >= total:
            break

    readable = [a for a in assets if policy.can_access(a, inp.requester_id, inp.requester_role)]
    if len(readable) < len(assets):
        logger.info(
            "Withheld %d asset(s) on %s from requester %s",
            len(assets) - len(readable),
            inp.related_id,
            inp.requester_id,
        )

    results: list[BulkItemResult] = []
    for asset in readable:
        try:
            issued = url_for_asset(
                asset, inp.ttl_seconds, storage=storage, clock=clock, config=config, guard=guard
            )
        except AssetError as e:
            results.append(_item_error(asset.id, e))
            continue
        results.append(_item_ok(asset.id, issued))

    return _summarize(results)


# --- Service Class ---


class SignedUrlIssuer:
    """Binds the issue entry points to their ports and configuration."""

    def __init__(
        self,
        repo: AssetRepoPort,
        storage: StoragePort,
        policy: AccessPolicyEngine,
        clock: TimePort,
        config: SignedUrlConfig,
        *,
        guard: BackendGuard | None = None,
    ) -> None:
        self._deps = {
            "repo": repo,
            "storage": storage,
            "policy": policy,
            "clock": clock,
            "config": config,
            "guard": guard or BackendGuard(),
        }
        self.config = config

    def issue_single(
        self,
        asset_id: UUID | str,
        requester_id: str | None,
        requester_role: str | None = None,
        ttl_seconds: int | None = None,
    ) -> IssuedUrl:
        return run_issue_single(
            IssueInput(asset_id, requester_id, requester_role, ttl_seconds), **self._deps
        )

    def issue_download(
        self,
        asset_id: UUID | str,
        requester_id: str | None,
        requester_role: str | None = None,
        ttl_seconds: int | None = None,
        download_filename: str | None = None,
    ) -> IssuedUrl:
        return run_issue_download(
            DownloadInput(asset_id, requester_id, requester_role, ttl_seconds, download_filename),
            **self._deps,
        )

    def issue_bulk(
        self,
        asset_ids: list[UUID | str],
        requester_id: str | None,
        requester_role: str | None = None,
        ttl_seconds: int | None = None,
    ) -> BulkIssueResult:
        return run_issue_bulk(
            BulkIssueInput(list(asset_ids), requester_id, requester_role, ttl_seconds),
            **self._deps,
        )

    def issue_for_entity(
        self,
        related_id: str,
        requester_id: str | None,
        requester_role: str | None = None,
        ttl_seconds: int | None = None,
        asset_type: str | None = None,
    ) -> BulkIssueResult:
        return run_issue_for_entity(
            EntityIssueInput(related_id, requester_id, requester_role, ttl_seconds, asset_type),
            **self._deps,
        )
