"""
Access link API routes.

Single, bulk, per-entity and forced-download URL issuance. Bulk endpoints
answer 200 with per-id results; only a malformed request fails as a whole.
"""

from fastapi import APIRouter, Depends

from src.api.deps import Requester, get_current_requester, get_url_issuer
from src.api.schemas import (
    AccessUrlResponse,
    BulkAccessResponse,
    BulkGenerateRequest,
    DownloadRequest,
    EntityGenerateRequest,
    GenerateAccessRequest,
)
from src.components.access_links import SignedUrlIssuer

router = APIRouter()


@router.post("/generate", response_model=AccessUrlResponse)
def generate_access(
    body: GenerateAccessRequest,
    requester: Requester = Depends(get_current_requester),
    issuer: SignedUrlIssuer = Depends(get_url_issuer),
) -> AccessUrlResponse:
    issued = issuer.issue_single(body.asset_id, requester.id, requester.role, body.expires_in)
    return AccessUrlResponse.from_issued(issued)


@router.post("/bulk-generate", response_model=BulkAccessResponse)
def bulk_generate_access(
    body: BulkGenerateRequest,
    requester: Requester = Depends(get_current_requester),
    issuer: SignedUrlIssuer = Depends(get_url_issuer),
) -> BulkAccessResponse:
    result = issuer.issue_bulk(body.asset_ids, requester.id, requester.role, body.expires_in)
    return BulkAccessResponse.from_result(result)


@router.post("/entity-generate", response_model=BulkAccessResponse)
def entity_generate_access(
    body: EntityGenerateRequest,
    requester: Requester = Depends(get_current_requester),
    issuer: SignedUrlIssuer = Depends(get_url_issuer),
) -> BulkAccessResponse:
    """URLs for every active asset attached to one business object."""
    result = issuer.issue_for_entity(
        body.related_id, requester.id, requester.role, body.expires_in, body.type
    )
    return BulkAccessResponse.from_result(result)


@router.post("/download", response_model=AccessUrlResponse)
def download_link(
    body: DownloadRequest,
    requester: Requester = Depends(get_current_requester),
    issuer: SignedUrlIssuer = Depends(get_url_issuer),
) -> AccessUrlResponse:
    issued = issuer.issue_download(
        body.asset_id, requester.id, requester.role, body.expires_in, body.filename
    )
    return AccessUrlResponse.from_issued(issued)
