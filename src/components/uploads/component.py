"""
Uploads component - batch validation and storage of incoming files.

Invariants:
- I1: Each file is judged on its own; one bad file never sinks the others
- I2: A batch over the file-count limit is refused as a whole
- I3: Rejected files are never written to storage
- I4: Blobs are written before their rows; a failed row insert leaves a
  logged orphan blob, never a row without a blob
"""

from __future__ import annotations

import logging

from src.components.assets import (
    InsertAssetInput,
    coerce_metadata,
    coerce_type,
    coerce_visibility,
    run_insert,
)
from src.components.assets.ports import AssetRepoPort, StoragePort, TimePort
from src.components.paths import (
    BucketConfig,
    PathConfig,
    ResolvePathInput,
    resolve_path,
    validate_filename,
    validate_segment,
)
from src.core.backend import BackendGuard
from src.core.errors import AssetError, ValidationError
from src.rules.models import Rules, UploadsRules

from .models import (
    FileCandidate,
    FileDecision,
    UploadFileResult,
    UploadInput,
    UploadLimits,
    UploadOutput,
    ValidationReport,
)

logger = logging.getLogger(__name__)


def limits_from_rules(uploads: UploadsRules, *, max_filename_length: int = 255) -> UploadLimits:
    return UploadLimits(
        allowed_mime_prefixes=tuple(uploads.allowed_mime_prefixes),
        allowed_mime_types=tuple(uploads.allowed_mime_types),
        max_file_bytes=uploads.max_file_bytes,
        max_files=uploads.max_files,
        max_filename_length=max_filename_length,
    )


def normalize_content_type(content_type: str | None) -> str:
    """Lower-case media type without parameters ("Image/PNG; q=1" -> "image/png")."""
    if not content_type:
        return ""
    return content_type.split(";", 1)[0].strip().lower()


def is_allowed_type(content_type: str, limits: UploadLimits) -> bool:
    media_type = normalize_content_type(content_type)
    if not media_type:
        return False
    if media_type in limits.allowed_mime_types:
        return True
    return any(media_type.startswith(prefix) for prefix in limits.allowed_mime_prefixes)


def check_file(index: int, candidate: FileCandidate, limits: UploadLimits) -> FileDecision:
    """Judge one file. The first failing check supplies the reason."""

    def reject(code: str, reason: str) -> FileDecision:
        return FileDecision(
            index=index, filename=candidate.filename, accepted=False, code=code, reason=reason
        )

    try:
        validate_filename(candidate.filename, max_length=limits.max_filename_length)
    except ValidationError as e:
        return reject("invalid_filename", e.message)

    if not is_allowed_type(candidate.content_type, limits):
        return reject(
            "unsupported_type",
            f"File type {candidate.content_type or 'unknown'!r} is not allowed",
        )

    size = candidate.size_bytes
    if size <= 0:
        return reject("empty_file", "File is empty")
    if size > limits.max_file_bytes:
        return reject(
            "file_too_large",
            f"File size {size} bytes exceeds maximum of {limits.max_file_bytes} bytes",
        )

    return FileDecision(index=index, filename=candidate.filename, accepted=True)


# --- Component Entry Points ---


def run_validate(files: list[FileCandidate], limits: UploadLimits) -> ValidationReport:
    """
    Validate a batch of files.

    Pure: no storage or repository access.
    """
    if not files:
        return ValidationReport(decisions=[], batch_error="No files provided")

    if len(files) > limits.max_files:
        reason = f"Too many files: {len(files)} submitted, maximum is {limits.max_files}"
        return ValidationReport(
            decisions=[
                FileDecision(
                    index=i, filename=f.filename, accepted=False, code="too_many_files", reason=reason
                )
                for i, f in enumerate(files)
            ],
            batch_error=reason,
        )

    return ValidationReport(decisions=[check_file(i, f, limits) for i, f in enumerate(files)])


def run_upload(
    inp: UploadInput,
    *,
    repo: AssetRepoPort,
    storage: StoragePort,
    rules: Rules,
    clock: TimePort,
    guard: BackendGuard | None = None,
) -> UploadOutput:
    """
    Validate, store and record a batch of files.

    Entity, type and visibility errors apply to the whole request and are
    raised. Per-file problems are reported in the matching result.

    Raises:
        ValidationError: The request itself is malformed, including caller
            metadata that does not fit the typed metadata fields.
    """
    guard = guard or BackendGuard()
    asset_type = coerce_type(inp.asset_type)
    visibility = coerce_visibility(inp.visibility)
    coerce_metadata(inp.metadata)
    validate_segment(inp.entity_type, "entity_type")
    if inp.entity_type not in rules.paths.entity_types:
        raise ValidationError(f"Unsupported entity type: {inp.entity_type!r}", field="entity_type")
    validate_segment(inp.entity_id, "entity_id")
    if inp.subfolder is not None:
        validate_segment(inp.subfolder, "subfolder")

    limits = limits_from_rules(rules.uploads, max_filename_length=rules.paths.max_filename_length)
    report = run_validate(inp.files, limits)
    if report.batch_error:
        logger.warning("Rejected upload batch from %s: %s", inp.owner_id, report.batch_error)
        return UploadOutput(
            results=[
                UploadFileResult(
                    index=d.index, filename=d.filename, error_code=d.code, error=d.reason
                )
                for d in report.decisions
            ],
            batch_error=report.batch_error,
        )

    buckets = BucketConfig(public=rules.buckets.public, private=rules.buckets.private)
    path_config = PathConfig(
        entity_types=tuple(rules.paths.entity_types),
        max_filename_length=rules.paths.max_filename_length,
    )

    results: list[UploadFileResult] = []
    for decision in report.decisions:
        if not decision.accepted:
            results.append(
                UploadFileResult(
                    index=decision.index,
                    filename=decision.filename,
                    error_code=decision.code,
                    error=decision.reason,
                )
            )
            continue
        candidate = inp.files[decision.index]
        results.append(
            _store_one(
                decision.index,
                candidate,
                inp,
                asset_type=asset_type.value,
                visibility=visibility.value,
                repo=repo,
                storage=storage,
                buckets=buckets,
                path_config=path_config,
                clock=clock,
                guard=guard,
            )
        )

    stored = sum(1 for r in results if r.success)
    logger.info(
        "Upload batch for %s/%s: %d stored, %d failed",
        inp.entity_type,
        inp.entity_id,
        stored,
        len(results) - stored,
    )
    return UploadOutput(results=results)


def _store_one(
    index: int,
    candidate: FileCandidate,
    inp: UploadInput,
    *,
    asset_type: str,
    visibility: str,
    repo: AssetRepoPort,
    storage: StoragePort,
    buckets: BucketConfig,
    path_config: PathConfig,
    clock: TimePort,
    guard: BackendGuard,
) -> UploadFileResult:
    try:
        resolved = resolve_path(
            ResolvePathInput(
                entity_type=inp.entity_type,
                entity_id=inp.entity_id,
                filename=candidate.filename,
                visibility=visibility,
                subfolder=inp.subfolder,
            ),
            buckets=buckets,
            config=path_config,
            now=clock.now_utc(),
        )
        content_type = normalize_content_type(candidate.content_type)
        stored = guard.call(
            "storage.put", storage.put, resolved.bucket, resolved.key, candidate.data, content_type
        )
    except AssetError as e:
        logger.warning("Upload of %r failed before storage: %s", candidate.filename, e.message)
        return UploadFileResult(index=index, filename=candidate.filename, error_code=e.code, error=e.message)

    metadata = {
        **inp.metadata,
        "filename": resolved.original_filename,
        "size": stored.size_bytes,
        "content_type": content_type,
        "uploaded_by_user_id": inp.owner_id,
    }
    if inp.upload_session_id:
        metadata["upload_session_id"] = inp.upload_session_id

    try:
        asset = run_insert(
            InsertAssetInput(
                owner_id=inp.owner_id,
                type=asset_type,
                location=resolved.location,
                metadata=metadata,
                visibility=visibility,
                related_id=inp.related_id,
            ),
            repo=repo,
            clock=clock,
            guard=guard,
        )
    except AssetError as e:
        logger.warning("Orphaned blob %s: row insert failed: %s", resolved.location, e.message)
        return UploadFileResult(index=index, filename=candidate.filename, error_code=e.code, error=e.message)

    return UploadFileResult(index=index, filename=candidate.filename, asset=asset)
