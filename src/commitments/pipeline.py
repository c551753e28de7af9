"""Capture pipeline: decode -> extract -> resolve dates -> emit.

Decoding is the only stage that can fail a run. Once text exists it is always
returned, whatever happens to extraction or date resolution.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from commitments.backend import GatewayBackend
from commitments.config import Config
from commitments.dates import DateWindow, format_due_date, resolve_due_date
from commitments.decoder import decode
from commitments.extractor import extract_commitments
from commitments.identity import IdentityContext
from commitments.models import (
    CandidateCommitment,
    DecodeErrorKind,
    DecodeFailure,
    MediaType,
    PipelineResult,
    PipelineStatus,
    RawDocument,
    ResolvedCommitment,
    SourceCategory,
)

logger = logging.getLogger(__name__)


def date_window(config: Config) -> DateWindow:
    return DateWindow(
        years_before=config.date_window_past_years,
        years_after=config.date_window_future_years,
        reject=config.reject_out_of_range_dates,
    )


def resolve_commitments(
    candidates: list[CandidateCommitment],
    reference: datetime,
    window: DateWindow | None = None,
) -> list[ResolvedCommitment]:
    """Turn extracted candidates into storable commitments with canonical dates."""
    resolved = []
    for candidate in candidates:
        due = resolve_due_date(candidate.due_date_raw, reference, window)
        resolved.append(
            ResolvedCommitment(
                title=candidate.title,
                description=candidate.description,
                due_date=format_due_date(due),
            )
        )
    return resolved


async def run_pipeline(
    data: bytes,
    media_type: str | MediaType,
    source: SourceCategory | str,
    identity: IdentityContext,
    reference: datetime | None = None,
    *,
    backend: GatewayBackend,
    config: Config,
) -> PipelineResult:
    """Run one capture end to end.

    Args:
        data: Document bytes, already within the caller's size limit
        media_type: Declared MIME type
        source: Where the document came from
        identity: Owner whose commitments are extracted
        reference: Instant relative due dates are resolved against (default: now, UTC)
        backend: Inference backend for OCR and extraction
        config: Pipeline configuration

    Returns:
        PipelineResult in state COMPLETED (text plus zero or more commitments)
        or DECODE_FAILED (no text, no commitments, error message).
    """
    source = SourceCategory(source)
    reference = reference or datetime.now(timezone.utc)
    label = media_type.value if isinstance(media_type, MediaType) else media_type

    decoded = await decode(data, media_type, backend=backend, config=config)
    if not decoded.ok:
        logger.info(f"Capture from {source.value} ({label}) failed: {decoded.failure.message}")
        return PipelineResult(
            status=PipelineStatus.DECODE_FAILED,
            source=source,
            error=decoded.failure,
            reference=reference,
        )

    candidates = await extract_commitments(backend, config, decoded.text, identity)
    commitments = resolve_commitments(candidates, reference, date_window(config))

    logger.info(
        f"Captured {len(commitments)} commitment(s) from {source.value} ({label}), "
        f"{len(decoded.text)} chars"
    )
    return PipelineResult(
        status=PipelineStatus.COMPLETED,
        source=source,
        text=decoded.text,
        commitments=commitments,
        reference=reference,
    )


async def run_text_pipeline(
    text: str,
    source: SourceCategory | str,
    identity: IdentityContext,
    reference: datetime | None = None,
    *,
    backend: GatewayBackend,
    config: Config,
) -> PipelineResult:
    """Run the pipeline on text submitted directly rather than as a file."""
    if not text or not text.strip():
        return PipelineResult(
            status=PipelineStatus.DECODE_FAILED,
            source=SourceCategory(source),
            error=DecodeFailure(
                kind=DecodeErrorKind.EMPTY_DOCUMENT,
                message="raw_text is required and must be a non-empty string",
            ),
            reference=reference or datetime.now(timezone.utc),
        )
    return await run_pipeline(
        text.strip().encode("utf-8"),
        MediaType.PLAIN_TEXT,
        source,
        identity,
        reference,
        backend=backend,
        config=config,
    )


async def capture_document(
    document: RawDocument,
    identity: IdentityContext,
    reference: datetime | None = None,
    *,
    backend: GatewayBackend,
    config: Config,
) -> PipelineResult:
    return await run_pipeline(
        document.data,
        document.media_type,
        document.source,
        identity,
        reference,
        backend=backend,
        config=config,
    )
