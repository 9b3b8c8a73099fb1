"""Run one budgeted terminology sync invocation end to end."""

from __future__ import annotations

import logging
from typing import Optional

from ctsync.cancellation import CancellationToken
from ctsync.config import Settings, settings
from ctsync.errors import CtSyncError, InvalidRequestError, StoreError
from ctsync.ingestion.extraction import RecordExtractor
from ctsync.ingestion.parser import iter_tag_events
from ctsync.ingestion.resume import ResumeFilter
from ctsync.ingestion.scheduler import WriteScheduler
from ctsync.ingestion.source import HttpTerminologySource, TerminologySource
from ctsync.ingestion.version import peek_version
from ctsync.models.terminology import ResumeToken, SyncResult, TerminologyType
from ctsync.storage.base import DocumentStore

logger = logging.getLogger(__name__)


def resolve_type(value: TerminologyType | str) -> TerminologyType:
    try:
        return TerminologyType(value)
    except ValueError as exc:
        raise InvalidRequestError(f"Invalid type: {value!r}") from exc


def run_sync(
    terminology_type: TerminologyType | str,
    store: DocumentStore,
    source: Optional[TerminologySource] = None,
    max_writes: Optional[int] = None,
    resume_token: Optional[ResumeToken] = None,
    config: Settings = settings,
) -> SyncResult:
    """Stream one distribution file into ``store``, stopping at ``max_writes``.

    ``max_writes`` is used as given; callers clamp it at the request boundary.
    Reaching the budget is a normal outcome: the result carries the position
    of the last written term so the next invocation can continue from there.
    Fetch, parse and store failures propagate; batches committed before the
    failure stay committed and the exception's ``resume_token`` points at the
    last of them.
    """
    terminology_type = resolve_type(terminology_type)
    budget = config.default_max_writes if max_writes is None else max_writes
    if source is None:
        source = HttpTerminologySource(config.source_url_for(terminology_type.value))
    if resume_token is not None and resume_token.is_empty:
        resume_token = None

    logger.info(
        "Starting %s sync from %s (max_writes=%s, resume=%s)",
        terminology_type.value,
        source.url,
        budget,
        resume_token.model_dump() if resume_token else None,
    )
    cancel_token = CancellationToken()
    resume_filter = ResumeFilter(resume_token)
    extractor = RecordExtractor()

    with source.open(cancel_token) as chunks:
        version, chunks = peek_version(chunks)
        scheduler = WriteScheduler(
            store,
            budget,
            terminology_type=terminology_type,
            source_url=source.url,
            version=version,
            cancel_token=cancel_token,
            config=config,
        )
        try:
            events = iter_tag_events(chunks, cancel_token)
            for codelist, term in extractor.iter_records(events):
                if not resume_filter.allow(term.codelist_oid, term.coded_value):
                    continue
                scheduler.add(codelist, term)
            scheduler.flush()
        except CtSyncError as exc:
            try:
                scheduler.flush()
            except StoreError as flush_exc:
                logger.error("Final flush after failure also failed: %s", flush_exc)
            exc.resume_token = scheduler.last_committed
            logger.error(
                "%s sync failed after %s writes: %s",
                terminology_type.value,
                scheduler.total_writes,
                exc,
            )
            raise

    reached_end = not cancel_token.is_cancelled()
    if resume_token is not None and not resume_filter.matched:
        logger.warning(
            "Resume position %s/%s was not found; nothing was written",
            resume_token.last_codelist_oid,
            resume_token.last_coded_value,
        )
    if extractor.dropped:
        logger.warning("Dropped %s malformed terms", extractor.dropped)

    result = SyncResult(
        terminology_type=terminology_type,
        source_url=source.url,
        version=version,
        writes=scheduler.total_writes,
        max_writes=budget,
        resume_token=scheduler.last_committed or resume_token,
        reached_end=reached_end,
        dropped_terms=extractor.dropped,
    )
    logger.info(
        "Finished %s sync: writes=%s commits=%s done=%s likely_done=%s",
        terminology_type.value,
        result.writes,
        scheduler.commits,
        result.done,
        result.likely_done,
    )
    return result
