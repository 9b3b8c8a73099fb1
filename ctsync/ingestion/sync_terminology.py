"""Run terminology sync invocations back to back until the file is exhausted."""

from __future__ import annotations

import argparse
import logging
from pathlib import Path
from typing import List, Optional, Tuple

from ctsync.config import settings
from ctsync.errors import CtSyncError
from ctsync.ingestion.pipeline import run_sync
from ctsync.ingestion.scheduler import clamp_max_writes
from ctsync.ingestion.source import FileTerminologySource, TerminologySource
from ctsync.models.terminology import ResumeToken, SyncResult, TerminologyType
from ctsync.storage.base import DocumentStore
from ctsync.storage.firestore_store import FirestoreStore
from ctsync.storage.memory_store import MemoryStore

logger = logging.getLogger(__name__)


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--type", required=True, choices=[t.value for t in TerminologyType])
    parser.add_argument("--max-writes", type=int, default=None)
    parser.add_argument("--file", type=Path, default=None, help="Read a local ODM file instead of downloading.")
    parser.add_argument("--resume-codelist", default=None)
    parser.add_argument("--resume-value", default=None)
    parser.add_argument("--once", action="store_true", help="Stop after a single invocation.")
    parser.add_argument("--dry-run", action="store_true", help="Write to an in-memory store.")
    args = parser.parse_args(argv)
    if args.resume_value is not None and not args.resume_codelist:
        parser.error("--resume-value requires --resume-codelist")
    return args


def sync_until_done(
    terminology_type: TerminologyType,
    store: DocumentStore,
    max_writes: int,
    resume_token: Optional[ResumeToken] = None,
    source: Optional[TerminologySource] = None,
    once: bool = False,
) -> Tuple[int, List[SyncResult]]:
    """Chain invocations, feeding each resume token into the next."""
    results: List[SyncResult] = []
    total = 0
    while True:
        result = run_sync(
            terminology_type,
            store,
            source=source,
            max_writes=max_writes,
            resume_token=resume_token,
        )
        results.append(result)
        total += result.writes
        logger.info(
            "Invocation %s: writes=%s total=%s resume=%s",
            len(results),
            result.writes,
            total,
            result.resume_token.model_dump(by_alias=True) if result.resume_token else None,
        )
        if once or result.done or result.writes == 0:
            break
        resume_token = result.resume_token
    return total, results


def main(argv: Optional[List[str]] = None) -> int:
    logging.basicConfig(level=settings.log_level)
    args = parse_args(argv)
    terminology_type = TerminologyType(args.type)
    resume_token = None
    if args.resume_codelist:
        resume_token = ResumeToken(
            last_codelist_oid=args.resume_codelist,
            last_coded_value=args.resume_value,
        )
    source = FileTerminologySource(args.file) if args.file else None

    try:
        store: DocumentStore = MemoryStore() if args.dry_run else FirestoreStore()
        total, results = sync_until_done(
            terminology_type,
            store,
            clamp_max_writes(args.max_writes),
            resume_token=resume_token,
            source=source,
            once=args.once,
        )
    except CtSyncError as exc:
        logger.error("Sync failed: %s", exc)
        if exc.resume_token is not None:
            logger.error(
                "Resume with --resume-codelist %s --resume-value %s",
                exc.resume_token.last_codelist_oid,
                exc.resume_token.last_coded_value,
            )
        return 1
    logger.info(
        "Synced %s writes across %s invocations (done=%s)",
        total,
        len(results),
        results[-1].done,
    )
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
