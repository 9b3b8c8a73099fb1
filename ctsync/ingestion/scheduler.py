"""Budgeted, batched merge-upserts of extracted terms."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Callable, Optional, Tuple

from ctsync.cancellation import CancellationToken
from ctsync.config import Settings, settings
from ctsync.models.terminology import (
    CodelistRecord,
    ResumeToken,
    TermRecord,
    TerminologyType,
    WriteOperation,
)
from ctsync.storage.base import DocumentStore, WriteBatch

logger = logging.getLogger(__name__)

OPS_PER_TERM = 2


def clamp_max_writes(value: Optional[int], config: Settings = settings) -> int:
    """Clamp a caller-supplied budget into the configured operating range."""
    if value is None:
        value = config.default_max_writes
    return max(config.min_max_writes, min(int(value), config.max_max_writes))


def utc_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


def build_operations(
    codelist: CodelistRecord,
    term: TermRecord,
    terminology_type: TerminologyType,
    source_url: str,
    version: Optional[str],
    updated_at: str,
    codelists_collection: str,
    terms_collection: str,
) -> Tuple[WriteOperation, WriteOperation]:
    """Codelist and term upserts for one term, keyed ``{type}__{oid}[__{value}]``."""
    type_value = terminology_type.value
    provenance = {"type": type_value, "sourceUrl": source_url, "version": version}
    codelist_op = WriteOperation(
        collection=codelists_collection,
        document_id=f"{type_value}__{term.codelist_oid}",
        data={
            **provenance,
            "oid": term.codelist_oid,
            "name": codelist.name,
            "dataType": codelist.data_type,
            "updatedAt": updated_at,
        },
    )
    term_op = WriteOperation(
        collection=terms_collection,
        document_id=f"{type_value}__{term.codelist_oid}__{term.coded_value}",
        data={
            **provenance,
            "codelistOID": term.codelist_oid,
            "codelistName": term.codelist_name,
            "codedValue": term.coded_value,
            "decode": term.decode,
            "preferredTerm": term.preferred_term,
            "definition": term.definition,
            "ncitCode": term.ncit_code,
            "updatedAt": updated_at,
        },
    )
    return codelist_op, term_op


class WriteScheduler:
    """Queues upserts into store batches under a total write budget.

    ``add`` refuses a term once its writes would push ``total_writes`` past
    ``max_writes``; at that point the cancellation token is tripped so the
    source stops reading. ``flush`` must be called once more at the end of
    the stream to commit whatever is still pending.
    """

    def __init__(
        self,
        store: DocumentStore,
        max_writes: int,
        terminology_type: TerminologyType,
        source_url: str,
        version: Optional[str] = None,
        cancel_token: Optional[CancellationToken] = None,
        batch_limit: Optional[int] = None,
        config: Settings = settings,
        clock: Callable[[], str] = utc_timestamp,
    ) -> None:
        self.store = store
        self.max_writes = max_writes
        self.terminology_type = terminology_type
        self.source_url = source_url
        self.version = version
        self.cancel_token = cancel_token
        limit = batch_limit or config.batch_write_limit
        self.batch_limit = max(OPS_PER_TERM, min(limit, store.max_batch_size))
        self.codelists_collection = config.codelists_collection
        self.terms_collection = config.terms_collection
        self.clock = clock

        self.total_writes = 0
        self.commits = 0
        self.stopped = False
        self.last_written: Optional[ResumeToken] = None
        self.last_committed: Optional[ResumeToken] = None
        self._batch: WriteBatch = store.batch()

    def add(self, codelist: CodelistRecord, term: TermRecord) -> bool:
        """Queue writes for ``term``; return False once the budget is spent."""
        if self.stopped:
            return False
        if self.total_writes + OPS_PER_TERM > self.max_writes:
            self.stopped = True
            logger.info(
                "Write budget of %s reached after %s writes; stopping stream",
                self.max_writes,
                self.total_writes,
            )
            if self.cancel_token is not None:
                self.cancel_token.cancel("write budget reached")
            return False

        if self.pending + OPS_PER_TERM > self.batch_limit:
            self.flush()
        operations = build_operations(
            codelist,
            term,
            self.terminology_type,
            self.source_url,
            self.version,
            self.clock(),
            self.codelists_collection,
            self.terms_collection,
        )
        for operation in operations:
            self._batch.upsert(operation.collection, operation.document_id, operation.data)
        self.total_writes += len(operations)
        self.last_written = ResumeToken(
            last_codelist_oid=term.codelist_oid,
            last_coded_value=term.coded_value,
        )
        if self.pending >= self.batch_limit:
            self.flush()
        return True

    @property
    def pending(self) -> int:
        """Writes queued in the open batch."""
        return len(self._batch)

    def flush(self) -> None:
        """Commit pending writes; a no-op when nothing is queued."""
        batch = self._batch
        size = len(batch)
        if not size:
            return
        self._batch = self.store.batch()
        batch.commit()
        self.commits += 1
        self.last_committed = self.last_written
        logger.info(
            "Committed batch %s with %s writes (%s/%s total)",
            self.commits,
            size,
            self.total_writes,
            self.max_writes,
        )
