from __future__ import annotations

import pytest

from ctsync.cancellation import CancellationToken
from ctsync.config import Settings
from ctsync.errors import StoreError
from ctsync.ingestion.scheduler import WriteScheduler, build_operations, clamp_max_writes
from ctsync.models.terminology import CodelistRecord, ResumeToken, TermRecord, TerminologyType
from ctsync.storage.memory_store import MemoryStore

CODELIST = CodelistRecord(oid="CL.SEX", name="Sex", data_type="text")


def term(value: str) -> TermRecord:
    return TermRecord(codelist_oid="CL.SEX", codelist_name="Sex", coded_value=value, decode=f"Decode {value}")


def make_scheduler(store: MemoryStore, max_writes: int = 100, **kwargs) -> WriteScheduler:
    return WriteScheduler(
        store,
        max_writes,
        terminology_type=TerminologyType.SDTM,
        source_url="https://example.org/SDTM.odm.xml",
        version="2025-09-26",
        clock=lambda: "2025-10-01T00:00:00+00:00",
        **kwargs,
    )


@pytest.mark.parametrize(
    ("requested", "expected"),
    [(None, 4000), (4, 100), (100, 100), (2500, 2500), (20000, 20000), (50000, 20000), (-3, 100)],
)
def test_clamp_max_writes(requested, expected) -> None:
    assert clamp_max_writes(requested, Settings()) == expected


def test_build_operations_keys_and_fields() -> None:
    codelist_op, term_op = build_operations(
        CODELIST,
        term("F"),
        TerminologyType.SDTM,
        "https://example.org/SDTM.odm.xml",
        None,
        "2025-10-01T00:00:00+00:00",
        "cdisc_codelists",
        "cdisc_terms",
    )
    assert codelist_op.collection == "cdisc_codelists"
    assert codelist_op.document_id == "SDTM__CL.SEX"
    assert codelist_op.data["dataType"] == "text"
    assert codelist_op.data["version"] is None
    assert term_op.collection == "cdisc_terms"
    assert term_op.document_id == "SDTM__CL.SEX__F"
    assert term_op.data["codelistOID"] == "CL.SEX"
    assert term_op.data["decode"] == "Decode F"
    assert term_op.data["updatedAt"] == "2025-10-01T00:00:00+00:00"
    for op in (codelist_op, term_op):
        assert op.data["type"] == "SDTM"
        assert op.data["sourceUrl"] == "https://example.org/SDTM.odm.xml"


def test_each_term_costs_two_writes() -> None:
    store = MemoryStore()
    scheduler = make_scheduler(store)
    assert scheduler.add(CODELIST, term("F"))
    assert scheduler.add(CODELIST, term("M"))
    assert scheduler.total_writes == 4
    assert scheduler.pending == 4
    assert store.commit_sizes == []
    scheduler.flush()
    assert store.commit_sizes == [4]
    assert len(store.collections["cdisc_codelists"]) == 1
    assert len(store.collections["cdisc_terms"]) == 2


def test_batches_are_committed_at_the_limit() -> None:
    store = MemoryStore(max_batch_size=10)
    scheduler = make_scheduler(store, batch_limit=6)
    for value in "ABCDE":
        scheduler.add(CODELIST, term(value))
    assert store.commit_sizes == [6]
    scheduler.flush()
    assert store.commit_sizes == [6, 4]


def test_odd_batch_limit_never_overfills_a_batch() -> None:
    store = MemoryStore(max_batch_size=5)
    scheduler = make_scheduler(store, batch_limit=50)
    assert scheduler.batch_limit == 5
    for value in "ABCDE":
        scheduler.add(CODELIST, term(value))
    scheduler.flush()
    assert store.commit_sizes == [4, 4, 2]
    assert max(store.commit_sizes) <= store.max_batch_size


def test_budget_exhaustion_cancels_and_refuses_terms() -> None:
    store = MemoryStore()
    token = CancellationToken()
    scheduler = make_scheduler(store, max_writes=4, cancel_token=token)
    assert scheduler.add(CODELIST, term("F"))
    assert scheduler.add(CODELIST, term("M"))
    assert not token.is_cancelled()
    assert not scheduler.add(CODELIST, term("U"))
    assert token.is_cancelled()
    assert scheduler.stopped
    assert not scheduler.add(CODELIST, term("X"))
    assert scheduler.total_writes == 4
    assert scheduler.last_written == ResumeToken(last_codelist_oid="CL.SEX", last_coded_value="M")


def test_odd_budget_is_never_exceeded() -> None:
    scheduler = make_scheduler(MemoryStore(), max_writes=5)
    results = [scheduler.add(CODELIST, term(value)) for value in "ABC"]
    assert results == [True, True, False]
    assert scheduler.total_writes == 4


def test_last_committed_tracks_flushes() -> None:
    store = MemoryStore()
    scheduler = make_scheduler(store)
    scheduler.add(CODELIST, term("F"))
    assert scheduler.last_committed is None
    scheduler.flush()
    assert scheduler.last_committed.last_coded_value == "F"
    scheduler.add(CODELIST, term("M"))
    assert scheduler.last_committed.last_coded_value == "F"


def test_failed_commit_propagates_and_keeps_last_committed() -> None:
    store = MemoryStore(fail_on_commit=2)
    scheduler = make_scheduler(store)
    scheduler.add(CODELIST, term("F"))
    scheduler.flush()
    scheduler.add(CODELIST, term("M"))
    with pytest.raises(StoreError):
        scheduler.flush()
    assert scheduler.last_committed.last_coded_value == "F"
    assert scheduler.pending == 0
    assert list(store.collections["cdisc_terms"]) == ["SDTM__CL.SEX__F"]


def test_flush_without_pending_writes_is_a_no_op() -> None:
    store = MemoryStore()
    make_scheduler(store).flush()
    assert store.commit_sizes == []
