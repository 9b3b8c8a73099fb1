"""State machine that assembles codelists and terms from tag events.

Only the codelist and term currently being read are held; each term is
returned once, at its closing tag, together with the codelist that encloses
it. Tags outside the recognized set are ignored in every state.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterable, Iterator, Optional, Tuple

from ctsync.ingestion.parser import TagEvent, TagEventKind
from ctsync.models.terminology import CodelistRecord, TermRecord

logger = logging.getLogger(__name__)

GROUP_TAG = "CodeList"
LEAF_TAGS = frozenset({"EnumeratedItem", "CodeListItem"})
FIELD_TAGS: Dict[str, str] = {
    "Decode": "decode",
    "PreferredTerm": "preferred_term",
    "CDISCDefinition": "definition",
    "NCIConceptCode": "ncit_code",
}

ExtractedTerm = Tuple[CodelistRecord, TermRecord]


class ExtractionState(Enum):
    IDLE = "idle"
    IN_GROUP = "in_group"
    IN_LEAF = "in_leaf"
    CAPTURING = "capturing"


@dataclass
class TermDraft:
    """Partially read term; text fields are appended to as events arrive."""

    coded_value: Optional[str] = None
    texts: Dict[str, str] = field(default_factory=dict)

    def append(self, field_name: str, text: str) -> None:
        self.texts[field_name] = self.texts.get(field_name, "") + text

    def finish(self, codelist: CodelistRecord) -> Optional[TermRecord]:
        if not codelist.oid or not self.coded_value:
            return None
        cleaned = {name: (value.strip() or None) for name, value in self.texts.items()}
        return TermRecord(
            codelist_oid=codelist.oid,
            codelist_name=codelist.name,
            coded_value=self.coded_value,
            **cleaned,
        )


class RecordExtractor:
    """Consumes :class:`TagEvent` objects and returns finished terms."""

    def __init__(self) -> None:
        self.state = ExtractionState.IDLE
        self.codelist = CodelistRecord()
        self.term: Optional[TermDraft] = None
        self.capture_tag: Optional[str] = None
        self.in_group = False
        self.emitted = 0
        self.dropped = 0

    def feed(self, event: TagEvent) -> Optional[ExtractedTerm]:
        if event.kind is TagEventKind.OPEN:
            self._on_open(event)
        elif event.kind is TagEventKind.TEXT:
            if self.state is ExtractionState.CAPTURING and self.term is not None:
                self.term.append(FIELD_TAGS[self.capture_tag], event.text)
        else:
            return self._on_close(event)
        return None

    def iter_records(self, events: Iterable[TagEvent]) -> Iterator[ExtractedTerm]:
        for event in events:
            record = self.feed(event)
            if record is not None:
                yield record

    @property
    def _resting_state(self) -> ExtractionState:
        return ExtractionState.IN_GROUP if self.in_group else ExtractionState.IDLE

    def _on_open(self, event: TagEvent) -> None:
        name = event.name
        if name == GROUP_TAG:
            self.codelist = CodelistRecord(
                oid=event.attributes.get("OID") or None,
                name=event.attributes.get("Name") or None,
                data_type=event.attributes.get("DataType") or None,
            )
            self.term = None
            self.capture_tag = None
            self.in_group = True
            self.state = ExtractionState.IN_GROUP
        elif name in LEAF_TAGS:
            # Opened even without an enclosing codelist; finish() drops it at close.
            self.term = TermDraft(coded_value=event.attributes.get("CodedValue") or None)
            self.capture_tag = None
            self.state = ExtractionState.IN_LEAF
        elif name in FIELD_TAGS and self.state in (ExtractionState.IN_LEAF, ExtractionState.CAPTURING):
            self.capture_tag = name
            self.state = ExtractionState.CAPTURING

    def _on_close(self, event: TagEvent) -> Optional[ExtractedTerm]:
        name = event.name
        if self.state is ExtractionState.CAPTURING and name == self.capture_tag:
            self.capture_tag = None
            self.state = ExtractionState.IN_LEAF
            return None
        if name in LEAF_TAGS and self.term is not None:
            draft, self.term = self.term, None
            self.capture_tag = None
            self.state = self._resting_state
            record = draft.finish(self.codelist)
            if record is None:
                self.dropped += 1
                logger.debug(
                    "Dropping term without codelist OID or coded value (codelist=%s, value=%s)",
                    self.codelist.oid,
                    draft.coded_value,
                )
                return None
            self.emitted += 1
            return self.codelist, record
        if name == GROUP_TAG:
            self.codelist = CodelistRecord()
            self.term = None
            self.capture_tag = None
            self.in_group = False
            self.state = ExtractionState.IDLE
        return None
