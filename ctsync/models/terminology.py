"""Terminology records extracted from an ODM distribution file."""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field


class TerminologyType(str, Enum):
    """Distribution kinds published by NCI EVS."""

    SDTM = "SDTM"
    DEFINE_XML = "DEFINE_XML"
    PROTOCOL = "PROTOCOL"
    GLOSSARY = "GLOSSARY"


class CodelistRecord(BaseModel):
    """A codelist (group) as declared by its opening tag."""

    oid: Optional[str] = None
    name: Optional[str] = None
    data_type: Optional[str] = None


class TermRecord(BaseModel):
    """A single coded value inside a codelist."""

    codelist_oid: str
    coded_value: str
    codelist_name: Optional[str] = None
    decode: Optional[str] = None
    preferred_term: Optional[str] = None
    definition: Optional[str] = None
    ncit_code: Optional[str] = None


class ResumeToken(BaseModel):
    """Position of the last written term, in document order."""

    model_config = ConfigDict(populate_by_name=True)

    last_codelist_oid: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("lastCodelistOID", "lastGroupKey", "last_codelist_oid"),
        serialization_alias="lastCodelistOID",
    )
    last_coded_value: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("lastCodedValue", "lastLeafKey", "last_coded_value"),
        serialization_alias="lastCodedValue",
    )

    @property
    def is_empty(self) -> bool:
        return not self.last_codelist_oid


class WriteOperation(BaseModel):
    """One merge-upsert against the document store."""

    collection: str
    document_id: str
    data: Dict[str, Any] = Field(default_factory=dict)


class SyncResult(BaseModel):
    """Outcome of one pipeline invocation."""

    terminology_type: TerminologyType
    source_url: str
    version: Optional[str] = None
    writes: int = 0
    max_writes: int
    resume_token: Optional[ResumeToken] = None
    reached_end: bool = False
    dropped_terms: int = 0

    @property
    def done(self) -> bool:
        """True when the document was read to its natural end."""
        return self.reached_end

    @property
    def likely_done(self) -> bool:
        """Budget heuristic: fewer writes than allowed suggests completion."""
        return self.writes < self.max_writes
