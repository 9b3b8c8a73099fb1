from __future__ import annotations

from pathlib import Path
from typing import Iterable, List, Optional, Sequence, Tuple

import pytest

from ctsync.ingestion.source import FileTerminologySource
from ctsync.storage.memory_store import MemoryStore

ODM_HEADER = (
    '<?xml version="1.0" encoding="UTF-8"?>\n'
    '<ODM xmlns="http://www.cdisc.org/ns/odm/v1.3" '
    'xmlns:nciodm="http://ncicb.nci.nih.gov/xml/odm/EVS/CDISC" '
    'FileOID="CDISC_CT.SDTM_2025-09-26" FileType="Snapshot">\n'
    '<Study OID="CDISC_CT.SDTM"><MetaDataVersion OID="CDISC_CT.MetaDataVersion">\n'
)
ODM_FOOTER = "</MetaDataVersion></Study></ODM>\n"


def term_xml(coded_value: Optional[str], code: str = "C1", tag: str = "EnumeratedItem") -> str:
    attr = f' CodedValue="{coded_value}"' if coded_value is not None else ""
    return (
        f'<{tag}{attr} nciodm:ExtCodeID="{code}">'
        f"<Decode><TranslatedText xml:lang=\"en\">Decode {coded_value}</TranslatedText></Decode>"
        f"<nciodm:CDISCDefinition>Definition of {coded_value}</nciodm:CDISCDefinition>"
        f"<nciodm:PreferredTerm>Preferred {coded_value}</nciodm:PreferredTerm>"
        f"</{tag}>"
    )


def codelist_xml(oid: Optional[str], values: Iterable[str], name: str = "Codelist") -> str:
    oid_attr = f' OID="{oid}"' if oid is not None else ""
    body = "".join(term_xml(value, code=f"C{index}") for index, value in enumerate(values, start=1))
    return (
        f'<CodeList{oid_attr} Name="{name}" DataType="text" nciodm:ExtCodeID="C66731">'
        f"<Description><TranslatedText>About {name}</TranslatedText></Description>"
        f"{body}"
        f"<nciodm:CDISCSubmissionValue>{name}</nciodm:CDISCSubmissionValue>"
        f"</CodeList>\n"
    )


def build_odm(codelists: Sequence[Tuple[Optional[str], Sequence[str]]], header: str = ODM_HEADER) -> bytes:
    body = "".join(codelist_xml(oid, values, name=f"Name {oid}") for oid, values in codelists)
    return (header + body + ODM_FOOTER).encode("utf-8")


TWO_BY_THREE = [("CL.C66731.SEX", ["F", "M", "U"]), ("CL.C66742.NY", ["N", "NA", "Y"])]


def chunked(payload: bytes, size: int) -> List[bytes]:
    return [payload[i : i + size] for i in range(0, len(payload), size)]


@pytest.fixture
def store() -> MemoryStore:
    return MemoryStore()


@pytest.fixture
def odm_bytes() -> bytes:
    return build_odm(TWO_BY_THREE)


@pytest.fixture
def write_odm(tmp_path: Path):
    def _write(payload: bytes, name: str = "terminology.odm.xml", chunk_size: int = 4096) -> FileTerminologySource:
        path = tmp_path / name
        path.write_bytes(payload)
        return FileTerminologySource(path, url="https://example.org/SDTM.odm.xml", chunk_size=chunk_size)

    return _write
