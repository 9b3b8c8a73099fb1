"""Incremental XML tokenizer that turns byte chunks into tag events."""

from __future__ import annotations

import logging
import xml.etree.ElementTree as ET
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterable, Iterator, List, Mapping, Optional

from ctsync.cancellation import CancellationToken
from ctsync.errors import TerminologyParseError

logger = logging.getLogger(__name__)


class TagEventKind(str, Enum):
    OPEN = "open"
    TEXT = "text"
    CLOSE = "close"


@dataclass(frozen=True)
class TagEvent:
    """One structural event; names are namespace-free local names."""

    kind: TagEventKind
    name: str = ""
    attributes: Mapping[str, str] = field(default_factory=dict)
    text: str = ""

    @classmethod
    def open(cls, name: str, attributes: Optional[Mapping[str, str]] = None) -> "TagEvent":
        return cls(TagEventKind.OPEN, name=name, attributes=dict(attributes or {}))

    @classmethod
    def data(cls, text: str) -> "TagEvent":
        return cls(TagEventKind.TEXT, text=text)

    @classmethod
    def close(cls, name: str) -> "TagEvent":
        return cls(TagEventKind.CLOSE, name=name)


def local_name(tag: str) -> str:
    """Strip a ``{namespace}`` or ``prefix:`` qualifier from a tag or attribute name."""
    if tag.startswith("{"):
        return tag.rsplit("}", 1)[-1]
    return tag.rsplit(":", 1)[-1]


class _EventCollector:
    """Parser target that buffers events between feeds."""

    def __init__(self) -> None:
        self.events: List[TagEvent] = []
        self._text: List[str] = []

    def _flush_text(self) -> None:
        if self._text:
            self.events.append(TagEvent.data("".join(self._text)))
            self._text = []

    def start(self, tag: str, attrib: Dict[str, str]) -> None:
        self._flush_text()
        attributes = {local_name(key): value for key, value in attrib.items()}
        self.events.append(TagEvent.open(local_name(tag), attributes))

    def end(self, tag: str) -> None:
        self._flush_text()
        self.events.append(TagEvent.close(local_name(tag)))

    def data(self, text: str) -> None:
        # expat splits text at entities and buffer edges; joined at the next tag
        self._text.append(text)

    def close(self) -> None:
        self._flush_text()

    def drain(self) -> List[TagEvent]:
        events, self.events = self.events, []
        return events


def iter_tag_events(
    chunks: Iterable[bytes],
    cancel_token: Optional[CancellationToken] = None,
) -> Iterator[TagEvent]:
    """Feed ``chunks`` to an XML parser and yield events as they become available.

    Only the events produced by the current chunk are held in memory. When the
    chunk iterator stops because ``cancel_token`` was cancelled, the document is
    left unterminated on purpose and no error is raised for it.
    """
    collector = _EventCollector()
    parser = ET.XMLParser(target=collector)
    fed = 0
    try:
        for chunk in chunks:
            fed += len(chunk)
            parser.feed(chunk)
            yield from collector.drain()
        if cancel_token is not None and cancel_token.is_cancelled():
            logger.debug("Parser stopped after %s bytes on request", fed)
            return
        parser.close()
    except ET.ParseError as exc:
        raise TerminologyParseError(f"Malformed terminology XML after {fed} bytes: {exc}") from exc
    yield from collector.drain()
