"""Best-effort release version detection from the document header."""

from __future__ import annotations

import itertools
import logging
import re
from typing import Iterable, Iterator, Optional, Tuple

logger = logging.getLogger(__name__)

VERSION_PATTERN = re.compile(r'FileOID="[^"]*?(\d{4}-\d{2}-\d{2})[^"]*?"')


def sniff_version(head: bytes | str) -> Optional[str]:
    """Return the ``YYYY-MM-DD`` date embedded in the ``FileOID`` attribute, if any."""
    if isinstance(head, bytes):
        head = head.decode("utf-8", errors="replace")
    match = VERSION_PATTERN.search(head or "")
    return match.group(1) if match else None


def peek_version(chunks: Iterable[bytes]) -> Tuple[Optional[str], Iterator[bytes]]:
    """Sniff the first chunk and return an iterator that still yields it."""
    iterator = iter(chunks)
    first = next(iterator, b"")
    version = sniff_version(first)
    if version is None:
        logger.warning("No release date found in the first %s bytes of the document", len(first))
    if not first:
        return version, iterator
    return version, itertools.chain([first], iterator)
