"""Forward-only byte sources for terminology distribution files."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from contextlib import ExitStack, contextmanager
from pathlib import Path
from typing import Iterable, Iterator, Optional, Tuple, Type

import httpx

from ctsync.cancellation import CancellationToken
from ctsync.config import settings
from ctsync.errors import SourceFetchError

logger = logging.getLogger(__name__)


def guarded_chunks(
    chunks: Iterable[bytes],
    cancel_token: Optional[CancellationToken],
    url: str,
    errors: Tuple[Type[BaseException], ...] = (),
) -> Iterator[bytes]:
    """Yield chunks until exhausted or until the token is cancelled.

    The token is checked before every read, so a cancellation requested while
    the previous chunk was being processed ends the stream without reading
    further bytes from the wire.
    """
    iterator = iter(chunks)
    while True:
        if cancel_token is not None and cancel_token.is_cancelled():
            logger.info("Stopping read of %s: %s", url, cancel_token.reason or "cancelled")
            return
        try:
            chunk = next(iterator)
        except StopIteration:
            return
        except errors as exc:
            raise SourceFetchError(f"Read failed for {url}: {exc}") from exc
        if chunk:
            yield chunk


class TerminologySource(ABC):
    """A remote or local terminology file that can be read once, front to back."""

    url: str

    @abstractmethod
    def open(self, cancel_token: Optional[CancellationToken] = None) -> Iterator[Iterator[bytes]]:
        """Context manager yielding an iterator of raw byte chunks."""


class HttpTerminologySource(TerminologySource):
    """Streams a distribution file over HTTP(S)."""

    def __init__(
        self,
        url: str,
        client: httpx.Client | None = None,
        chunk_size: int | None = None,
        timeout: float | None = None,
    ) -> None:
        self.url = url
        self.client = client
        self.chunk_size = chunk_size or settings.http_chunk_size
        self.timeout = timeout or settings.http_timeout_seconds

    def _build_client(self) -> httpx.Client:
        return httpx.Client(
            timeout=httpx.Timeout(self.timeout),
            headers={"User-Agent": settings.http_user_agent},
            follow_redirects=True,
        )

    @contextmanager
    def open(self, cancel_token: Optional[CancellationToken] = None) -> Iterator[Iterator[bytes]]:
        with ExitStack() as stack:
            client = self.client
            if client is None:
                client = stack.enter_context(self._build_client())
            try:
                response = stack.enter_context(
                    client.stream("GET", self.url, headers={"Cache-Control": "no-store"})
                )
            except httpx.HTTPError as exc:
                raise SourceFetchError(f"Fetch failed for {self.url}: {exc}") from exc
            if not response.is_success:
                raise SourceFetchError(
                    f"Fetch failed: {response.status_code} {response.reason_phrase}",
                    status_code=response.status_code,
                )
            logger.info("Streaming %s (content-length=%s)", self.url, response.headers.get("content-length"))
            yield guarded_chunks(
                response.iter_bytes(self.chunk_size),
                cancel_token,
                self.url,
                errors=(httpx.HTTPError,),
            )


class FileTerminologySource(TerminologySource):
    """Reads a previously downloaded distribution file from disk."""

    def __init__(self, path: Path | str, url: str | None = None, chunk_size: int | None = None) -> None:
        self.path = Path(path)
        self.url = url or self.path.resolve().as_uri()
        self.chunk_size = chunk_size or settings.http_chunk_size

    def _read(self, handle) -> Iterator[bytes]:
        while True:
            chunk = handle.read(self.chunk_size)
            if not chunk:
                return
            yield chunk

    @contextmanager
    def open(self, cancel_token: Optional[CancellationToken] = None) -> Iterator[Iterator[bytes]]:
        try:
            handle = self.path.open("rb")
        except OSError as exc:
            raise SourceFetchError(f"Cannot open {self.path}: {exc}") from exc
        with handle:
            yield guarded_chunks(self._read(handle), cancel_token, self.url, errors=(OSError,))
