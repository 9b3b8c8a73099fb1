"""Exception types raised by the terminology sync pipeline."""

from __future__ import annotations

from typing import Any


class CtSyncError(Exception):
    """Base class for sync failures.

    ``resume_token`` is filled in by the pipeline with the position of the
    last committed term when a failure happens mid-stream.
    """

    resume_token: Any = None


class InvalidRequestError(CtSyncError):
    """The invocation request was rejected before any I/O."""


class SourceFetchError(CtSyncError):
    """The remote terminology file could not be downloaded."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class TerminologyParseError(CtSyncError):
    """Malformed markup was encountered while streaming the document."""


class StoreError(CtSyncError):
    """A batch commit against the document store failed."""
