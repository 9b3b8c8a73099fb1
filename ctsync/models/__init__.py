"""Typed models shared across the application."""

from .sync import ErrorResponse, SyncRequest, SyncResponse
from .terminology import (
    CodelistRecord,
    ResumeToken,
    SyncResult,
    TermRecord,
    TerminologyType,
    WriteOperation,
)

__all__ = [
    "CodelistRecord",
    "ErrorResponse",
    "ResumeToken",
    "SyncRequest",
    "SyncResponse",
    "SyncResult",
    "TermRecord",
    "TerminologyType",
    "WriteOperation",
]
