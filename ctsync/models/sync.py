"""Request/response models for the public API."""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from .terminology import ResumeToken, TerminologyType


class SyncRequest(BaseModel):
    """Incoming sync invocation payload."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    type: TerminologyType
    max_writes: Optional[int] = Field(default=None, alias="maxWrites")
    resume_token: Optional[ResumeToken] = Field(default=None, alias="resumeToken")


class SyncResponse(BaseModel):
    """Result returned to the caller."""

    model_config = ConfigDict(populate_by_name=True)

    ok: bool = True
    type: TerminologyType
    source_url: str = Field(alias="sourceUrl")
    version: Optional[str] = None
    writes: int
    resume_token: Optional[ResumeToken] = Field(default=None, alias="resumeToken")
    done: bool


class ErrorResponse(BaseModel):
    """Failure body shared by every error status."""

    ok: bool = False
    error: str
