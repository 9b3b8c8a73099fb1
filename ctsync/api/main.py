"""FastAPI application entry point."""

from __future__ import annotations

import logging
from functools import lru_cache
from typing import Callable, Optional

from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from ctsync.config import settings
from ctsync.errors import (
    CtSyncError,
    InvalidRequestError,
    SourceFetchError,
    StoreError,
    TerminologyParseError,
)
from ctsync.ingestion.pipeline import run_sync
from ctsync.ingestion.scheduler import clamp_max_writes
from ctsync.ingestion.source import HttpTerminologySource, TerminologySource
from ctsync.models.sync import ErrorResponse, SyncRequest, SyncResponse
from ctsync.models.terminology import TerminologyType
from ctsync.storage.base import DocumentStore
from ctsync.storage.firestore_store import FirestoreStore

logger = logging.getLogger(__name__)

SourceFactory = Callable[[TerminologyType], Optional[TerminologySource]]

STATUS_BY_ERROR = {
    InvalidRequestError: 400,
    SourceFetchError: 502,
    TerminologyParseError: 500,
    StoreError: 500,
}

app = FastAPI(
    title="ctsync",
    description="CDISC controlled terminology sync API",
    version="0.1.0",
)


@lru_cache(maxsize=1)
def get_store() -> DocumentStore:
    return FirestoreStore()


def get_source_factory() -> SourceFactory:
    def factory(terminology_type: TerminologyType) -> TerminologySource:
        return HttpTerminologySource(settings.source_url_for(terminology_type.value))

    return factory


def _error_response(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=ErrorResponse(error=message).model_dump())


@app.exception_handler(RequestValidationError)
async def handle_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    if errors:
        first = errors[0]
        location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
        message = f"{location}: {first.get('msg')}" if location else str(first.get("msg"))
    else:
        message = "Invalid request"
    return _error_response(400, message)


@app.exception_handler(CtSyncError)
async def handle_sync_error(request: Request, exc: CtSyncError) -> JSONResponse:
    status_code = next(
        (code for error_type, code in STATUS_BY_ERROR.items() if isinstance(exc, error_type)),
        500,
    )
    return _error_response(status_code, str(exc))


@app.exception_handler(Exception)
async def handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s", request.url.path)
    return _error_response(500, str(exc) or exc.__class__.__name__)


@app.get("/health")
def health() -> dict[str, str]:
    """Simple readiness probe."""
    return {"status": "ok"}


@app.post("/admin/cdisc-ct-sync", response_model=SyncResponse)
def sync_terminology(
    payload: SyncRequest,
    store: DocumentStore = Depends(get_store),
    source_factory: SourceFactory = Depends(get_source_factory),
) -> SyncResponse:
    """Upsert the next slice of a controlled terminology distribution."""
    max_writes = clamp_max_writes(payload.max_writes)
    result = run_sync(
        payload.type,
        store,
        source=source_factory(payload.type),
        max_writes=max_writes,
        resume_token=payload.resume_token,
    )
    return SyncResponse(
        type=result.terminology_type,
        source_url=result.source_url,
        version=result.version,
        writes=result.writes,
        resume_token=result.resume_token,
        done=result.done,
    )
