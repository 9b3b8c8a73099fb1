"""Firestore-backed document store."""

from __future__ import annotations

import logging
import os
from typing import Any, Dict, List, Optional, Tuple

from google.api_core import exceptions as gexc
from google.auth import default as google_auth_default
from google.auth import exceptions as auth_exceptions
from google.cloud import firestore
from google.oauth2 import service_account

from ctsync.config import Settings, settings
from ctsync.errors import StoreError
from ctsync.storage.base import DocumentStore, WriteBatch

logger = logging.getLogger(__name__)

GOOGLE_ERRORS = (gexc.GoogleAPIError, auth_exceptions.GoogleAuthError)

SCOPES = ["https://www.googleapis.com/auth/datastore"]
TOKEN_URI = "https://oauth2.googleapis.com/token"


def build_credentials(config: Settings = settings) -> Tuple[Any, Optional[str]]:
    """Resolve credentials from inline service-account env, a key file, or ADC."""
    private_key = config.firebase_private_key
    if config.firebase_admin_client_email and private_key:
        info = {
            "type": "service_account",
            "project_id": config.firebase_admin_project_id,
            "client_email": config.firebase_admin_client_email,
            "private_key": private_key,
            "token_uri": TOKEN_URI,
        }
        creds = service_account.Credentials.from_service_account_info(info, scopes=SCOPES)
        return creds, config.firebase_admin_project_id or config.firestore_project_id

    key_path = config.firestore_credentials_file or os.environ.get("GOOGLE_APPLICATION_CREDENTIALS")
    if key_path and os.path.exists(key_path):
        creds = service_account.Credentials.from_service_account_file(key_path, scopes=SCOPES)
        return creds, config.firestore_project_id or creds.project_id

    creds, project = google_auth_default(scopes=SCOPES)
    return creds, config.firestore_project_id or project


class FirestoreWriteBatch(WriteBatch):
    def __init__(self, client: firestore.Client) -> None:
        self._client = client
        self._batch = client.batch()
        self._size = 0

    def upsert(self, collection: str, document_id: str, data: Dict[str, Any]) -> None:
        ref = self._client.collection(collection).document(document_id)
        self._batch.set(ref, data, merge=True)
        self._size += 1

    def commit(self) -> None:
        if not self._size:
            return
        try:
            results: List[Any] = self._batch.commit()
        except GOOGLE_ERRORS as exc:
            raise StoreError(f"Firestore batch commit failed: {exc}") from exc
        logger.debug("Committed Firestore batch of %s writes", len(results))

    def __len__(self) -> int:
        return self._size


class FirestoreStore(DocumentStore):
    """Wrapper around a Firestore client."""

    max_batch_size = 500

    def __init__(self, client: firestore.Client | None = None, config: Settings = settings) -> None:
        if client is None:
            try:
                creds, project = build_credentials(config)
                kwargs: Dict[str, Any] = {"project": project, "credentials": creds}
                if config.firestore_database:
                    kwargs["database"] = config.firestore_database
                client = firestore.Client(**kwargs)
            except GOOGLE_ERRORS as exc:
                raise StoreError(f"Could not connect to Firestore: {exc}") from exc
            logger.info("Connected to Firestore project %s", project)
        self.client = client

    def batch(self) -> FirestoreWriteBatch:
        return FirestoreWriteBatch(self.client)
