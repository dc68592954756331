import json
import logging
import os
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

import firebase_admin
from firebase_admin import credentials, firestore
from google.api_core import exceptions as google_exceptions
from google.auth import exceptions as auth_exceptions
from pydantic import BaseModel as PydanticBaseModel

from freelance_hub.core.config import get_settings
from freelance_hub.core.errors import StorageError

logger = logging.getLogger(__name__)

# Message prefix of the ValueError raised by firestore.transactional after max_attempts
TRANSACTION_RETRIES_EXHAUSTED = "Failed to commit transaction"


class FirebaseManager:
    """
    Firebase Firestore Manager for handling database operations
    """
    _instance = None
    _db = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super(FirebaseManager, cls).__new__(cls)
        return cls._instance

    def __init__(self):
        if self._db is None:
            self.initialize_firebase()

    def _resolve_project_id(self) -> Optional[str]:
        settings = get_settings()
        if settings.firebase_project_id:
            return settings.firebase_project_id
        config_path = settings.firebase_config_path
        if config_path and os.path.exists(config_path):
            with open(config_path, 'r') as f:
                project_id = json.load(f).get('projectId')
            logger.info("Found Firebase project ID %s in %s", project_id, config_path)
            return project_id
        return None

    def initialize_firebase(self):
        """Initialize Firebase Admin SDK"""
        try:
            app = firebase_admin.get_app()
            self._db = firestore.client(app)
            logger.info("Using existing Firebase app")
            return
        except ValueError:
            pass  # no default app yet

        settings = get_settings()
        project_id = self._resolve_project_id()
        options = {'projectId': project_id} if project_id else None

        try:
            service_account_path = settings.firebase_credentials_path
            if service_account_path and os.path.exists(service_account_path):
                cred = credentials.Certificate(service_account_path)
                logger.info("Initializing Firebase with service account key from %s", service_account_path)
            else:
                cred = credentials.ApplicationDefault()
                logger.info("Initializing Firebase with application default credentials")
            firebase_admin.initialize_app(cred, options)
            self._db = firestore.client()
            logger.info("Firestore client initialized")
        except (ValueError, auth_exceptions.GoogleAuthError, google_exceptions.GoogleAPIError) as e:
            logger.error(
                "Could not initialize Firebase: %s. Set FIREBASE_CREDENTIALS_PATH "
                "or GOOGLE_APPLICATION_CREDENTIALS.", e
            )

    def get_db(self):
        """Get Firestore database client"""
        if self._db is None:
            logger.warning("Firestore client accessed before initialization or initialization failed")
        return self._db


class FirestoreBaseModel:
    """
    Thin helper over a Firestore client. Every failure surfaces as StorageError.
    """

    def __init__(self, db=None):
        if db is None:
            db = FirebaseManager().get_db()
        self.db = db

    def _require_db(self):
        if self.db is None:
            raise StorageError("Database not initialized")
        return self.db

    def _prepare_data_for_firestore(self, data_model: Any) -> Dict[str, Any]:
        """Converts Pydantic model or dict to Firestore-compatible dict."""
        if isinstance(data_model, PydanticBaseModel):
            return data_model.model_dump(mode="json")
        if isinstance(data_model, dict):
            return data_model.copy()
        raise ValueError("Data must be a Pydantic model or a dictionary.")

    def _storage_error(self, action: str, collection_name: str, document_id: Optional[str], exc: Exception) -> StorageError:
        target = f"{collection_name}/{document_id}" if document_id else collection_name
        logger.error("Firestore %s failed for %s: %s", action, target, exc)
        return StorageError(f"Could not {action} {target}")

    @staticmethod
    def _parse(data: Dict[str, Any], pydantic_model: Optional[type[PydanticBaseModel]]):
        if pydantic_model:
            return pydantic_model.model_validate(data)
        return data

    def save(self, collection_name: str, data_model: Any, document_id: Optional[str] = None) -> str:
        """Save Pydantic model or dictionary to Firestore, returning the document id."""
        db = self._require_db()
        data = self._prepare_data_for_firestore(data_model)

        now = datetime.now(timezone.utc)
        data['updated_at'] = now
        data.setdefault('created_at', now)

        try:
            if document_id:
                db.collection(collection_name).document(document_id).set(data, merge=True)
                return document_id
            # add() returns a tuple (update_time, DocumentReference)
            _, doc_ref = db.collection(collection_name).add(data)
            return doc_ref.id
        except google_exceptions.GoogleAPIError as e:
            raise self._storage_error("save", collection_name, document_id, e) from e

    def get(self, collection_name: str, document_id: str, pydantic_model: Optional[type[PydanticBaseModel]] = None) -> Optional[Any]:
        """Get document from Firestore by ID, optionally parsing into a Pydantic model."""
        db = self._require_db()
        try:
            doc = db.collection(collection_name).document(document_id).get()
        except google_exceptions.GoogleAPIError as e:
            raise self._storage_error("read", collection_name, document_id, e) from e

        if not doc.exists:
            return None
        return self._parse(doc.to_dict(), pydantic_model)

    def _collect(self, docs_stream, pydantic_model) -> List[Any]:
        results = []
        for doc in docs_stream:
            data = {'id': doc.id, **doc.to_dict()}
            results.append(self._parse(data, pydantic_model))
        return results

    def get_all(self, collection_name: str, limit: Optional[int] = None, pydantic_model: Optional[type[PydanticBaseModel]] = None) -> List[Any]:
        """Get all documents from a collection, optionally parsing into Pydantic models."""
        db = self._require_db()
        try:
            collection_ref = db.collection(collection_name)
            if limit:
                collection_ref = collection_ref.limit(limit)
            return self._collect(collection_ref.stream(), pydantic_model)
        except google_exceptions.GoogleAPIError as e:
            raise self._storage_error("list", collection_name, None, e) from e

    def query(self, collection_name: str, field: str, operator: str, value: Any, pydantic_model: Optional[type[PydanticBaseModel]] = None) -> List[Any]:
        """Query documents by field, optionally parsing into Pydantic models."""
        db = self._require_db()
        try:
            query_ref = db.collection(collection_name).where(field, operator, value)
            return self._collect(query_ref.stream(), pydantic_model)
        except google_exceptions.GoogleAPIError as e:
            raise self._storage_error("query", collection_name, None, e) from e

    def update(self, collection_name: str, document_id: str, updates: Dict[str, Any]) -> None:
        """Update specific fields in a document."""
        db = self._require_db()
        if not isinstance(updates, dict):
            raise ValueError("'updates' must be a dictionary.")

        updates_copy = updates.copy()
        updates_copy['updated_at'] = datetime.now(timezone.utc)
        try:
            db.collection(collection_name).document(document_id).update(updates_copy)
        except google_exceptions.GoogleAPIError as e:
            raise self._storage_error("update", collection_name, document_id, e) from e

    def delete(self, collection_name: str, document_id: str) -> None:
        """Delete a document from Firestore."""
        db = self._require_db()
        try:
            db.collection(collection_name).document(document_id).delete()
        except google_exceptions.GoogleAPIError as e:
            raise self._storage_error("delete", collection_name, document_id, e) from e

    @staticmethod
    def _stamp_replacement(current: Optional[Dict[str, Any]], replacement: Dict[str, Any]) -> Dict[str, Any]:
        """Carries ``created_at`` over from the stored document and refreshes ``updated_at``."""
        stamped = dict(replacement)
        if current and 'created_at' in current:
            stamped.setdefault('created_at', current['created_at'])
        now = datetime.now(timezone.utc)
        stamped.setdefault('created_at', now)
        stamped['updated_at'] = now
        return stamped

    def transact(
        self,
        collection_name: str,
        document_id: str,
        mutator: Callable[[Optional[Dict[str, Any]]], Dict[str, Any]],
    ) -> Dict[str, Any]:
        """
        Atomic read-modify-write of one document.

        ``mutator`` receives the current document (None if absent) and returns
        the full replacement. Firestore re-runs it on contention; any exception
        it raises aborts the transaction without writing.
        """
        db = self._require_db()
        doc_ref = db.collection(collection_name).document(document_id)

        @firestore.transactional
        def _read_modify_write(transaction):
            snapshot = doc_ref.get(transaction=transaction)
            current = snapshot.to_dict() if snapshot.exists else None
            replacement = self._stamp_replacement(current, mutator(current))
            transaction.set(doc_ref, replacement)
            return replacement

        try:
            return _read_modify_write(db.transaction())
        except google_exceptions.GoogleAPIError as e:
            raise self._storage_error("commit transaction on", collection_name, document_id, e) from e
        except ValueError as e:
            # The SDK gives up on contention with a ValueError once its retries are spent
            if isinstance(e.__cause__, google_exceptions.GoogleAPIError) or str(e).startswith(TRANSACTION_RETRIES_EXHAUSTED):
                raise self._storage_error("commit transaction on", collection_name, document_id, e) from e
            raise


def get_firestore_client():
    return FirebaseManager().get_db()


def get_firestore_ops_instance():
    return FirestoreBaseModel()
