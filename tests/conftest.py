"""
Shared fixtures.

``InMemoryFirestoreOps`` runs the real ``FirestoreBaseModel`` helpers against
a dict-backed stand-in for the Firestore client, so repository and service
code is exercised end to end without a Firebase project.
"""

import copy
import threading
from typing import Any, Dict, Optional
from uuid import uuid4

import pytest
from fastapi.testclient import TestClient
from google.api_core import exceptions as google_exceptions

from freelance_hub.core.config import Settings
from freelance_hub.core.security import create_access_token
from freelance_hub.db.firebase_ops import FirestoreBaseModel
from freelance_hub.main import app
from freelance_hub.models.schemas import Principal, ProjectCreate, Role, User
from freelance_hub.services.lifecycle import ProjectLifecycle


class _Snapshot:
    def __init__(self, doc_id: str, data: Optional[Dict[str, Any]]):
        self.id = doc_id
        self._data = data

    @property
    def exists(self) -> bool:
        return self._data is not None

    def to_dict(self) -> Optional[Dict[str, Any]]:
        return copy.deepcopy(self._data)


class _DocumentRef:
    def __init__(self, documents: Dict[str, Dict[str, Any]], doc_id: str):
        self._documents = documents
        self.id = doc_id

    def get(self, transaction=None) -> _Snapshot:
        return _Snapshot(self.id, self._documents.get(self.id))

    def set(self, data: Dict[str, Any], merge: bool = False) -> None:
        if merge and self.id in self._documents:
            self._documents[self.id].update(copy.deepcopy(data))
        else:
            self._documents[self.id] = copy.deepcopy(data)

    def update(self, updates: Dict[str, Any]) -> None:
        if self.id not in self._documents:
            raise google_exceptions.NotFound(f"No document to update: {self.id}")
        self._documents[self.id].update(copy.deepcopy(updates))

    def delete(self) -> None:
        self._documents.pop(self.id, None)


class _Query:
    def __init__(self, documents: Dict[str, Dict[str, Any]], filters=(), limit: Optional[int] = None):
        self._documents = documents
        self._filters = list(filters)
        self._limit = limit

    def where(self, field: str, operator: str, value: Any) -> "_Query":
        if operator != "==":
            raise NotImplementedError(f"operator {operator!r} is not supported in tests")
        return _Query(self._documents, self._filters + [(field, value)], self._limit)

    def limit(self, count: int) -> "_Query":
        return _Query(self._documents, self._filters, count)

    def stream(self):
        matched = [
            _Snapshot(doc_id, data)
            for doc_id, data in list(self._documents.items())
            if all(data.get(field) == value for field, value in self._filters)
        ]
        return iter(matched[: self._limit] if self._limit else matched)


class _Collection(_Query):
    def document(self, doc_id: str) -> _DocumentRef:
        return _DocumentRef(self._documents, doc_id)

    def add(self, data: Dict[str, Any]):
        ref = self.document(uuid4().hex)
        ref.set(data)
        return None, ref


class InMemoryFirestoreClient:
    def __init__(self):
        self.collections: Dict[str, Dict[str, Dict[str, Any]]] = {}

    def collection(self, name: str) -> _Collection:
        return _Collection(self.collections.setdefault(name, {}))


class InMemoryFirestoreOps(FirestoreBaseModel):
    """FirestoreBaseModel over InMemoryFirestoreClient with a lock-based transaction."""

    def __init__(self):
        super().__init__(db=InMemoryFirestoreClient())
        self._lock = threading.Lock()

    def transact(self, collection_name, document_id, mutator):
        with self._lock:
            ref = self.db.collection(collection_name).document(document_id)
            snapshot = ref.get()
            current = snapshot.to_dict() if snapshot.exists else None
            replacement = self._stamp_replacement(current, mutator(current))
            ref.set(replacement)
            return copy.deepcopy(replacement)

    def documents(self, collection_name: str) -> Dict[str, Dict[str, Any]]:
        return self.db.collections.get(collection_name, {})


@pytest.fixture
def settings() -> Settings:
    return Settings(_env_file=None)


@pytest.fixture
def firestore_ops() -> InMemoryFirestoreOps:
    return InMemoryFirestoreOps()


@pytest.fixture
def lifecycle(firestore_ops, settings) -> ProjectLifecycle:
    return ProjectLifecycle.from_ops(firestore_ops, settings)


@pytest.fixture
def make_user(firestore_ops, settings):
    """Registers a user record directly in the users collection."""
    def _make_user(role: Role, username: Optional[str] = None) -> User:
        username = username or f"{role.value}_{uuid4().hex[:8]}"
        user = User(username=username, email=f"{username}@example.com", full_name=username.title(), role=role)
        record = user.model_dump(mode="json")
        record["hashed_password"] = "hashed_secret"
        firestore_ops.save(collection_name=settings.users_collection, data_model=record, document_id=str(user.user_id))
        return user
    return _make_user


@pytest.fixture
def owner(make_user) -> Principal:
    return make_user(Role.CLIENT, "owner").as_principal()


@pytest.fixture
def freelancer(make_user) -> Principal:
    return make_user(Role.FREELANCER, "freelancer").as_principal()


@pytest.fixture
def other_freelancer(make_user) -> Principal:
    return make_user(Role.FREELANCER, "other_freelancer").as_principal()


@pytest.fixture
def open_project(lifecycle, owner):
    return lifecycle.create_project(
        owner,
        ProjectCreate(
            title="Landing page",
            description="Build a landing page",
            budget=500,
            category="web",
            questions=["Why you?", "How long will it take?"],
        ),
    )


@pytest.fixture
def api_client(firestore_ops, monkeypatch) -> TestClient:
    """TestClient whose routers read and write the in-memory store."""
    for module in ("auth", "projects", "notifications", "users"):
        monkeypatch.setattr(f"freelance_hub.routers.{module}.get_firestore_ops_instance", lambda: firestore_ops)
    return TestClient(app)


@pytest.fixture
def auth_headers():
    def _auth_headers(principal: Principal) -> Dict[str, str]:
        token = create_access_token(data={"sub": str(principal.id)})
        return {"Authorization": f"Bearer {token}"}
    return _auth_headers
