import copy

import pytest
from fastapi.testclient import TestClient

from core.content_editor import EditorRegistry
from core.db_core import DatabaseManager
from core.session_store import SessionRegistry
from services.identity_client import AuthenticationError


class FakeSnapshot:
    def __init__(self, data):
        self._data = data

    @property
    def exists(self):
        return self._data is not None

    def to_dict(self):
        return copy.deepcopy(self._data)


class FakeDocumentRef:
    def __init__(self, store, path):
        self.store = store
        self.path = path

    def get(self):
        self.store.reads.append(self.path)
        if self.path in self.store.fail_reads:
            raise RuntimeError(f"read failed for {self.path}")
        return FakeSnapshot(self.store.docs.get(self.path))

    def set(self, data):
        if self.path in self.store.fail_writes:
            raise RuntimeError(f"write failed for {self.path}")
        self.store.docs[self.path] = copy.deepcopy(data)
        self.store.writes.append(self.path)


class FakeCollection:
    def __init__(self, store, name):
        self.store = store
        self.name = name

    def document(self, name):
        return FakeDocumentRef(self.store, f"{self.name}/{name}")


class FakeFirestore:
    """Just enough of the Firestore client surface: collection().document().get()/set()."""

    def __init__(self):
        self.docs = {}
        self.reads = []
        self.writes = []
        self.fail_reads = set()
        self.fail_writes = set()

    def collection(self, name):
        return FakeCollection(self, name)


class FakeIdentity:
    def __init__(self):
        self.users = {"admin@example.com": ("uid-admin", "secret123")}

    def sign_in_with_password(self, email, password):
        account = self.users.get(email)
        if account is None or account[1] != password:
            raise AuthenticationError("Invalid email or password.", code="INVALID_LOGIN_CREDENTIALS")
        uid = account[0]
        return {"uid": uid, "email": email, "id_token": f"token-{uid}", "refresh_token": "refresh"}

    def create_user(self, email, password):
        if email in self.users:
            raise AuthenticationError("An account with this email already exists.", code="EMAIL_EXISTS")
        if len(password) < 6:
            raise AuthenticationError("Password should be at least 6 characters.", code="INVALID_ARGUMENT")
        uid = f"uid-{len(self.users) + 1}"
        self.users[email] = (uid, password)
        return uid

    def verify_id_token(self, id_token):
        if not id_token.startswith("token-"):
            raise AuthenticationError("Invalid session token.", code="INVALID_ID_TOKEN")
        uid = id_token[len("token-"):]
        email = next((email for email, (known, _) in self.users.items() if known == uid), None)
        return {"uid": uid, "email": email}


class StubUploader:
    def __init__(self, url="https://res.cloudinary.com/demo/image/upload/v1/pic.png"):
        self.url = url
        self.calls = []

    def upload_image(self, content, filename="upload", content_type=None):
        self.calls.append((filename, len(content), content_type))
        return self.url


@pytest.fixture
def firestore_client():
    return FakeFirestore()


@pytest.fixture
def db(firestore_client):
    return DatabaseManager(client=firestore_client)


@pytest.fixture
def uploader():
    return StubUploader()


@pytest.fixture
def identity():
    return FakeIdentity()


@pytest.fixture
def editor_registry(db, uploader):
    return EditorRegistry(lambda: db, uploader, message_ttl=3.0)


@pytest.fixture
def session_registry(identity, editor_registry):
    registry = SessionRegistry(identity)
    registry.on_logout(editor_registry.discard)
    return registry


@pytest.fixture
def client(session_registry, editor_registry):
    from dependencies import get_editor_registry, get_session_registry
    from main import app

    app.dependency_overrides[get_session_registry] = lambda: session_registry
    app.dependency_overrides[get_editor_registry] = lambda: editor_registry
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def admin_client(client):
    response = client.post("/api/auth/login", json={"email": "admin@example.com", "password": "secret123"})
    assert response.status_code == 200
    return client
