import pytest
import requests

from core.config import Settings
from services import identity_client
from services.identity_client import AuthenticationError, IdentityClient


class FakeResponse:
    def __init__(self, status_code, body):
        self.status_code = status_code
        self.ok = 200 <= status_code < 300
        self._body = body

    def json(self):
        return self._body


def _client(api_key="web-key"):
    return IdentityClient(Settings(firebase_api_key=api_key))


def test_sign_in_returns_tokens(monkeypatch):
    captured = {}

    def fake_post(url, params=None, json=None, timeout=None):
        captured.update(url=url, params=params, json=json)
        body = {"localId": "uid-1", "email": "a@b.co", "idToken": "id", "refreshToken": "rt", "expiresIn": "3600"}
        return FakeResponse(200, body)

    monkeypatch.setattr(identity_client.requests, "post", fake_post)

    result = _client().sign_in_with_password("a@b.co", "pw123456")

    assert result == {
        "uid": "uid-1",
        "email": "a@b.co",
        "id_token": "id",
        "refresh_token": "rt",
        "expires_in": 3600,
    }
    assert captured["url"].endswith("/accounts:signInWithPassword")
    assert captured["params"] == {"key": "web-key"}
    assert captured["json"]["returnSecureToken"] is True


@pytest.mark.parametrize("code,message", [
    ("INVALID_LOGIN_CREDENTIALS", "Invalid email or password."),
    ("EMAIL_NOT_FOUND", "Invalid email or password."),
    ("TOO_MANY_ATTEMPTS_TRY_LATER : Access disabled", "Too many attempts. Try again later."),
])
def test_rejected_sign_in_raises_authentication_error(monkeypatch, code, message):
    monkeypatch.setattr(
        identity_client.requests, "post",
        lambda *args, **kwargs: FakeResponse(400, {"error": {"message": code}}),
    )
    with pytest.raises(AuthenticationError) as excinfo:
        _client().sign_in_with_password("a@b.co", "bad")
    assert excinfo.value.message == message


def test_sign_in_without_api_key_fails():
    with pytest.raises(AuthenticationError):
        _client(api_key=None).sign_in_with_password("a@b.co", "pw")


def test_sign_in_network_failure(monkeypatch):
    def broken_post(*args, **kwargs):
        raise requests.exceptions.Timeout("slow")

    monkeypatch.setattr(identity_client.requests, "post", broken_post)
    with pytest.raises(AuthenticationError) as excinfo:
        _client().sign_in_with_password("a@b.co", "pw")
    assert excinfo.value.code == "NETWORK_ERROR"


def test_create_user_maps_duplicate_email(monkeypatch):
    def fake_create_user(**kwargs):
        raise identity_client.auth.EmailAlreadyExistsError("exists", None, None)

    monkeypatch.setattr(identity_client.auth, "create_user", fake_create_user)
    with pytest.raises(AuthenticationError) as excinfo:
        _client().create_user("a@b.co", "pw123456")
    assert excinfo.value.code == "EMAIL_EXISTS"


def test_create_user_maps_password_policy(monkeypatch):
    def fake_create_user(**kwargs):
        raise ValueError("Invalid password string. Password must be a string at least 6 characters long.")

    monkeypatch.setattr(identity_client.auth, "create_user", fake_create_user)
    with pytest.raises(AuthenticationError) as excinfo:
        _client().create_user("a@b.co", "123")
    assert "6 characters" in excinfo.value.message


def test_create_user_returns_uid(monkeypatch):
    class Record:
        uid = "uid-9"

    monkeypatch.setattr(identity_client.auth, "create_user", lambda **kwargs: Record())
    assert _client().create_user("a@b.co", "pw123456") == "uid-9"


def test_verify_id_token_wraps_errors(monkeypatch):
    def fake_verify(token):
        raise ValueError("bad token")

    monkeypatch.setattr(identity_client.auth, "verify_id_token", fake_verify)
    with pytest.raises(AuthenticationError):
        _client().verify_id_token("nope")
