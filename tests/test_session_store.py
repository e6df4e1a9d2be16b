import asyncio

import pytest

from core.session_store import SessionRegistry, SessionStore
from services.identity_client import AuthenticationError


def test_new_session_is_loading_until_restored(identity):
    session = SessionStore(identity)
    assert session.loading is True
    assert session.authenticated is False

    asyncio.run(session.restore(None))

    assert session.loading is False
    assert session.authenticated is False


def test_restore_with_valid_token_authenticates(identity):
    session = SessionStore(identity)
    asyncio.run(session.restore("token-uid-admin"))
    assert session.snapshot() == {
        "loading": False,
        "authenticated": True,
        "user": {"uid": "uid-admin", "email": "admin@example.com"},
    }


def test_restore_with_invalid_token_resolves_unauthenticated(identity):
    session = SessionStore(identity)
    asyncio.run(session.restore("garbage"))
    assert session.loading is False
    assert session.user is None


def test_invalid_login_leaves_session_unauthenticated(identity):
    session = SessionStore(identity)
    asyncio.run(session.restore())

    with pytest.raises(AuthenticationError) as excinfo:
        asyncio.run(session.login("admin@example.com", "wrong"))

    assert excinfo.value.message == "Invalid email or password."
    assert session.authenticated is False


def test_login_and_logout_notify_subscribers(identity):
    session = SessionStore(identity)
    seen = []
    unsubscribe = session.subscribe(seen.append)

    asyncio.run(session.restore())
    asyncio.run(session.login("admin@example.com", "secret123"))
    asyncio.run(session.logout())
    unsubscribe()
    asyncio.run(session.login("admin@example.com", "secret123"))

    assert [state["authenticated"] for state in seen] == [False, True, False]
    assert session.user.id_token == "token-uid-admin"


def test_failing_subscriber_does_not_block_others(identity):
    session = SessionStore(identity)
    seen = []

    def broken(state):
        raise ValueError("boom")

    session.subscribe(broken)
    session.subscribe(seen.append)
    asyncio.run(session.restore())

    assert len(seen) == 1


def test_signup_creates_account_and_signs_in(identity):
    session = SessionStore(identity)
    asyncio.run(session.restore())

    user = asyncio.run(session.signup("new@example.com", "longpassword"))

    assert user.email == "new@example.com"
    assert session.authenticated is True


@pytest.mark.parametrize("email,password,code", [
    ("admin@example.com", "whatever123", "EMAIL_EXISTS"),
    ("short@example.com", "123", "INVALID_ARGUMENT"),
])
def test_signup_failures_raise(identity, email, password, code):
    session = SessionStore(identity)
    asyncio.run(session.restore())
    with pytest.raises(AuthenticationError) as excinfo:
        asyncio.run(session.signup(email, password))
    assert excinfo.value.code == code
    assert session.authenticated is False


class FakeClock:
    def __init__(self, now=1000.0):
        self.now = now

    def __call__(self):
        return self.now


def test_registry_holds_only_signed_in_sessions(identity):
    registry = SessionRegistry(identity, idle_timeout=60)
    dropped = []
    registry.on_logout(dropped.append)

    session = registry.create()
    asyncio.run(session.restore())
    assert registry.get(session.session_id) is None
    assert len(registry) == 0

    asyncio.run(session.login("admin@example.com", "secret123"))
    assert registry.get(session.session_id) is session
    assert registry.get("unknown") is None
    assert registry.get(None) is None

    asyncio.run(session.logout())
    assert registry.get(session.session_id) is None
    assert len(registry) == 0
    # Once for the initial unauthenticated resolution, once for the logout.
    assert dropped == [session.session_id, session.session_id]


def test_failed_login_is_not_registered(identity):
    registry = SessionRegistry(identity, idle_timeout=60)
    session = registry.create()
    asyncio.run(session.restore())

    with pytest.raises(AuthenticationError):
        asyncio.run(session.login("admin@example.com", "wrong"))

    assert len(registry) == 0


def test_idle_sessions_are_closed(identity):
    clock = FakeClock()
    registry = SessionRegistry(identity, idle_timeout=60, clock=clock)
    dropped = []
    registry.on_logout(dropped.append)

    idle = registry.create()
    active = registry.create()
    for session in (idle, active):
        asyncio.run(session.login("admin@example.com", "secret123"))
    assert len(registry) == 2

    clock.now += 45
    assert registry.get(active.session_id) is active
    clock.now += 30

    assert registry.get(idle.session_id) is None
    assert registry.get(active.session_id) is active
    assert dropped == [idle.session_id]


def test_restored_session_expires_with_its_token(identity, monkeypatch):
    monkeypatch.setattr(identity, "verify_id_token", lambda token: {"uid": "uid-admin", "exp": 2000})
    clock = FakeClock(now=1500.0)
    session = SessionStore(identity, clock=clock)

    asyncio.run(session.restore("token-uid-admin"))
    assert session.authenticated is True
    assert session.expired is False

    clock.now = 2000.0
    assert session.expired is True


def test_login_expiry_comes_from_token_lifetime(identity, monkeypatch):
    result = {"uid": "uid-admin", "email": "admin@example.com", "id_token": "token-uid-admin", "expires_in": 3600}
    monkeypatch.setattr(identity, "sign_in_with_password", lambda email, password: result)
    clock = FakeClock(now=1000.0)
    session = SessionStore(identity, clock=clock)

    user = asyncio.run(session.login("admin@example.com", "secret123"))

    assert user.expires_at == 4600.0
    clock.now = 4599.0
    assert session.expired is False
    clock.now = 4600.0
    assert session.expired is True
