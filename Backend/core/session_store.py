import asyncio
import logging
import secrets
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

from core.config import get_settings
from services.identity_client import AuthenticationError, IdentityClient

logger = logging.getLogger(__name__)

Subscriber = Callable[[Dict[str, Any]], None]


@dataclass
class SessionUser:
    uid: str
    email: Optional[str] = None
    id_token: Optional[str] = None
    refresh_token: Optional[str] = None
    # Epoch seconds at which the ID token stops being valid.
    expires_at: Optional[float] = None

    def public(self) -> Dict[str, Any]:
        return {"uid": self.uid, "email": self.email}


class SessionStore:
    """
    Observable authentication state for one console session.

    `loading` is True only until the initial state is resolved (see `restore`).
    Every change of user or loading flag is pushed to all subscribers.
    """

    def __init__(
        self,
        identity: IdentityClient,
        session_id: Optional[str] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.identity = identity
        self.session_id = session_id or secrets.token_urlsafe(24)
        self.clock = clock
        self.user: Optional[SessionUser] = None
        self.loading = True
        self._subscribers: List[Subscriber] = []

    @property
    def authenticated(self) -> bool:
        return self.user is not None

    @property
    def expired(self) -> bool:
        """True once the signed-in user's ID token has passed its expiry time."""
        if self.user is None or self.user.expires_at is None:
            return False
        return self.clock() >= self.user.expires_at

    def snapshot(self) -> Dict[str, Any]:
        return {
            "loading": self.loading,
            "authenticated": self.authenticated,
            "user": self.user.public() if self.user else None,
        }

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """Registers a listener and returns a function that removes it."""
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def _set_state(self, user: Optional[SessionUser]) -> None:
        self.user = user
        self.loading = False
        state = self.snapshot()
        logger.info(f"👤 Auth state changed for session {self.session_id[:8]}: {state['user']}")
        for callback in list(self._subscribers):
            try:
                callback(state)
            except Exception as e:
                logger.error(f"❌ Session subscriber failed: {e}", exc_info=True)

    async def restore(self, id_token: Optional[str] = None) -> None:
        """Resolves the initial state from a persisted ID token, if any."""
        if not id_token:
            self._set_state(None)
            return
        try:
            claims = await asyncio.to_thread(self.identity.verify_id_token, id_token)
        except AuthenticationError as e:
            logger.warning(f"⚠️ Could not restore session: {e.message}")
            self._set_state(None)
            return
        self._set_state(SessionUser(
            uid=claims["uid"],
            email=claims.get("email"),
            id_token=id_token,
            expires_at=claims.get("exp"),
        ))

    async def login(self, email: str, password: str) -> SessionUser:
        logger.info("🔑 Attempting login...")
        try:
            result = await asyncio.to_thread(self.identity.sign_in_with_password, email, password)
        except AuthenticationError as e:
            logger.error(f"❌ Login failed: {e.message}")
            raise
        expires_in = result.get("expires_in")
        user = SessionUser(
            uid=result["uid"],
            email=result.get("email"),
            id_token=result.get("id_token"),
            refresh_token=result.get("refresh_token"),
            expires_at=self.clock() + expires_in if expires_in else None,
        )
        self._set_state(user)
        logger.info("✅ Login successful")
        return user

    async def signup(self, email: str, password: str) -> SessionUser:
        logger.info("✍️ Attempting signup...")
        try:
            await asyncio.to_thread(self.identity.create_user, email, password)
        except AuthenticationError as e:
            logger.error(f"❌ Signup failed: {e.message}")
            raise
        logger.info("✅ Signup successful")
        return await self.login(email, password)

    async def logout(self) -> None:
        logger.info("🚪 Logging out...")
        self._set_state(None)
        logger.info("✅ Logged out")


class SessionRegistry:
    """
    Maps console-session ids (held in a cookie) to their SessionStore.

    Only signed-in sessions are held: a store joins when it authenticates and
    leaves on logout, or once it has gone `idle_timeout` seconds without a request.
    """

    def __init__(
        self,
        identity: IdentityClient,
        idle_timeout: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.identity = identity
        self.idle_timeout = get_settings().session_idle_seconds if idle_timeout is None else idle_timeout
        self.clock = clock
        self._sessions: Dict[str, SessionStore] = {}
        self._last_seen: Dict[str, float] = {}
        self._on_logout: List[Callable[[str], None]] = []

    def on_logout(self, callback: Callable[[str], None]) -> None:
        self._on_logout.append(callback)

    def get(self, session_id: Optional[str]) -> Optional[SessionStore]:
        self.sweep()
        if not session_id:
            return None
        store = self._sessions.get(session_id)
        if store is not None:
            self._last_seen[session_id] = self.clock()
        return store

    def create(self) -> SessionStore:
        """Returns a new store; it is only registered once it signs in."""
        store = SessionStore(self.identity)

        def _watch(state: Dict[str, Any]) -> None:
            if state["authenticated"]:
                self._sessions[store.session_id] = store
                self._last_seen[store.session_id] = self.clock()
            else:
                self.close(store.session_id)

        store.subscribe(_watch)
        return store

    def close(self, session_id: str) -> None:
        """Forgets the session and runs the logout hooks for it."""
        self._sessions.pop(session_id, None)
        self._last_seen.pop(session_id, None)
        for callback in self._on_logout:
            callback(session_id)

    def sweep(self) -> None:
        now = self.clock()
        idle = [session_id for session_id, seen in self._last_seen.items() if now - seen > self.idle_timeout]
        for session_id in idle:
            logger.info(f"⏳ Closing idle session {session_id[:8]}")
            self.close(session_id)

    def __len__(self) -> int:
        return len(self._sessions)
