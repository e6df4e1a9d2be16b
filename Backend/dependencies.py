import logging
from typing import Optional

import firebase_admin
from fastapi import Depends, HTTPException, Request, Response

from core.content_editor import EditorRegistry
from core.db_core import DatabaseManager
from core.config import get_settings
from core.session_store import SessionRegistry, SessionStore
from services.asset_uploader import AssetUploader
from services.identity_client import IdentityClient

logger = logging.getLogger(__name__)

SESSION_COOKIE = "console_session"

# --- Process-wide singletons, created lazily ---
_db_manager_instance: Optional[DatabaseManager] = None
_identity_client: Optional[IdentityClient] = None
_asset_uploader: Optional[AssetUploader] = None
_session_registry: Optional[SessionRegistry] = None
_editor_registry: Optional[EditorRegistry] = None


def get_db_manager() -> DatabaseManager:
    global _db_manager_instance
    if _db_manager_instance is None:
        if not firebase_admin._apps:
            raise RuntimeError("Firebase Admin SDK not initialized. Ensure initialize_firebase() is called in main.py first.")
        _db_manager_instance = DatabaseManager()
    return _db_manager_instance


def get_identity_client() -> IdentityClient:
    global _identity_client
    if _identity_client is None:
        _identity_client = IdentityClient()
    return _identity_client


def get_asset_uploader() -> AssetUploader:
    global _asset_uploader
    if _asset_uploader is None:
        _asset_uploader = AssetUploader()
    return _asset_uploader


def get_editor_registry() -> EditorRegistry:
    global _editor_registry
    if _editor_registry is None:
        _editor_registry = EditorRegistry(get_db_manager, get_asset_uploader())
    return _editor_registry


def get_session_registry() -> SessionRegistry:
    global _session_registry
    if _session_registry is None:
        _session_registry = SessionRegistry(get_identity_client())
        # A session's drafts do not outlive its sign-in.
        _session_registry.on_logout(lambda session_id: get_editor_registry().discard(session_id))
    return _session_registry


def set_session_cookie(response: Response, session: SessionStore) -> None:
    response.set_cookie(
        SESSION_COOKIE,
        session.session_id,
        httponly=True,
        samesite="lax",
        secure=get_settings().session_cookie_secure,
    )


def _bearer_token(request: Request) -> Optional[str]:
    header = request.headers.get("Authorization", "")
    if header.lower().startswith("bearer "):
        return header.split(" ", 1)[1].strip() or None
    return None


async def get_session(
    request: Request,
    response: Response,
    registry: SessionRegistry = Depends(get_session_registry),
) -> SessionStore:
    """
    Returns the console session named by the session cookie. A new session is created
    (and restored from a bearer ID token, if one is sent) when the cookie is missing, stale
    or names a session whose ID token has expired.
    """
    session = registry.get(request.cookies.get(SESSION_COOKIE))
    if session is not None and session.expired:
        logger.warning(f"⚠️ Session {session.session_id[:8]} token expired; signing out")
        await session.logout()
        session = None
    if session is None:
        session = registry.create()
        await session.restore(_bearer_token(request))
        set_session_cookie(response, session)
    return session


async def get_current_session(session: SessionStore = Depends(get_session)) -> SessionStore:
    """A dependency that rejects requests from sessions that are not signed in."""
    if not session.authenticated:
        raise HTTPException(
            status_code=401,
            detail="Authentication required.",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return session
