import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional

import firebase_admin
from firebase_admin import credentials, firestore

from core.config import get_settings

logger = logging.getLogger(__name__)

# Fixed two-level addressing: <collection>/<document name>
CONTENT_COLLECTION = "content"
SECTIONS_COLLECTION = "sections"


def initialize_firebase() -> bool:
    """
    Initializes the Firebase Admin SDK once per process.
    Credentials come from the FIREBASE_CREDENTIALS env var (JSON string) or a local
    firebase-credentials.json. Returns True when an app is available afterwards.
    """
    if firebase_admin._apps:
        logger.info("ℹ️ Firebase Admin SDK already initialized.")
        return True

    try:
        firebase_creds = get_settings().firebase_credentials
        if firebase_creds:
            cred = credentials.Certificate(json.loads(firebase_creds))
        else:
            possible_keys = [
                Path(__file__).parent.parent / "firebase-credentials.json",
                Path(__file__).parent.parent.parent / "firebase-credentials.json",
                Path("firebase-credentials.json"),
            ]
            cred_path = next((path for path in possible_keys if path.exists()), None)
            if cred_path is None:
                logger.warning("⚠️ 'firebase-credentials.json' not found and FIREBASE_CREDENTIALS is unset.")
                return False
            cred = credentials.Certificate(str(cred_path))

        firebase_admin.initialize_app(cred)
        logger.info("✅ Firebase Admin SDK initialized successfully.")
        return True
    except Exception as e:
        logger.error(f"❌ Failed to initialize Firebase Admin SDK: {e}")
        return False


def _convert_firestore_timestamps(obj: Any) -> Any:
    """
    Recursively converts Firestore DatetimeWithNanoseconds objects (and standard datetime objects)
    to ISO 8601 strings so documents stay JSON serializable.
    """
    if isinstance(obj, dict):
        return {k: _convert_firestore_timestamps(v) for k, v in obj.items()}
    elif isinstance(obj, list):
        return [_convert_firestore_timestamps(elem) for elem in obj]
    elif isinstance(obj, datetime):
        return obj.isoformat()
    return obj


class DatabaseManager:
    """
    Handles all interactions with the Firestore document store.
    Documents are read and written whole; there is no partial-field update and no query.
    """

    def __init__(self, client: Any = None):
        """
        Uses the given Firestore-compatible client, or the default one from the
        initialized Firebase Admin SDK.
        """
        if client is not None:
            self.db = client
            return
        try:
            self.db = firestore.client()
        except Exception as e:
            logger.error(f"❌ DatabaseManager failed to get Firestore client. Is Firebase Admin SDK initialized? {e}")
            raise

    def get_document(self, collection: str, name: str) -> Optional[Dict[str, Any]]:
        """Returns the document's data, or None when it does not exist. Read errors propagate."""
        snapshot = self.db.collection(collection).document(name).get()
        if not snapshot.exists:
            logger.warning(f"⚠️ Document {collection}/{name} does not exist.")
            return None
        return _convert_firestore_timestamps(snapshot.to_dict() or {})

    def set_document(self, collection: str, name: str, data: Dict[str, Any]) -> None:
        """Overwrites (or creates) the whole document. Last write wins."""
        self.db.collection(collection).document(name).set(data)
        logger.info(f"💾 Saved {collection}/{name}")
