import logging
from typing import Any, Dict, Optional

import requests
from firebase_admin import auth
from firebase_admin import exceptions as firebase_exceptions

from core.config import Settings, get_settings

logger = logging.getLogger(__name__)

IDENTITY_TOOLKIT_BASE = "https://identitytoolkit.googleapis.com/v1"

# Firebase Auth REST error codes -> message shown on the login form
_ERROR_MESSAGES = {
    "EMAIL_NOT_FOUND": "Invalid email or password.",
    "INVALID_PASSWORD": "Invalid email or password.",
    "INVALID_LOGIN_CREDENTIALS": "Invalid email or password.",
    "INVALID_EMAIL": "The email address is badly formatted.",
    "USER_DISABLED": "This account has been disabled.",
    "TOO_MANY_ATTEMPTS_TRY_LATER": "Too many attempts. Try again later.",
    "EMAIL_EXISTS": "An account with this email already exists.",
    "WEAK_PASSWORD": "Password should be at least 6 characters.",
}


class AuthenticationError(Exception):
    """Raised for bad credentials, duplicate accounts or password-policy violations."""

    def __init__(self, message: str, code: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.code = code


def _message_for(code: str) -> str:
    # REST errors sometimes carry detail after the code, e.g. "WEAK_PASSWORD : Password should be..."
    base_code = code.split(":")[0].strip()
    return _ERROR_MESSAGES.get(base_code, "Authentication failed.")


class IdentityClient:
    """
    Email/password identity operations against Firebase Authentication.
    Password sign-in goes through the Identity Toolkit REST API; account creation and
    token verification go through the Firebase Admin SDK.
    """

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()

    def sign_in_with_password(self, email: str, password: str) -> Dict[str, Any]:
        api_key = self.settings.firebase_api_key
        if not api_key:
            logger.error("❌ FIREBASE_API_KEY is not configured; password sign-in is unavailable.")
            raise AuthenticationError("Sign-in is not configured.", code="CONFIGURATION_NOT_FOUND")

        url = f"{IDENTITY_TOOLKIT_BASE}/accounts:signInWithPassword"
        payload = {"email": email, "password": password, "returnSecureToken": True}

        try:
            response = requests.post(url, params={"key": api_key}, json=payload, timeout=self.settings.http_timeout_seconds)
        except requests.exceptions.RequestException as e:
            logger.error(f"❌ Identity provider unreachable: {e}")
            raise AuthenticationError("Could not reach the identity provider.", code="NETWORK_ERROR") from e

        if not response.ok:
            try:
                code = response.json().get("error", {}).get("message", "UNKNOWN")
            except ValueError:
                code = "UNKNOWN"
            logger.warning(f"⚠️ Sign-in rejected for {email}: {code}")
            raise AuthenticationError(_message_for(code), code=code.split(":")[0].strip())

        data = response.json()
        return {
            "uid": data.get("localId"),
            "email": data.get("email", email),
            "id_token": data.get("idToken"),
            "refresh_token": data.get("refreshToken"),
            # Seconds until the ID token expires; the REST API sends it as a string.
            "expires_in": int(data.get("expiresIn", 3600)),
        }

    def create_user(self, email: str, password: str) -> str:
        """Creates the account and returns its uid."""
        try:
            user = auth.create_user(email=email, password=password)
        except auth.EmailAlreadyExistsError as e:
            raise AuthenticationError(_ERROR_MESSAGES["EMAIL_EXISTS"], code="EMAIL_EXISTS") from e
        except ValueError as e:
            # The Admin SDK validates email format and password length locally.
            raise AuthenticationError(str(e), code="INVALID_ARGUMENT") from e
        except firebase_exceptions.FirebaseError as e:
            logger.error(f"❌ Firebase rejected account creation for {email}: {e}")
            raise AuthenticationError("Could not create the account.", code="FIREBASE_ERROR") from e
        logger.info(f"✅ Created new user: {email} ({user.uid})")
        return user.uid

    def verify_id_token(self, id_token: str) -> Dict[str, Any]:
        """Returns the decoded token claims; raises AuthenticationError for any invalid token."""
        try:
            return auth.verify_id_token(id_token)
        except Exception as e:
            raise AuthenticationError(f"Invalid session token: {e}", code="INVALID_ID_TOKEN") from e
