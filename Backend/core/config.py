import os
from dataclasses import dataclass, field
from typing import List, Optional

from dotenv import load_dotenv

# Load environment variables
load_dotenv()


def _split_origins(raw: Optional[str]) -> List[str]:
    if not raw:
        return ["http://localhost:5173"]
    return [origin.strip() for origin in raw.split(",") if origin.strip()]


@dataclass
class Settings:
    """Runtime configuration gathered from the environment (.env supported)."""
    firebase_credentials: Optional[str] = None
    firebase_api_key: Optional[str] = None
    cloudinary_cloud_name: Optional[str] = None
    cloudinary_upload_preset: Optional[str] = None
    cors_origins: List[str] = field(default_factory=lambda: ["http://localhost:5173"])
    message_ttl_seconds: float = 3.0
    http_timeout_seconds: float = 15.0
    log_level: str = "INFO"
    session_idle_seconds: float = 3600.0
    session_cookie_secure: bool = False

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            firebase_credentials=os.getenv("FIREBASE_CREDENTIALS"),
            firebase_api_key=os.getenv("FIREBASE_API_KEY"),
            cloudinary_cloud_name=os.getenv("CLOUDINARY_CLOUD_NAME"),
            cloudinary_upload_preset=os.getenv("CLOUDINARY_UPLOAD_PRESET"),
            cors_origins=_split_origins(os.getenv("CORS_ORIGINS")),
            message_ttl_seconds=float(os.getenv("MESSAGE_TTL_SECONDS", "3")),
            http_timeout_seconds=float(os.getenv("HTTP_TIMEOUT_SECONDS", "15")),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
            session_idle_seconds=float(os.getenv("SESSION_IDLE_SECONDS", "3600")),
            session_cookie_secure=os.getenv("SESSION_COOKIE_SECURE", "false").lower() in ("1", "true", "yes"),
        )


_settings: Optional[Settings] = None


def get_settings() -> Settings:
    global _settings
    if _settings is None:
        _settings = Settings.from_env()
    return _settings
