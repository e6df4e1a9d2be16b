import logging
from typing import Optional

import requests

from core.config import Settings, get_settings

logger = logging.getLogger(__name__)

CLOUDINARY_UPLOAD_URL = "https://api.cloudinary.com/v1_1/{cloud_name}/image/upload"


class AssetUploader:
    """
    Sends images to Cloudinary's unsigned upload endpoint.
    Every call creates a new remote asset; nothing is ever deleted remotely.
    """

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()

    def upload_image(self, content: bytes, filename: str = "upload", content_type: Optional[str] = None) -> Optional[str]:
        """
        Uploads the file and returns its hosted secure URL.
        Returns None when credentials are missing, the host answers non-2xx, or the network fails.
        """
        cloud_name = self.settings.cloudinary_cloud_name
        upload_preset = self.settings.cloudinary_upload_preset

        if not cloud_name or not upload_preset:
            logger.error("❌ Missing Cloudinary credentials (CLOUDINARY_CLOUD_NAME, CLOUDINARY_UPLOAD_PRESET).")
            return None

        url = CLOUDINARY_UPLOAD_URL.format(cloud_name=cloud_name)
        files = {"file": (filename, content, content_type or "application/octet-stream")}
        data = {"upload_preset": upload_preset}

        try:
            response = requests.post(url, files=files, data=data, timeout=self.settings.http_timeout_seconds)
        except requests.exceptions.RequestException as e:
            logger.error(f"❌ Upload failed: {e}")
            return None

        if not response.ok:
            logger.error(f"❌ Cloudinary error ({response.status_code}): {response.text[:500]}")
            return None

        try:
            secure_url = response.json().get("secure_url")
        except ValueError:
            logger.error("❌ Cloudinary returned a non-JSON body.")
            return None

        if not secure_url:
            logger.error("❌ Cloudinary response did not include a secure_url.")
            return None

        logger.info(f"✅ Image uploaded: {secure_url}")
        return secure_url
