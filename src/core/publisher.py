"""Best-effort upload of generated portraits to the Printify media library."""

import base64
import logging
import time
from typing import Callable, Optional

import requests

from src.core.errors import PublishError
from src.core.models import Category, PublishedAsset

logger = logging.getLogger(__name__)


class PrintifyPublisher:
    """Uploads finished portraits so a later print order can reference them.

    Publishing is an enhancement: ``publish`` never raises, and an empty
    PublishedAsset is a normal outcome.

    Attributes:
        api_key: Printify API key
        shop_id: Printify shop identifier
        api_url: Base URL of the Printify API
        timeout: Upload timeout in seconds
    """

    DEFAULT_API_URL = "https://api.printify.com/v1"

    def __init__(
        self,
        api_key: Optional[str] = None,
        shop_id: Optional[str] = None,
        api_url: Optional[str] = None,
        timeout: int = 60,
        clock: Callable[[], float] = time.time,
    ):
        self.api_key = api_key
        self.shop_id = shop_id
        self.api_url = (api_url or self.DEFAULT_API_URL).rstrip("/")
        self.timeout = timeout
        self._clock = clock

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key and self.shop_id)

    def file_name(self, category: Category) -> str:
        """Unique upload name built from the category and the current time."""
        return f"portrait-{Category.parse(category).value}-{int(self._clock() * 1000)}.jpg"

    def publish(self, image_bytes: bytes, category: Category) -> PublishedAsset:
        """Upload an image, returning its remote id and URL when that worked.

        Args:
            image_bytes: Final image bytes (JPEG)
            category: Subject category, used in the upload name

        Returns:
            PublishedAsset; both fields are None when publishing is not
            configured or the upload failed
        """
        if not self.is_configured:
            logger.debug("Printify not configured, skipping upload")
            return PublishedAsset()

        try:
            return self._upload(image_bytes, category)
        except PublishError as e:
            # Non-fatal: the portrait itself is still returned
            logger.error(f"Printify upload error: {e}")
            return PublishedAsset()
        except Exception as e:
            logger.error(f"Unexpected Printify upload error: {e}")
            return PublishedAsset()

    def _upload(self, image_bytes: bytes, category: Category) -> PublishedAsset:
        payload = {
            "file_name": self.file_name(category),
            "contents": base64.b64encode(image_bytes).decode("utf-8"),
        }

        try:
            response = requests.post(
                f"{self.api_url}/uploads/images.json",
                headers={
                    "Content-Type": "application/json",
                    "Authorization": f"Bearer {self.api_key}",
                },
                json=payload,
                timeout=self.timeout,
            )
        except requests.exceptions.RequestException as e:
            raise PublishError(f"upload request failed: {e}") from e

        if not response.ok:
            raise PublishError(f"upload failed ({response.status_code}): {response.text}")

        try:
            data = response.json()
        except ValueError as e:
            raise PublishError("upload returned invalid JSON") from e

        if not isinstance(data, dict) or not data.get("id"):
            raise PublishError(f"upload response has no image id: {data}")

        url = data.get("preview_url") or data.get("url")
        if url is not None and not isinstance(url, str):
            logger.warning(f"Ignoring non-string Printify image URL: {url!r}")
            url = None

        asset = PublishedAsset(remote_asset_id=str(data["id"]), remote_asset_url=url)
        logger.info(f"Uploaded {payload['file_name']} to Printify as {asset.remote_asset_id}")
        return asset
