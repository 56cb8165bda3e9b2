"""
Object storage for visitor photos, outside Supabase.

Supports two modes:
- Local mode: writes photos under PHOTOS_DIR, served by the front-desk app
  from /photos/<name>
- R2 mode: Cloudflare R2 via the S3 API, public URLs under R2_PUBLIC_URL

Also resolves any stored photo reference to something a browser can show.
"""

import asyncio
import logging
from pathlib import Path
from urllib.parse import quote

from botocore.exceptions import BotoCoreError, ClientError

from portaria import config
from portaria.stores import ObjectStorage, StoreResult

logger = logging.getLogger(__name__)

# Refs written by the old mock-data mode point at bundled demo images
LEGACY_MOCK_PREFIX = "mock_photos"


def resolve_photo_url(photo_ref: str | None, storage: ObjectStorage) -> str | None:
    """
    Turn a stored photo reference into a displayable URL.

    Args:
        photo_ref: What the visitor or log row holds, can be:
            - Inline data URI (degraded upload): "data:image/jpeg;base64,..."
            - Legacy demo path: "mock_photos/ana.jpg"
            - Storage path: "photo_1700000000000_ab12cd34.jpg"

    Returns:
        URL for the photo, or None when there is no photo
    """
    if not photo_ref:
        return None
    if photo_ref.startswith("data:") or photo_ref.startswith(LEGACY_MOCK_PREFIX):
        return photo_ref
    return storage.get_public_url(photo_ref)


class LocalDirectoryStorage:
    def __init__(self, root: Path = None, url_prefix: str = "/photos"):
        self.root = Path(root if root is not None else config.PHOTOS_DIR)
        self.url_prefix = url_prefix.rstrip("/")

    def _write(self, target: Path, data: bytes) -> None:
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(data)

    async def upload(self, path: str, data: bytes, content_type: str) -> StoreResult:
        target = self.root / Path(path).name
        try:
            await asyncio.to_thread(self._write, target, data)
        except OSError as e:
            logger.error("Could not write photo %s: %s", target, e)
            return StoreResult.failure(f"Could not write photo: {e}")
        return StoreResult.ok(path)

    def get_public_url(self, path: str) -> str:
        return f"{self.url_prefix}/{quote(Path(path).name)}"


class R2ObjectStorage:
    """Photos in a Cloudflare R2 bucket.

    The boto3 client is created lazily so importing this module never needs
    credentials.
    """

    def __init__(
        self,
        bucket: str = None,
        public_url: str = None,
        prefix: str = "visitor_photos",
        client=None,
    ):
        self.bucket = bucket or config.R2_BUCKET_NAME
        self.public_url = (public_url if public_url is not None else config.R2_PUBLIC_URL).rstrip("/")
        self.prefix = prefix.strip("/")
        self._client = client

    def _get_client(self):
        """Get or create a boto3 S3 client for R2 writes."""
        if self._client is not None:
            return self._client

        import boto3

        endpoint_url = f"https://{config.R2_ACCOUNT_ID}.r2.cloudflarestorage.com"
        self._client = boto3.client(
            "s3",
            endpoint_url=endpoint_url,
            aws_access_key_id=config.R2_ACCESS_KEY_ID,
            aws_secret_access_key=config.R2_SECRET_ACCESS_KEY,
        )
        return self._client

    def _key(self, path: str) -> str:
        return f"{self.prefix}/{path}" if self.prefix else path

    async def upload(self, path: str, data: bytes, content_type: str) -> StoreResult:
        try:
            client = self._get_client()
            await asyncio.to_thread(
                client.put_object,
                Bucket=self.bucket,
                Key=self._key(path),
                Body=data,
                ContentType=content_type,
            )
        except (BotoCoreError, ClientError) as e:
            logger.error("R2 upload of %s failed: %s", path, e)
            return StoreResult.failure(f"R2 upload failed: {e}")
        return StoreResult.ok(path)

    def get_public_url(self, path: str) -> str:
        return f"{self.public_url}/{quote(self._key(path))}"
