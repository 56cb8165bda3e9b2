"""
Photo pipeline: captured image -> durable object + display URL.

Capture itself happens in the browser (a canvas snapshot sent as a data URL)
or comes from a file; this module only stores what it is given.

store() uploads under a generated unique name, then asks the storage for the
public URL. If the upload fails it falls back to an inline data URI and flags
the result as degraded, so the front desk can warn that the photo lives in the
database row rather than in the bucket. No retries.
"""

import base64
import binascii
import io
import logging
import mimetypes
import secrets
import string
import time
from dataclasses import dataclass
from pathlib import Path

from PIL import Image, UnidentifiedImageError

from portaria.errors import PhotoRequired
from portaria.stores import ObjectStorage

logger = logging.getLogger(__name__)

DEFAULT_EXTENSION = "jpg"
DEFAULT_CONTENT_TYPE = "image/jpeg"
_SUFFIX_ALPHABET = string.ascii_lowercase + string.digits


def _random_suffix(length: int = 8) -> str:
    return "".join(secrets.choice(_SUFFIX_ALPHABET) for _ in range(length))


def _epoch_ms() -> int:
    return int(time.time() * 1000)


def generate_photo_name(extension: str) -> str:
    """photo_<epoch-ms>_<8 random chars>.<ext>"""
    return f"photo_{_epoch_ms()}_{_random_suffix()}.{extension}"


def generate_inline_ref() -> str:
    """Synthetic, locally unique id for a photo that never reached storage."""
    return f"photo_{_epoch_ms()}_{_random_suffix()}"


@dataclass
class RawImage:
    data: bytes
    filename: str = ""
    content_type: str = ""

    @classmethod
    def from_file(cls, path: Path) -> "RawImage":
        path = Path(path)
        content_type, _ = mimetypes.guess_type(path.name)
        return cls(data=path.read_bytes(), filename=path.name, content_type=content_type or "")

    @classmethod
    def from_data_url(cls, data_url: str, filename: str = "") -> "RawImage":
        """Decode a `data:image/jpeg;base64,...` URL as produced by canvas.toDataURL()."""
        if not data_url.startswith("data:") or "," not in data_url:
            raise ValueError("Not a data URL")
        header, payload = data_url[5:].split(",", 1)
        if not header.endswith(";base64"):
            raise ValueError("Only base64 data URLs are supported")
        try:
            data = base64.b64decode(payload, validate=True)
        except binascii.Error as e:
            raise ValueError(f"Invalid base64 payload: {e}") from e
        return cls(data=data, filename=filename, content_type=header[: -len(";base64")])

    @property
    def extension(self) -> str:
        """Extension from the filename, else sniffed from the bytes."""
        suffix = Path(self.filename).suffix.lstrip(".").lower()
        if suffix:
            return suffix
        try:
            with Image.open(io.BytesIO(self.data)) as img:
                fmt = (img.format or "").lower()
        except (UnidentifiedImageError, OSError):
            return DEFAULT_EXTENSION
        if fmt == "jpeg":
            return "jpg"
        return fmt or DEFAULT_EXTENSION

    @property
    def mime_type(self) -> str:
        if self.content_type:
            return self.content_type
        guessed, _ = mimetypes.guess_type(f"x.{self.extension}")
        return guessed or DEFAULT_CONTENT_TYPE

    def to_data_url(self) -> str:
        encoded = base64.b64encode(self.data).decode("ascii")
        return f"data:{self.mime_type};base64,{encoded}"


@dataclass
class StoredPhoto:
    ref: str
    url: str
    degraded: bool = False

    @property
    def persisted_ref(self) -> str:
        """What visitor and log rows should hold.

        A degraded photo only exists as its data URI, so that is what gets
        saved; the synthetic ref alone could never be resolved to an image.
        """
        return self.url if self.degraded else self.ref


class PhotoPipeline:
    def __init__(self, storage: ObjectStorage):
        self.storage = storage

    async def store(self, image: RawImage) -> StoredPhoto:
        if image is None or not image.data:
            raise PhotoRequired("No photo was captured")

        path = generate_photo_name(image.extension)
        result = await self.storage.upload(path, image.data, image.mime_type)
        if result.error:
            logger.warning("Photo upload failed, storing inline instead: %s", result.error)
            return StoredPhoto(ref=generate_inline_ref(), url=image.to_data_url(), degraded=True)

        url = self.storage.get_public_url(path)
        logger.info("Stored photo %s", path)
        return StoredPhoto(ref=path, url=url)
