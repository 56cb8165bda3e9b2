"""Tests for the photo pipeline."""

import asyncio
import base64
import re
from unittest.mock import AsyncMock

import pytest

from portaria.errors import PhotoRequired
from portaria.photos import PhotoPipeline, RawImage, StoredPhoto, generate_photo_name
from portaria.stores import InMemoryObjectStorage, StoreResult

PHOTO_NAME = re.compile(r"^photo_\d{13}_[a-z0-9]{8}\.jpg$")


class TestPhotoNames:
    def test_name_pattern(self):
        assert PHOTO_NAME.match(generate_photo_name("jpg"))

    def test_names_are_unique(self):
        names = {generate_photo_name("jpg") for _ in range(50)}
        assert len(names) == 50


class TestRawImage:
    def test_extension_from_filename(self, jpeg_bytes):
        assert RawImage(data=jpeg_bytes, filename="Face.JPEG").extension == "jpeg"

    def test_extension_sniffed_from_bytes(self, jpeg_bytes):
        image = RawImage(data=jpeg_bytes)
        assert image.extension == "jpg"
        assert image.mime_type == "image/jpeg"

    def test_unreadable_bytes_default_to_jpg(self):
        assert RawImage(data=b"not an image").extension == "jpg"

    def test_from_data_url(self, jpeg_bytes):
        data_url = "data:image/jpeg;base64," + base64.b64encode(jpeg_bytes).decode("ascii")

        image = RawImage.from_data_url(data_url)

        assert image.data == jpeg_bytes
        assert image.content_type == "image/jpeg"
        assert image.to_data_url() == data_url

    @pytest.mark.parametrize("bad", ["image/jpeg;base64,abc", "data:image/jpeg,abc", "data:image/jpeg;base64,@@@"])
    def test_bad_data_url(self, bad):
        with pytest.raises(ValueError):
            RawImage.from_data_url(bad)

    def test_from_file(self, tmp_path, jpeg_bytes):
        path = tmp_path / "capture.jpg"
        path.write_bytes(jpeg_bytes)

        image = RawImage.from_file(path)

        assert image.filename == "capture.jpg"
        assert image.content_type == "image/jpeg"


class TestPhotoPipeline:
    def test_upload_returns_public_url(self, photo):
        storage = InMemoryObjectStorage()

        stored = asyncio.run(PhotoPipeline(storage).store(photo))

        assert PHOTO_NAME.match(stored.ref)
        assert stored.url == f"memory://photos/{stored.ref}"
        assert stored.degraded is False
        assert stored.persisted_ref == stored.ref
        assert storage.objects[stored.ref] == photo.data

    def test_upload_failure_degrades_to_inline(self, photo):
        storage = InMemoryObjectStorage()
        storage.upload = AsyncMock(return_value=StoreResult.failure("bucket not found"))

        stored = asyncio.run(PhotoPipeline(storage).store(photo))

        assert stored.degraded is True
        assert stored.url == photo.to_data_url()
        assert stored.persisted_ref == stored.url
        assert stored.ref.startswith("photo_")
        storage.upload.assert_awaited_once()

    @pytest.mark.parametrize("image", [None, RawImage(data=b"")])
    def test_missing_image(self, image):
        with pytest.raises(PhotoRequired):
            asyncio.run(PhotoPipeline(InMemoryObjectStorage()).store(image))

    def test_persisted_ref_for_stored_photo(self):
        assert StoredPhoto(ref="a.jpg", url="https://x/a.jpg").persisted_ref == "a.jpg"
