"""Shared fixtures: in-memory backend, workflow, and a real JPEG to upload."""

import io

import pytest
from PIL import Image

from portaria.backends import Backend
from portaria.event_recorder import EventRecorder
from portaria.models import Visitor
from portaria.photos import RawImage
from portaria.stores import (
    InMemoryAccessLogStore,
    InMemoryObjectStorage,
    InMemoryVisitorStore,
    MemoryDatabase,
)

NEW_CPF = "52998224725"
KNOWN_CPF = "11144477735"


def make_jpeg(size=(8, 8), color=(200, 30, 30)) -> bytes:
    buffer = io.BytesIO()
    Image.new("RGB", size, color).save(buffer, format="JPEG")
    return buffer.getvalue()


@pytest.fixture
def jpeg_bytes():
    return make_jpeg()


@pytest.fixture
def photo(jpeg_bytes):
    return RawImage(data=jpeg_bytes, filename="file.jpg", content_type="image/jpeg")


@pytest.fixture
def db():
    return MemoryDatabase()


@pytest.fixture
def known_visitor():
    return Visitor(
        id="visitor-known",
        name="Ana Rodrigues",
        national_id=KNOWN_CPF,
        photo_ref="photo_1700000000000_abcd1234.jpg",
        visit_count=3,
        last_apartment_visited="101",
        created_at="2024-01-01T10:00:00+00:00",
    )


@pytest.fixture
def backend(db, known_visitor):
    db.visitors[known_visitor.id] = known_visitor.to_row()
    return Backend(
        visitors=InMemoryVisitorStore(db),
        logs=InMemoryAccessLogStore(db),
        storage=InMemoryObjectStorage(),
    )


@pytest.fixture
def recorder(tmp_path):
    return EventRecorder(log_dir=str(tmp_path / "logs"))


@pytest.fixture
def workflow(backend, recorder):
    return backend.workflow(recorder=recorder)
