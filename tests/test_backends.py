"""Tests for backend selection."""

import asyncio
from unittest.mock import patch

import pytest

from portaria import config
from portaria.backends import create_backend
from portaria.entrance import EntranceRequest
from portaria.local_store import LocalVisitorStore
from portaria.storage import LocalDirectoryStorage, R2ObjectStorage
from portaria.stores import InMemoryObjectStorage, InMemoryVisitorStore
from portaria.supabase_store import SupabaseObjectStorage, SupabaseVisitorStore

from conftest import NEW_CPF


class TestCreateBackend:
    def test_memory(self):
        backend = create_backend("memory", "memory")

        assert isinstance(backend.visitors, InMemoryVisitorStore)
        assert isinstance(backend.storage, InMemoryObjectStorage)
        assert backend.supabase is None

    def test_backends_do_not_share_state(self, photo):
        first = create_backend("memory", "memory")
        second = create_backend("memory", "memory")

        asyncio.run(first.workflow().register(EntranceRequest(
            national_id=NEW_CPF, name="Carlos", apartment="1", authorized_by="Rui", photo=photo,
        )))

        assert asyncio.run(second.visitors.find_by_national_id(NEW_CPF)).data is None

    def test_local(self, tmp_path):
        with patch.object(config, "PHOTOS_DIR", str(tmp_path / "photos")):
            backend = create_backend("local", "local", data_path=tmp_path / "db.json")

        assert isinstance(backend.visitors, LocalVisitorStore)
        assert isinstance(backend.storage, LocalDirectoryStorage)
        assert backend.storage.root == tmp_path / "photos"

    def test_local_end_to_end(self, tmp_path, photo):
        with patch.object(config, "PHOTOS_DIR", str(tmp_path / "photos")):
            backend = create_backend("local", "local", data_path=tmp_path / "db.json")

        record = asyncio.run(backend.workflow().register(EntranceRequest(
            national_id=NEW_CPF, name="Carlos", apartment="1", authorized_by="Rui", photo=photo,
        )))

        assert record.photo_url.startswith("/photos/photo_")
        assert len(list((tmp_path / "photos").iterdir())) == 1
        assert (tmp_path / "db.json").exists()

    def test_supabase_requires_config(self):
        with patch.object(config, "SUPABASE_URL", ""), \
             patch.object(config, "SUPABASE_ANON_KEY", ""):
            with pytest.raises(ValueError, match="SUPABASE_URL"):
                create_backend("supabase", "supabase")

    def test_supabase(self):
        with patch.object(config, "SUPABASE_URL", "https://project.supabase.co"), \
             patch.object(config, "SUPABASE_ANON_KEY", "anon"):
            backend = create_backend("supabase", "supabase")

        assert isinstance(backend.visitors, SupabaseVisitorStore)
        assert isinstance(backend.storage, SupabaseObjectStorage)
        assert backend.storage.client is backend.supabase

    def test_r2_storage(self):
        with patch.object(config, "R2_BUCKET_NAME", "bucket"), \
             patch.object(config, "R2_PUBLIC_URL", "https://pub.r2.dev"):
            backend = create_backend("memory", "r2")

        assert isinstance(backend.storage, R2ObjectStorage)

    def test_defaults_from_config(self):
        with patch.object(config, "STORE_BACKEND", "memory"), \
             patch.object(config, "STORAGE_MODE", "memory"):
            backend = create_backend()

        assert isinstance(backend.visitors, InMemoryVisitorStore)

    @pytest.mark.parametrize("store, storage", [("sqlite", "memory"), ("memory", "s3")])
    def test_unknown_values(self, store, storage):
        with pytest.raises(ValueError, match="Unknown"):
            create_backend(store, storage)
