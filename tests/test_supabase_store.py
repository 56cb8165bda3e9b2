"""Tests for the Supabase backend, served by an httpx mock transport."""

import asyncio
import json

import httpx

from portaria.models import AccessLogEntry, Visitor
from portaria.storage import R2ObjectStorage
from portaria.supabase_store import (
    SupabaseAccessLogStore,
    SupabaseClient,
    SupabaseObjectStorage,
    SupabaseVisitorStore,
    check_connection,
    ensure_photos_bucket,
)

from conftest import KNOWN_CPF

SUPABASE_URL = "https://project.supabase.co"

VISITOR_ROW = {
    "id": "v-1",
    "name": "Ana",
    "cpf": KNOWN_CPF,
    "photo": "photo_1_a.jpg",
    "isBanned": True,
    "banReason": "vandalism",
    "visitCount": 2,
    "lastEntrance": None,
    "visitingApartment": "12",
    "createdAt": "2024-01-01T00:00:00+00:00",
}


def _client(handler, **kwargs):
    return SupabaseClient(url=SUPABASE_URL, anon_key="anon", transport=httpx.MockTransport(handler), **kwargs)


class TestSupabaseClient:
    def test_not_configured(self):
        client = SupabaseClient(url="", anon_key="")
        response, error = asyncio.run(client.request("GET", "/rest/v1/Visitor"))
        assert response is None
        assert error == "Supabase is not configured"

    def test_sends_key_headers(self):
        seen = {}

        def handler(request):
            seen.update(request.headers)
            return httpx.Response(200, json=[])

        asyncio.run(_client(handler).request("GET", "/rest/v1/Visitor"))

        assert seen["apikey"] == "anon"
        assert seen["authorization"] == "Bearer anon"

    def test_connection_error(self):
        def handler(request):
            raise httpx.ConnectError("refused")

        response, error = asyncio.run(_client(handler).request("GET", "/rest/v1/Visitor"))

        assert response is None
        assert error.startswith("Connection error")


class TestSupabaseVisitorStore:
    def test_find_by_national_id(self):
        seen = {}

        def handler(request):
            seen["params"] = dict(request.url.params)
            seen["path"] = request.url.path
            return httpx.Response(200, json=[VISITOR_ROW])

        result = asyncio.run(SupabaseVisitorStore(_client(handler)).find_by_national_id(KNOWN_CPF))

        assert seen["path"] == "/rest/v1/Visitor"
        assert seen["params"] == {"select": "*", "cpf": f"eq.{KNOWN_CPF}"}
        assert result.data.ban_reason == "vandalism"

    def test_find_banned_filters_on_flag(self):
        seen = {}

        def handler(request):
            seen.update(request.url.params)
            return httpx.Response(200, json=[])

        result = asyncio.run(SupabaseVisitorStore(_client(handler)).find_banned(KNOWN_CPF))

        assert seen["isBanned"] == "eq.true"
        assert result.error is None
        assert result.data is None

    def test_multiple_matches_is_an_error(self):
        def handler(request):
            return httpx.Response(200, json=[VISITOR_ROW, dict(VISITOR_ROW, id="v-2")])

        result = asyncio.run(SupabaseVisitorStore(_client(handler)).find_by_national_id(KNOWN_CPF))

        assert result.error

    def test_server_error_message(self):
        def handler(request):
            return httpx.Response(401, json={"message": "Invalid API key"})

        result = asyncio.run(SupabaseVisitorStore(_client(handler)).get("v-1"))

        assert result.error == "HTTP 401: Invalid API key"

    def test_create_posts_row(self):
        seen = {}

        def handler(request):
            seen["body"] = json.loads(request.content)
            seen["prefer"] = request.headers["prefer"]
            return httpx.Response(201, json=seen["body"])

        visitor = Visitor.from_row(dict(VISITOR_ROW, isBanned=False, banReason=None))
        result = asyncio.run(SupabaseVisitorStore(_client(handler)).create(visitor))

        assert seen["body"][0]["cpf"] == KNOWN_CPF
        assert seen["prefer"] == "return=representation"
        assert result.data.id == "v-1"

    def test_create_conflict(self):
        def handler(request):
            return httpx.Response(409, json={"code": "23505", "message": "duplicate key value"})

        visitor = Visitor(id="v-9", name="Ana", national_id=KNOWN_CPF, photo_ref="p.jpg")
        result = asyncio.run(SupabaseVisitorStore(_client(handler)).create(visitor))

        assert result.conflict is True
        assert "duplicate key value" in result.error

    def test_update_patches_columns(self):
        seen = {}

        def handler(request):
            seen["method"] = request.method
            seen["params"] = dict(request.url.params)
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json=[dict(VISITOR_ROW, visitCount=3)])

        result = asyncio.run(SupabaseVisitorStore(_client(handler)).update("v-1", {"visit_count": 3}))

        assert seen["method"] == "PATCH"
        assert seen["params"] == {"id": "eq.v-1"}
        assert seen["body"] == {"visitCount": 3}
        assert result.data.visit_count == 3

    def test_update_of_missing_visitor(self):
        def handler(request):
            return httpx.Response(200, json=[])

        result = asyncio.run(SupabaseVisitorStore(_client(handler)).update("gone", {"visit_count": 1}))

        assert "not found" in result.error


class TestSupabaseAccessLogStore:
    def test_list_recent_orders_and_limits(self):
        seen = {}

        def handler(request):
            seen.update(request.url.params)
            return httpx.Response(200, json=[{"id": "l-1", "visitorId": "v-1", "colaborador": "null"}])

        result = asyncio.run(SupabaseAccessLogStore(_client(handler)).list_recent(20))

        assert seen["order"] == "lastAccess.desc"
        assert seen["limit"] == "20"
        assert result.data[0].collaborator == ""

    def test_create(self):
        def handler(request):
            assert request.url.path == "/rest/v1/AccessLog"
            return httpx.Response(201, json=json.loads(request.content))

        entry = AccessLogEntry(id="l-1", visitor_id="v-1", destination_apartment="12", authorized_by="Rui")
        result = asyncio.run(SupabaseAccessLogStore(_client(handler)).create(entry))

        assert result.data.id == "l-1"


class TestSupabaseObjectStorage:
    def test_upload(self):
        seen = {}

        def handler(request):
            seen["path"] = request.url.path
            seen["type"] = request.headers["content-type"]
            seen["upsert"] = request.headers["x-upsert"]
            seen["body"] = request.content
            return httpx.Response(200, json={"Key": "photos/photo_1_a.jpg"})

        result = asyncio.run(SupabaseObjectStorage(_client(handler), "photos").upload(
            "photo_1_a.jpg", b"jpeg", "image/jpeg"
        ))

        assert result.error is None
        assert seen == {
            "path": "/storage/v1/object/photos/visitor_photos/photo_1_a.jpg",
            "type": "image/jpeg",
            "upsert": "true",
            "body": b"jpeg",
        }

    def test_upload_rejected(self):
        def handler(request):
            return httpx.Response(400, json={"error": "Bucket not found"})

        result = asyncio.run(SupabaseObjectStorage(_client(handler), "photos").upload("p.jpg", b"x", "image/jpeg"))

        assert "Bucket not found" in result.error

    def test_public_url(self):
        storage = SupabaseObjectStorage(SupabaseClient(url=SUPABASE_URL, anon_key="anon"), "photos")
        assert storage.get_public_url("photo_1_a.jpg") == (
            f"{SUPABASE_URL}/storage/v1/object/public/photos/visitor_photos/photo_1_a.jpg"
        )

    def test_r2_and_supabase_share_key_layout(self):
        supabase = SupabaseObjectStorage(SupabaseClient(url=SUPABASE_URL, anon_key="anon"), "photos")
        r2 = R2ObjectStorage(bucket="photos", public_url="https://pub.r2.dev", client=object())

        assert supabase._key("p.jpg") == r2._key("p.jpg") == "visitor_photos/p.jpg"


class TestHealthChecks:
    def test_check_connection(self):
        def handler(request):
            return httpx.Response(200, json=[])

        assert asyncio.run(check_connection(_client(handler))) == (True, None)

    def test_bucket_missing(self):
        def handler(request):
            return httpx.Response(200, json=[{"name": "avatars"}])

        ready, problem = asyncio.run(ensure_photos_bucket(_client(handler), "photos"))

        assert ready is False
        assert "not found" in problem

    def test_bucket_ready(self):
        uploads = []

        def handler(request):
            if request.url.path == "/storage/v1/bucket":
                return httpx.Response(200, json=[{"name": "photos"}])
            uploads.append(request.url.path)
            return httpx.Response(200, json={})

        assert asyncio.run(ensure_photos_bucket(_client(handler), "photos")) == (True, None)
        assert uploads == ["/storage/v1/object/photos/test-permission.txt"]

    def test_bucket_rejects_uploads(self):
        def handler(request):
            if request.method == "GET":
                return httpx.Response(200, json=[{"name": "photos"}])
            return httpx.Response(403, json={"message": "new row violates row-level security policy"})

        ready, problem = asyncio.run(ensure_photos_bucket(_client(handler), "photos"))

        assert ready is False
        assert "policies" in problem
