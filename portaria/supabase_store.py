"""
Supabase backend: PostgREST tables and Storage bucket over direct HTTP.

Talks to the hosted project with httpx instead of a client SDK, the same way
the login flow does. Every call returns a StoreResult; transport errors and
non-2xx responses become `error` strings with the server's message.

Tables: `Visitor` and `AccessLog` (see portaria.models for columns).
Bucket: `photos` (must be public for get_public_url links to work).
"""

import logging
from urllib.parse import quote

import httpx

from portaria import config
from portaria.models import AccessLogEntry, Visitor
from portaria.stores import StoreResult, visitor_changes_to_row

logger = logging.getLogger(__name__)

# PostgREST reports unique_violation with SQLSTATE 23505 and HTTP 409
_UNIQUE_VIOLATION = "23505"


def _error_message(response: httpx.Response) -> str:
    try:
        error_data = response.json()
    except ValueError:
        return f"HTTP {response.status_code}: {response.text[:200]}"
    if isinstance(error_data, dict):
        msg = (
            error_data.get("message")
            or error_data.get("error_description")
            or error_data.get("msg")
            or error_data.get("error")
        )
        if msg:
            return f"HTTP {response.status_code}: {msg}"
    return f"HTTP {response.status_code}"


def _is_conflict(response: httpx.Response) -> bool:
    if response.status_code == 409:
        return True
    try:
        return response.json().get("code") == _UNIQUE_VIOLATION
    except (ValueError, AttributeError):
        return False


class SupabaseClient:
    """Thin HTTP wrapper holding the project URL, key and transport."""

    def __init__(
        self,
        url: str = None,
        anon_key: str = None,
        timeout: float = None,
        transport: httpx.AsyncBaseTransport = None,
    ):
        self.url = (url if url is not None else config.SUPABASE_URL).rstrip("/")
        self.anon_key = anon_key if anon_key is not None else config.SUPABASE_ANON_KEY
        self.timeout = timeout if timeout is not None else config.HTTP_TIMEOUT
        self._transport = transport

    def headers(self, **extra) -> dict:
        headers = {
            "apikey": self.anon_key,
            "Authorization": f"Bearer {self.anon_key}",
        }
        headers.update(extra)
        return headers

    async def request(self, method: str, path: str, **kwargs) -> tuple[httpx.Response | None, str | None]:
        """Send a request. Returns (response, None) or (None, error)."""
        if not self.url or not self.anon_key:
            return None, "Supabase is not configured"

        headers = self.headers(**kwargs.pop("headers", {}))
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.request(method, f"{self.url}{path}", headers=headers, **kwargs)
        except httpx.HTTPError as e:
            logger.error("Supabase %s %s failed: %s", method, path, e)
            return None, f"Connection error: {e}"
        return response, None


class SupabaseVisitorStore:
    def __init__(self, client: SupabaseClient, table: str = None):
        self.client = client
        self.path = f"/rest/v1/{table or config.VISITORS_TABLE}"

    async def _select(self, params: dict) -> StoreResult:
        response, error = await self.client.request("GET", self.path, params={"select": "*", **params})
        if error:
            return StoreResult.failure(error)
        if response.status_code != 200:
            return StoreResult.failure(_error_message(response))
        return StoreResult.ok([Visitor.from_row(row) for row in response.json()])

    async def _select_one(self, params: dict) -> StoreResult:
        result = await self._select(params)
        if result.error:
            return result
        if len(result.data) > 1:
            return StoreResult.failure(f"{len(result.data)} visitors matched {params}")
        return StoreResult.ok(result.data[0] if result.data else None)

    async def find_by_national_id(self, national_id: str) -> StoreResult:
        return await self._select_one({"cpf": f"eq.{national_id}"})

    async def find_banned(self, national_id: str) -> StoreResult:
        return await self._select_one({"cpf": f"eq.{national_id}", "isBanned": "eq.true"})

    async def get(self, visitor_id: str) -> StoreResult:
        return await self._select_one({"id": f"eq.{visitor_id}"})

    async def create(self, visitor: Visitor) -> StoreResult:
        response, error = await self.client.request(
            "POST",
            self.path,
            json=[visitor.to_row()],
            headers={"Prefer": "return=representation"},
        )
        if error:
            return StoreResult.failure(error)
        if response.status_code not in (200, 201):
            return StoreResult.failure(_error_message(response), conflict=_is_conflict(response))
        rows = response.json()
        if not rows:
            return StoreResult.failure("Visitor insert returned no data")
        return StoreResult.ok(Visitor.from_row(rows[0]))

    async def update(self, visitor_id: str, changes: dict) -> StoreResult:
        response, error = await self.client.request(
            "PATCH",
            self.path,
            params={"id": f"eq.{visitor_id}"},
            json=visitor_changes_to_row(changes),
            headers={"Prefer": "return=representation"},
        )
        if error:
            return StoreResult.failure(error)
        if response.status_code != 200:
            return StoreResult.failure(_error_message(response))
        rows = response.json()
        if not rows:
            return StoreResult.failure(f"Visitor not found: {visitor_id}")
        return StoreResult.ok(Visitor.from_row(rows[0]))

    async def list_all(self) -> StoreResult:
        return await self._select({"order": "createdAt.desc"})


class SupabaseAccessLogStore:
    def __init__(self, client: SupabaseClient, table: str = None):
        self.client = client
        self.path = f"/rest/v1/{table or config.ACCESS_LOGS_TABLE}"

    async def create(self, entry: AccessLogEntry) -> StoreResult:
        response, error = await self.client.request(
            "POST",
            self.path,
            json=[entry.to_row()],
            headers={"Prefer": "return=representation"},
        )
        if error:
            return StoreResult.failure(error)
        if response.status_code not in (200, 201):
            return StoreResult.failure(_error_message(response))
        rows = response.json()
        if not rows:
            return StoreResult.failure("Access log insert returned no data")
        return StoreResult.ok(AccessLogEntry.from_row(rows[0]))

    async def list_recent(self, limit: int) -> StoreResult:
        response, error = await self.client.request(
            "GET",
            self.path,
            params={"select": "*", "order": "lastAccess.desc", "limit": str(limit)},
        )
        if error:
            return StoreResult.failure(error)
        if response.status_code != 200:
            return StoreResult.failure(_error_message(response))
        return StoreResult.ok([AccessLogEntry.from_row(row) for row in response.json()])


class SupabaseObjectStorage:
    """Photos bucket in Supabase Storage, under the same key prefix as R2."""

    def __init__(self, client: SupabaseClient, bucket: str = None, prefix: str = "visitor_photos"):
        self.client = client
        self.bucket = bucket or config.PHOTOS_BUCKET
        self.prefix = prefix.strip("/")

    def _key(self, path: str) -> str:
        return f"{self.prefix}/{path}" if self.prefix else path

    async def upload(self, path: str, data: bytes, content_type: str) -> StoreResult:
        response, error = await self.client.request(
            "POST",
            f"/storage/v1/object/{self.bucket}/{quote(self._key(path))}",
            content=data,
            headers={
                "Content-Type": content_type,
                "cache-control": "3600",
                "x-upsert": "true",
            },
        )
        if error:
            return StoreResult.failure(error)
        if response.status_code not in (200, 201):
            return StoreResult.failure(_error_message(response))
        return StoreResult.ok(path)

    def get_public_url(self, path: str) -> str:
        return f"{self.client.url}/storage/v1/object/public/{self.bucket}/{quote(self._key(path))}"


async def check_connection(client: SupabaseClient) -> tuple[bool, str | None]:
    """Check that the visitors table answers a trivial query."""
    response, error = await client.request(
        "GET",
        f"/rest/v1/{config.VISITORS_TABLE}",
        params={"select": "id", "limit": "1"},
    )
    if error:
        return False, error
    if response.status_code != 200:
        return False, _error_message(response)
    return True, None


async def ensure_photos_bucket(client: SupabaseClient, bucket: str = None) -> tuple[bool, str | None]:
    """Verify the photos bucket exists and accepts uploads.

    Does not create the bucket; that needs the service key. Returns
    (ready, problem) where problem explains what to fix in the dashboard.
    """
    bucket = bucket or config.PHOTOS_BUCKET
    response, error = await client.request("GET", "/storage/v1/bucket")
    if error:
        return False, error
    if response.status_code != 200:
        return False, _error_message(response)

    names = {b.get("name") for b in response.json() if isinstance(b, dict)}
    if bucket not in names:
        return False, f"Bucket '{bucket}' not found. Create it as a public bucket in Storage."

    probe = await SupabaseObjectStorage(client, bucket, prefix="").upload(
        "test-permission.txt", b"test", "text/plain"
    )
    if probe.error:
        return False, f"Bucket '{bucket}' rejects uploads, check its policies: {probe.error}"
    return True, None
