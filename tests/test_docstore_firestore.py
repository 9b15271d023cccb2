import json
from datetime import datetime, timezone

import httpx
import pytest

from shared.clients.docstore.firestore.DocStoreClientFirestore import (
    DocStoreClientFirestore,
    decode_fields,
    decode_value,
    encode_value,
    nest_dotted,
    quote_field_path,
)
from shared.errors import NotFoundError, UpstreamError

ROOT = "projects/demo/databases/(default)/documents"


@pytest.fixture
def firestore_env(env, monkeypatch):
    monkeypatch.setenv("DOCSTORE_FIRESTORE_PROJECT_ID", "demo")
    monkeypatch.setenv("DOCSTORE_FIRESTORE_ACCESS_TOKEN", "ya29.token")


async def _client(helper_config, handler) -> DocStoreClientFirestore:
    client = DocStoreClientFirestore(helper_config=helper_config)
    await client.boot(transport=httpx.MockTransport(handler))
    return client


class TestValueCodec:
    """Typed Firestore values."""

    def test_scalars(self):
        """Each scalar maps to its typed value."""
        assert encode_value(None) == {"nullValue": None}
        assert encode_value(True) == {"booleanValue": True}
        assert encode_value(42) == {"integerValue": "42"}
        assert encode_value(1.5) == {"doubleValue": 1.5}
        assert encode_value("hi") == {"stringValue": "hi"}

    def test_timestamp(self):
        """Datetimes are UTC RFC 3339 with a Z suffix."""
        when = datetime(2024, 5, 1, 12, 30, tzinfo=timezone.utc)
        assert encode_value(when) == {"timestampValue": "2024-05-01T12:30:00Z"}

    def test_nanosecond_timestamp(self):
        """Server timestamps with nanoseconds are truncated to microseconds."""
        decoded = decode_value({"timestampValue": "2024-05-01T12:30:00.123456789Z"})
        assert decoded == datetime(2024, 5, 1, 12, 30, 0, 123456, tzinfo=timezone.utc)

    def test_nested(self):
        """Maps and arrays decode recursively."""
        doc = {"profile": {"name": "A", "tags": ["x", 2]}, "count": 3}
        encoded = {k: encode_value(v) for k, v in doc.items()}
        assert decode_fields(encoded) == doc

    def test_unsupported_type(self):
        """Arbitrary objects cannot be stored."""
        with pytest.raises(TypeError):
            encode_value(object())

    def test_field_path_quoting(self):
        """Non-identifier segments are backtick-quoted."""
        assert quote_field_path("profileCharactersUsed") == "profileCharactersUsed"
        assert quote_field_path("projectCharactersUsed.3f2a-9b") == "projectCharactersUsed.`3f2a-9b`"

    def test_nest_dotted(self):
        """Dotted update keys become nested maps."""
        assert nest_dotted({"a.b": 1, "a.c": 2, "d": 3}) == {"a": {"b": 1, "c": 2}, "d": 3}


class TestRequests:
    """REST calls against a mock transport."""

    async def test_get_missing_is_none(self, firestore_env, helper_config):
        """404 on a document read means absent."""
        client = await _client(helper_config, lambda request: httpx.Response(404, json={}))
        assert await client.do_get("users/nobody") is None
        await client.close()

    async def test_get_decodes_fields(self, firestore_env, helper_config):
        """Document fields are decoded and the bearer token is sent."""
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"name": f"{ROOT}/users/u1", "fields": {"username": {"stringValue": "alice"}}})

        client = await _client(helper_config, handler)
        assert await client.do_get("users/u1") == {"username": "alice"}
        assert seen[0].url.path == f"/v1/{ROOT}/users/u1"
        assert seen[0].headers["Authorization"] == "Bearer ya29.token"
        await client.close()

    async def test_increment_is_a_field_transform(self, firestore_env, helper_config):
        """Counter deltas go through a server-side increment."""
        bodies = []

        def handler(request: httpx.Request) -> httpx.Response:
            bodies.append(json.loads(request.content))
            return httpx.Response(200, json={"writeResults": [{}]})

        client = await _client(helper_config, handler)
        await client.do_increment("users/u1", "projectCharactersUsed.p-1", -250)
        transform = bodies[0]["writes"][0]["transform"]
        assert transform["document"] == f"{ROOT}/users/u1"
        assert transform["fieldTransforms"] == [{"fieldPath": "projectCharactersUsed.`p-1`", "increment": {"integerValue": "-250"}}]
        await client.close()

    async def test_update_uses_mask_and_precondition(self, firestore_env, helper_config):
        """A masked update touches only the given fields of an existing document."""
        bodies = []

        def handler(request: httpx.Request) -> httpx.Response:
            bodies.append(json.loads(request.content))
            return httpx.Response(200, json={})

        client = await _client(helper_config, handler)
        await client.do_update("users/u1", {"profile.name": "Al", "isPro": True})
        write = bodies[0]["writes"][0]
        assert write["updateMask"] == {"fieldPaths": ["profile.name", "isPro"]}
        assert write["currentDocument"] == {"exists": True}
        assert write["update"]["fields"]["profile"] == {"mapValue": {"fields": {"name": {"stringValue": "Al"}}}}
        await client.close()

    async def test_update_missing_document(self, firestore_env, helper_config):
        """A failed exists precondition is NotFoundError."""
        client = await _client(helper_config, lambda request: httpx.Response(404, json={}))
        with pytest.raises(NotFoundError):
            await client.do_update("users/u1", {"x": 1})
        await client.close()

    async def test_commit_failure(self, firestore_env, helper_config):
        """Server errors on writes are UpstreamError."""
        client = await _client(helper_config, lambda request: httpx.Response(503, text="unavailable"))
        with pytest.raises(UpstreamError):
            await client.do_set("users/u1", {"x": 1})
        await client.close()

    async def test_query_subcollection(self, firestore_env, helper_config):
        """Queries on nested collections use the parent document and decode results."""
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json=[
                {"document": {"name": f"{ROOT}/users/u1/files/f1", "fields": {"characterCount": {"integerValue": "12"}}}},
                {"readTime": "2024-01-01T00:00:00Z"},
            ])

        client = await _client(helper_config, handler)
        snaps = await client.do_query("users/u1/files", filters=[("characterCount", ">", 0)], order_by="createdAt", descending=True, limit=5)
        assert [(s.id, s.data) for s in snaps] == [("f1", {"characterCount": 12})]
        assert seen[0].url.path == f"/v1/{ROOT}/users/u1:runQuery"
        query = json.loads(seen[0].content)["structuredQuery"]
        assert query["from"] == [{"collectionId": "files"}]
        assert query["where"]["fieldFilter"]["op"] == "GREATER_THAN"
        assert query["orderBy"][0]["direction"] == "DESCENDING"
        assert query["limit"] == 5
        await client.close()

    async def test_requires_project_id(self, env, helper_config, monkeypatch):
        """PROJECT_ID is mandatory."""
        monkeypatch.delenv("DOCSTORE_FIRESTORE_PROJECT_ID", raising=False)
        with pytest.raises(ValueError):
            DocStoreClientFirestore(helper_config=helper_config)
