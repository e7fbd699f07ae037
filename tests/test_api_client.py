"""Tests for the backend HTTP client: envelopes, status mapping and write encoding."""

import asyncio
import json

import httpx
import pytest

from app.models.base import FileUpload
from app.services.api_client import (
    ApiClient,
    AuthorizationError,
    MalformedPayloadError,
    RateLimitedError,
    SyncError,
    TransportError,
    ValidationFailedError,
    flatten_form,
    has_upload,
    parse_collection,
    parse_entity,
)

BASE = "http://cms.test/api"


def _client(backend, token="secret-token"):
    return ApiClient(BASE, token=token, transport=backend.transport)


# ---------------------------------------------------------------------------
# Payload boundary
# ---------------------------------------------------------------------------

class TestParseCollection:
    def test_bare_list(self):
        assert parse_collection([{"id": 1}]) == [{"id": 1}]

    def test_data_envelope(self):
        assert parse_collection({"success": True, "data": [{"id": 1}]}) == [{"id": 1}]

    def test_empty_envelope(self):
        assert parse_collection({"data": []}) == []

    def test_success_false_raises(self):
        with pytest.raises(SyncError, match="Server busy"):
            parse_collection({"success": False, "message": "Server busy"})

    def test_non_list_is_malformed(self):
        with pytest.raises(MalformedPayloadError):
            parse_collection({"data": "nope"})

    def test_non_object_items_are_malformed(self):
        with pytest.raises(MalformedPayloadError):
            parse_collection([{"id": 1}, "two"])


class TestParseEntity:
    def test_bare_object(self):
        assert parse_entity({"id": 3, "title": "x"}) == {"id": 3, "title": "x"}

    def test_data_envelope(self):
        assert parse_entity({"success": True, "data": {"id": 3}}) == {"id": 3}

    def test_non_object_is_malformed(self):
        with pytest.raises(MalformedPayloadError):
            parse_entity([{"id": 3}])

    def test_success_false_raises(self):
        with pytest.raises(SyncError):
            parse_entity({"success": False})


class TestFlattenForm:
    def test_lists_and_mappings_use_brackets(self):
        fields = {
            "features": ["Fast", "Safe"],
            "social_links": {"twitter": "https://x.com/a"},
            "title": "Audit",
        }
        assert flatten_form(fields) == [
            ("features[0]", "Fast"),
            ("features[1]", "Safe"),
            ("social_links[twitter]", "https://x.com/a"),
            ("title", "Audit"),
        ]

    def test_booleans_become_digits_and_none_is_dropped(self):
        assert flatten_form({"is_active": True, "hidden": False, "bio": None}) == [
            ("is_active", "1"),
            ("hidden", "0"),
        ]

    def test_nested_list_of_mappings(self):
        fields = {"menu_items": [{"label": "Home", "url": "/"}]}
        assert flatten_form(fields) == [
            ("menu_items[0][label]", "Home"),
            ("menu_items[0][url]", "/"),
        ]

    def test_has_upload(self):
        upload = FileUpload(filename="a.png", content=b"x", content_type="image/png")
        assert has_upload({"image": upload})
        assert not has_upload({"image": "https://cdn.test/a.png"})


# ---------------------------------------------------------------------------
# Client
# ---------------------------------------------------------------------------

class TestApiClientReads:
    def test_list_unwraps_envelope(self, backend):
        backend.on("GET", "services", (200, {"success": True, "data": [{"id": 1}]}))
        assert asyncio.run(_client(backend).list("services")) == [{"id": 1}]

    def test_sends_bearer_token(self, backend):
        backend.on("GET", "services", (200, []))
        asyncio.run(_client(backend).list("services"))
        assert backend.requests[0].headers["Authorization"] == "Bearer secret-token"

    def test_token_source_read_per_request(self, backend):
        backend.on("GET", "services", (200, []))
        tokens = iter(["first", "second"])
        client = _client(backend, token=lambda: next(tokens))

        async def scenario():
            await client.list("services")
            await client.list("services")

        asyncio.run(scenario())
        assert [r.headers["Authorization"] for r in backend.requests] == [
            "Bearer first",
            "Bearer second",
        ]

    def test_no_token_no_header(self, backend):
        backend.on("GET", "services", (200, []))
        asyncio.run(_client(backend, token="").list("services"))
        assert "Authorization" not in backend.requests[0].headers

    def test_non_json_body_is_malformed(self, backend):
        backend.on("GET", "services", lambda request: httpx.Response(200, text="<html>"))
        with pytest.raises(MalformedPayloadError):
            asyncio.run(_client(backend).list("services"))


class TestApiClientErrors:
    @pytest.mark.parametrize(
        "status,error_cls,kind",
        [
            (429, RateLimitedError, "rate_limited"),
            (401, AuthorizationError, "authorization"),
            (403, AuthorizationError, "authorization"),
            (500, SyncError, "unknown"),
        ],
    )
    def test_status_mapping(self, backend, status, error_cls, kind):
        backend.on("GET", "services", (status, {"message": "nope"}))
        with pytest.raises(error_cls) as excinfo:
            asyncio.run(_client(backend).list("services"))
        assert excinfo.value.kind == kind
        assert excinfo.value.status_code == status

    def test_error_message_taken_from_body(self, backend):
        backend.on("GET", "services", (500, {"message": "Database unavailable"}))
        with pytest.raises(SyncError, match="Database unavailable"):
            asyncio.run(_client(backend).list("services"))

    def test_validation_errors_laravel_style(self, backend):
        body = {
            "message": "The given data was invalid.",
            "errors": {"title": ["The title field is required.", "Too short."]},
        }
        backend.on("POST", "services", (422, body))
        with pytest.raises(ValidationFailedError) as excinfo:
            asyncio.run(_client(backend).create("services", {"title": ""}))
        assert excinfo.value.field_errors == {"title": "The title field is required."}

    def test_validation_errors_fastapi_style(self, backend):
        body = {"detail": [{"loc": ["body", "email"], "msg": "value is not a valid email"}]}
        backend.on("POST", "contacts", (422, body))
        with pytest.raises(ValidationFailedError) as excinfo:
            asyncio.run(_client(backend).create("contacts", {"email": "x"}))
        assert excinfo.value.field_errors == {"email": "value is not a valid email"}

    def test_timeout_becomes_transport_error(self, backend):
        def timeout(request):
            raise httpx.ReadTimeout("timed out", request=request)

        backend.on("GET", "services", timeout)
        with pytest.raises(TransportError) as excinfo:
            asyncio.run(_client(backend).list("services"))
        assert excinfo.value.kind == "network"

    def test_connection_error_becomes_transport_error(self, backend):
        def refused(request):
            raise httpx.ConnectError("refused", request=request)

        backend.on("GET", "services", refused)
        with pytest.raises(TransportError):
            asyncio.run(_client(backend).list("services"))


class TestApiClientWrites:
    def test_create_sends_json(self, backend):
        backend.on("POST", "services", (201, {"data": {"id": 9, "title": "Audit"}}))
        result = asyncio.run(_client(backend).create("services", {"title": "Audit"}))
        assert result == {"id": 9, "title": "Audit"}
        assert json.loads(backend.requests[0].content) == {"title": "Audit"}

    def test_update_without_upload_is_put(self, backend):
        backend.on("PUT", "services/9", (200, {"id": 9, "title": "New"}))
        asyncio.run(_client(backend).update("services", "9", {"title": "New"}))
        request = backend.requests[0]
        assert request.method == "PUT"
        assert request.url.path == "/api/services/9"

    def test_update_with_upload_is_multipart_post_with_method_override(self, backend):
        backend.on("POST", "teams/5", (200, {"id": 5, "name": "Ana"}))
        upload = FileUpload(filename="ana.png", content=b"\x89PNG", content_type="image/png")
        fields = {"name": "Ana", "image": upload, "social_links": {"twitter": "https://x.com/ana"}}
        asyncio.run(_client(backend).update("teams", "5", fields))

        request = backend.requests[0]
        assert request.method == "POST"
        assert request.headers["Content-Type"].startswith("multipart/form-data")
        body = request.content
        assert b'name="_method"' in body and b"PUT" in body
        assert b'name="social_links[twitter]"' in body
        assert b'filename="ana.png"' in body

    def test_delete_accepts_no_content(self, backend):
        backend.on("DELETE", "services/9", (204, None))
        assert asyncio.run(_client(backend).delete("services", "9")) is None

    def test_action_without_body_returns_none(self, backend):
        backend.on("POST", "footers/2/activate", (204, None))
        assert asyncio.run(_client(backend).action("footers", "2", "activate")) is None

    def test_action_returns_entity(self, backend):
        backend.on("POST", "footers/2/activate", (200, {"data": {"id": 2, "is_active": True}}))
        result = asyncio.run(_client(backend).action("footers", "2", "activate"))
        assert result == {"id": 2, "is_active": True}
