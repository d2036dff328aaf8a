"""Tests for request descriptors and their HTTPX translation."""

import json

import httpx
import pytest

from RestGate.network.request import FilePart, MultipartBody, Request, build_http_request

BASE = "https://api.test/v10"


@pytest.fixture
def client():
    with httpx.Client() as c:
        yield c


class TestRequest:
    def test_normalises_method_and_route(self):
        request = Request("post", "channels/1/messages")
        assert request.method == "POST"
        assert request.route == "/channels/1/messages"
        assert request.bucket_key == "POST /channels/1/messages"

    def test_is_immutable(self):
        request = Request("GET", "/users/@me")
        with pytest.raises(AttributeError):
            request.method = "POST"

    def test_headers_are_copied(self):
        headers = {"X-Audit-Log-Reason": "cleanup"}
        request = Request("DELETE", "/channels/1", headers=headers)
        headers["X-Audit-Log-Reason"] = "changed"
        assert request.headers["X-Audit-Log-Reason"] == "cleanup"

    def test_request_ids_are_unique(self):
        assert Request("GET", "/a").request_id != Request("GET", "/a").request_id

    def test_empty_method_rejected(self):
        with pytest.raises(ValueError):
            Request(" ", "/users/@me")


class TestBuildHttpRequest:
    def test_json_body(self, client):
        request = Request("POST", "/channels/1/messages", body={"content": "hello"})
        built = build_http_request(client, request, base_url=BASE)
        assert built.headers["Content-Type"] == "application/json"
        assert json.loads(built.read()) == {"content": "hello"}
        assert str(built.url) == f"{BASE}/channels/1/messages"

    def test_raw_string_body_sent_as_json(self, client):
        built = build_http_request(client, Request("PATCH", "/channels/1", body='{"name":"x"}'), base_url=BASE)
        assert built.headers["Content-Type"] == "application/json"
        assert built.read() == b'{"name":"x"}'

    def test_explicit_content_type_kept(self, client):
        request = Request("PUT", "/x", body=b"raw", headers={"Content-Type": "text/plain"})
        built = build_http_request(client, request, base_url=BASE)
        assert built.headers["Content-Type"] == "text/plain"

    def test_no_body(self, client):
        built = build_http_request(client, Request("GET", "/users/@me"), base_url=BASE + "/")
        assert built.read() == b""
        assert str(built.url) == f"{BASE}/users/@me"

    def test_query_params_skip_none(self, client):
        request = Request("GET", "/channels/1/messages", params={"limit": 50, "before": None})
        built = build_http_request(client, request, base_url=BASE)
        assert built.url.params["limit"] == "50"
        assert "before" not in built.url.params

    def test_default_headers_applied(self, client):
        built = build_http_request(
            client,
            Request("GET", "/users/@me", headers={"X-Extra": "1"}),
            base_url=BASE,
            default_headers={"Authorization": "Bot t", "User-Agent": "ua"},
        )
        assert built.headers["Authorization"] == "Bot t"
        assert built.headers["X-Extra"] == "1"


class TestMultipart:
    def test_message_with_file(self, client, tmp_path):
        path = tmp_path / "cat.png"
        path.write_bytes(b"\x89PNG")
        body = MultipartBody.for_message("look", file=FilePart(path, content_type="image/png"), tts=True)
        built = build_http_request(client, Request("POST", "/channels/1/messages", body=body), base_url=BASE)

        assert built.headers["Content-Type"].startswith("multipart/form-data; boundary=")
        payload = built.read()
        assert b'name="content"' in payload
        assert b"look" in payload
        assert b'name="tts"' in payload
        assert b'filename="cat.png"' in payload
        assert b"\x89PNG" in payload

    def test_fields_only_still_multipart(self, client):
        body = MultipartBody(fields={"content": "hi"}, payload_json={"embeds": []})
        built = build_http_request(client, Request("POST", "/x", body=body), base_url=BASE)
        assert built.headers["Content-Type"].startswith("multipart/form-data")
        assert b'name="payload_json"' in built.read()

    def test_file_part_from_bytes(self):
        part = FilePart(b"data", filename="a.txt")
        assert part.read() == b"data"
        assert part.resolved_filename() == "a.txt"
        assert FilePart(b"data").resolved_filename() == "file"
