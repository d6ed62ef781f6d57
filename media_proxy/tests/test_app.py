import asyncio
import unittest
from unittest.mock import AsyncMock, MagicMock

import httpx
from fastapi.testclient import TestClient

from media_proxy.app import create_app
from media_proxy.config import Settings, get_settings
from media_proxy.dependencies import get_http_client
from media_proxy.routes import UPLOAD_CACHE_CONTROL, _image_response
from media_proxy.upstream import UpstreamImage


def make_settings(**overrides) -> Settings:
    values = {"backend_api_url": "http://localhost:3003/api/v1"}
    values.update(overrides)
    return Settings(_env_file=None, **values)


class ImageProxyApiTests(unittest.TestCase):
    def setUp(self):
        self.requests: list[httpx.Request] = []
        self.upstream_status = 200
        self.upstream_headers = {"content-type": "image/png"}
        self.upstream_body = b"\x89PNG fake image bytes"
        self.settings = make_settings()

        def handler(request: httpx.Request) -> httpx.Response:
            self.requests.append(request)
            return httpx.Response(
                self.upstream_status,
                headers=self.upstream_headers,
                content=self.upstream_body,
            )

        self.app = create_app()
        self.app.dependency_overrides[get_settings] = lambda: self.settings
        self.app.dependency_overrides[get_http_client] = lambda: httpx.AsyncClient(
            transport=httpx.MockTransport(handler)
        )
        self.client = TestClient(self.app)

    def test_query_form_streams_relative_upload(self):
        response = self.client.get(
            "/api/image-proxy", params={"url": "/uploads/icons/cat1.svg"}
        )
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.content, self.upstream_body)
        self.assertEqual(response.headers["content-type"], "image/png")
        self.assertEqual(
            response.headers["cache-control"], "public, max-age=86400, s-maxage=86400"
        )
        self.assertEqual(len(self.requests), 1)
        self.assertEqual(
            str(self.requests[0].url), "http://localhost:3003/uploads/icons/cat1.svg"
        )
        self.assertEqual(self.requests[0].headers["accept"], "image/*")

    def test_query_form_accepts_allowed_absolute_url(self):
        response = self.client.get(
            "/api/image-proxy",
            params={"url": "http://localhost:3001/uploads/avatars/a1.jpg"},
        )
        self.assertEqual(response.status_code, 200)
        self.assertEqual(
            str(self.requests[0].url), "http://localhost:3001/uploads/avatars/a1.jpg"
        )

    def test_query_form_missing_url(self):
        response = self.client.get("/api/image-proxy")
        self.assertEqual(response.status_code, 400)
        self.assertEqual(
            response.json(), {"success": False, "error": "Missing url parameter"}
        )
        self.assertEqual(self.requests, [])

    def test_query_form_rejects_disallowed_host_without_fetching(self):
        response = self.client.get(
            "/api/image-proxy", params={"url": "https://evil.example.com/a.png"}
        )
        self.assertEqual(response.status_code, 403)
        self.assertEqual(
            response.json(), {"success": False, "error": "Host not allowed"}
        )
        self.assertEqual(self.requests, [])

    def test_query_form_rejects_invalid_url(self):
        response = self.client.get(
            "/api/image-proxy", params={"url": "http://localhost:abc/a.png"}
        )
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json(), {"success": False, "error": "Invalid url"})
        self.assertEqual(self.requests, [])

    def test_query_form_propagates_upstream_status(self):
        self.upstream_status = 404
        response = self.client.get(
            "/api/image-proxy", params={"url": "/uploads/missing.png"}
        )
        self.assertEqual(response.status_code, 404)
        self.assertEqual(
            response.json(), {"success": False, "error": "Upstream fetch failed"}
        )
        self.assertEqual(len(self.requests), 1)

    def test_query_form_empty_upstream_body_is_bad_gateway(self):
        self.upstream_status = 204
        self.upstream_body = b""
        response = self.client.get(
            "/api/image-proxy", params={"url": "/uploads/empty.png"}
        )
        self.assertEqual(response.status_code, 502)

    def test_query_form_defaults_content_type(self):
        self.upstream_headers = {}
        response = self.client.get(
            "/api/image-proxy", params={"url": "/uploads/a.jpg"}
        )
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.headers["content-type"], "image/jpeg")

    def test_query_form_unexpected_error(self):
        def broken(request: httpx.Request) -> httpx.Response:
            self.requests.append(request)
            raise httpx.ConnectError("connection refused", request=request)

        self.app.dependency_overrides[get_http_client] = lambda: httpx.AsyncClient(
            transport=httpx.MockTransport(broken)
        )
        response = self.client.get(
            "/api/image-proxy", params={"url": "/uploads/a.jpg"}
        )
        self.assertEqual(response.status_code, 500)
        self.assertEqual(response.json(), {"success": False, "error": "Proxy error"})
        self.assertEqual(len(self.requests), 1)

    def test_extra_allowed_hosts_are_configurable(self):
        self.settings = make_settings(extra_allowed_hosts=["cdn.example.com"])
        response = self.client.get(
            "/api/image-proxy", params={"url": "https://cdn.example.com/a.png"}
        )
        self.assertEqual(response.status_code, 200)
        self.assertEqual(len(self.requests), 1)

    def test_path_form_fetches_from_backend_uploads(self):
        self.settings = make_settings(backend_api_url="http://localhost:3001")
        response = self.client.get("/api/image-proxy/avatars/a1.jpg")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.content, self.upstream_body)
        self.assertEqual(response.headers["cache-control"], "public, max-age=31536000")
        self.assertEqual(
            str(self.requests[0].url), "http://localhost:3001/uploads/avatars/a1.jpg"
        )

    def test_path_form_strips_api_version_suffix(self):
        response = self.client.get("/api/image-proxy/services/s1.png")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(
            str(self.requests[0].url), "http://localhost:3003/uploads/services/s1.png"
        )

    def test_path_form_upstream_failure_is_not_found(self):
        self.upstream_status = 500
        response = self.client.get("/api/image-proxy/avatars/a1.jpg")
        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.text, "Image not found")

    def test_path_form_missing_path(self):
        response = self.client.get("/api/image-proxy/")
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.text, "Missing image path")
        self.assertEqual(self.requests, [])

    def test_path_form_rejects_traversal_segments(self):
        response = self.client.get("/api/image-proxy/%2e%2e/etc/passwd")
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.text, "Invalid image path")
        self.assertEqual(self.requests, [])

    def test_path_form_hides_parser_details(self):
        self.settings = make_settings(backend_api_url="http://localhost:abc/api/v1")
        response = self.client.get("/api/image-proxy/avatars/a1.jpg")
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.text, "Invalid image path")
        self.assertNotIn("localhost", response.text)
        self.assertEqual(self.requests, [])

    def test_path_form_unexpected_error(self):
        def broken(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("timed out", request=request)

        self.app.dependency_overrides[get_http_client] = lambda: httpx.AsyncClient(
            transport=httpx.MockTransport(broken)
        )
        response = self.client.get("/api/image-proxy/avatars/a1.jpg")
        self.assertEqual(response.status_code, 500)
        self.assertEqual(response.text, "Internal Server Error")

    def test_image_url_classifies_references(self):
        response = self.client.get("/api/image-url", params={"ref": "uploads/a.png"})
        self.assertEqual(response.status_code, 200)
        payload = response.json()
        self.assertEqual(payload["disposition"], "NEEDS_RESOLUTION")
        self.assertEqual(payload["url"], "/api/image-proxy?url=%2Fuploads%2Fa.png")

        remote = "https://pub-abc123.r2.dev/avatars/a1.jpg"
        response = self.client.get("/api/image-url", params={"ref": remote})
        self.assertEqual(response.json()["disposition"], "PASSTHROUGH_REMOTE")
        self.assertEqual(response.json()["url"], remote)

        response = self.client.get("/api/image-url")
        self.assertIsNone(response.json()["disposition"])
        self.assertEqual(response.json()["url"], "")


class StreamCleanupTests(unittest.TestCase):
    def test_upstream_closed_when_client_disconnects_before_body(self):
        async def chunks():
            yield b"png bytes"

        upstream_response = MagicMock()
        upstream_response.headers = {"content-type": "image/png"}
        upstream_response.aiter_bytes = chunks
        upstream_response.aclose = AsyncMock()
        response = _image_response(
            UpstreamImage(
                url="http://localhost:3003/uploads/a.png", response=upstream_response
            ),
            UPLOAD_CACHE_CONTROL,
        )

        async def receive():
            return {"type": "http.disconnect"}

        async def send(message):
            pass

        scope = {"type": "http", "asgi": {"spec_version": "2.0"}}
        asyncio.run(response(scope, receive, send))
        upstream_response.aclose.assert_awaited()


if __name__ == "__main__":
    unittest.main()
