"""Tests for FinalResponderMiddleware."""

import pytest
from starlette.exceptions import HTTPException
from starlette.testclient import TestClient

from conftest import header_dict, make_receive, make_scope
from finalresponder.config import ResponderConfig
from finalresponder.errors import HTTPError
from finalresponder.middleware import FinalResponderMiddleware


async def not_found_app(scope, receive, send):
    """Application that answers nothing."""


def raising_app(error):
    async def app(scope, receive, send):
        raise error

    return app


async def hello_app(scope, receive, send):
    await send({
        "type": "http.response.start",
        "status": 200,
        "headers": [(b"content-type", b"text/plain")],
    })
    await send({"type": "http.response.body", "body": b"hello"})


class TestWithTestClient:
    """End-to-end tests through Starlette's TestClient."""

    def test_unanswered_request_is_404(self):
        """A request the app ignores gets a 404."""
        client = TestClient(FinalResponderMiddleware(not_found_app))
        response = client.get("/foo")

        assert response.status_code == 404
        assert "<pre>Cannot GET /foo</pre>" in response.text
        assert response.headers["x-content-type-options"] == "nosniff"
        assert response.headers["content-security-policy"] == "default-src 'none'"

    def test_pathname_only(self):
        """Only the pathname appears in the message."""
        client = TestClient(FinalResponderMiddleware(not_found_app))
        response = client.get("/foo?bar=1")

        assert "<pre>Cannot GET /foo</pre>" in response.text

    def test_leading_double_slash_path(self):
        """A path starting with "//" is reported in full."""
        client = TestClient(FinalResponderMiddleware(not_found_app))
        response = client.get("http://testserver//evil.example/admin")

        assert response.status_code == 404
        assert "<pre>Cannot GET //evil.example/admin</pre>" in response.text

    def test_head_has_no_body(self):
        """HEAD responses carry headers but no body."""
        client = TestClient(FinalResponderMiddleware(not_found_app))
        response = client.head("/foo")

        assert response.status_code == 404
        assert response.content == b""
        assert response.headers["content-length"] == "143"

    def test_exception_becomes_500(self):
        """An exception from the app becomes a 500."""
        client = TestClient(FinalResponderMiddleware(raising_app(RuntimeError("boom!"))))
        response = client.get("/foo")

        assert response.status_code == 500
        assert "RuntimeError: boom!" in response.text

    def test_http_error_status_and_headers(self):
        """HTTPError status and headers reach the client."""
        error = HTTPError(429, "too many requests", headers={"Retry-After": "5"})
        client = TestClient(FinalResponderMiddleware(raising_app(error)))
        response = client.get("/foo")

        assert response.status_code == 429
        assert response.headers["retry-after"] == "5"

    def test_starlette_http_exception(self):
        """Starlette HTTPException is honored."""
        error = HTTPException(status_code=403)
        config = ResponderConfig(env="production")
        client = TestClient(FinalResponderMiddleware(raising_app(error), config))
        response = client.get("/foo")

        assert response.status_code == 403
        assert "<pre>Forbidden</pre>" in response.text

    def test_negotiates_plain_text(self):
        """An unacceptable Accept header gets the plain text body."""
        config = ResponderConfig(content_type_negotiation=True)
        client = TestClient(FinalResponderMiddleware(not_found_app, config))
        response = client.get("/foo", headers={"Accept": "application/x-bogus"})

        assert response.headers["content-type"] == "text/plain; charset=utf-8"
        assert response.text == "Cannot GET /foo\n"

    def test_unread_request_body(self):
        """An unread POST body does not block the response."""
        client = TestClient(FinalResponderMiddleware(raising_app(RuntimeError("oops"))))
        response = client.post("/foo", content=b"hello, world")

        assert response.status_code == 500

    def test_answered_request_untouched(self):
        """Responses from the app pass through unchanged."""
        client = TestClient(FinalResponderMiddleware(hello_app))
        response = client.get("/foo")

        assert response.status_code == 200
        assert response.text == "hello"
        assert "content-security-policy" not in response.headers


class TestDirectASGI:
    """Tests calling the middleware with hand-built ASGI callables."""

    @pytest.mark.asyncio
    async def test_passes_through_non_http_scopes(self):
        """Non-HTTP scopes go straight to the app."""
        called = False

        async def app(scope, receive, send):
            nonlocal called
            called = True

        middleware = FinalResponderMiddleware(app)
        await middleware({"type": "lifespan"}, None, None)
        assert called

    @pytest.mark.asyncio
    async def test_app_reads_body_through_wrapper(self, captured_messages):
        """The app reads the body through the wrapped receive."""
        seen = []

        async def app(scope, receive, send):
            seen.append(await receive())

        async def send(message):
            captured_messages.append(message)

        receive = make_receive(b"abc", b"def")
        middleware = FinalResponderMiddleware(app)
        await middleware(make_scope(method="POST"), receive, send)

        assert seen[0]["body"] == b"abc"
        assert receive.pending == []
        assert captured_messages[0]["status"] == 404

    @pytest.mark.asyncio
    async def test_leading_double_slash_raw_path(self, captured_messages):
        """A raw path starting with "//" keeps its first segment."""
        async def send(message):
            captured_messages.append(message)

        scope = make_scope(path="//evil.example/admin", raw_path=b"//evil.example/admin")
        middleware = FinalResponderMiddleware(not_found_app)
        await middleware(scope, make_receive(b""), send)

        body = b"".join(m.get("body", b"") for m in captured_messages[1:])
        assert captured_messages[0]["status"] == 404
        assert b"<pre>Cannot GET //evil.example/admin</pre>" in body

    @pytest.mark.asyncio
    async def test_reraises_after_response_started(self, captured_messages):
        """An exception after the response started is re-raised."""
        async def app(scope, receive, send):
            await send({"type": "http.response.start", "status": 200, "headers": []})
            await send({"type": "http.response.body", "body": b"0", "more_body": True})
            raise RuntimeError("mid-stream")

        async def send(message):
            captured_messages.append(message)

        middleware = FinalResponderMiddleware(app)
        with pytest.raises(RuntimeError, match="mid-stream"):
            await middleware(make_scope(), make_receive(b""), send)

        assert len(captured_messages) == 2

    @pytest.mark.asyncio
    async def test_incomplete_response_left_alone(self, captured_messages):
        """An incomplete response is not completed by the middleware."""
        async def app(scope, receive, send):
            await send({"type": "http.response.start", "status": 200, "headers": []})

        async def send(message):
            captured_messages.append(message)

        middleware = FinalResponderMiddleware(app)
        await middleware(make_scope(), make_receive(b""), send)

        assert len(captured_messages) == 1
        assert header_dict(captured_messages[0]) == {}
