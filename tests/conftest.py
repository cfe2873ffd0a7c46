"""Shared pytest fixtures."""

import pytest

from finalresponder.transport import ASGIRequest, ASGIResponse


def make_scope(method="GET", path="/foo", headers=None, query_string=b"", **extra):
    """Build a minimal HTTP scope."""
    scope = {
        "type": "http",
        "method": method,
        "path": path,
        "query_string": query_string,
        "headers": headers or [],
    }
    scope.update(extra)
    return scope


def make_receive(*chunks, end=True):
    """Return an ASGI receive callable that yields ``chunks`` as body messages.

    With ``end=True`` the last chunk closes the body; afterwards (or when
    nothing is left) the client is reported as disconnected.
    """
    messages = [
        {"type": "http.request", "body": chunk, "more_body": not (end and i == len(chunks) - 1)}
        for i, chunk in enumerate(chunks)
    ]
    received = []

    async def receive():
        if messages:
            message = messages.pop(0)
            received.append(message)
            return message
        return {"type": "http.disconnect"}

    receive.received = received
    receive.pending = messages
    return receive


def header_dict(message):
    """Decode the headers of an ``http.response.start`` message, lower-cased."""
    return {k.decode().lower(): v.decode() for k, v in message.get("headers", [])}


@pytest.fixture(autouse=True)
def clean_env(monkeypatch, tmp_path):
    """Keep the host environment and any .env file out of ResponderConfig."""
    monkeypatch.delenv("FINALRESPONDER_ENV", raising=False)
    monkeypatch.chdir(tmp_path)


@pytest.fixture
def captured_messages():
    """List to capture sent ASGI messages."""
    return []


@pytest.fixture
def make_pair(captured_messages):
    """Factory for an ASGIRequest/ASGIResponse pair wired to captured_messages."""

    async def send(message):
        captured_messages.append(message)

    def _make(method="GET", path="/foo", headers=None, receive=None, **extra):
        scope = make_scope(method=method, path=path, headers=headers, **extra)
        request = ASGIRequest(scope, receive or make_receive(b""))
        response = ASGIResponse(send)
        return request, response

    return _make
