"""ASGI request/response descriptors used by the final responder.

ASGI hands an application three callables and nothing else, so these
classes give the responder the handles it needs: a readable body stream
that can be unpiped and drained, a mutable status and header map that
is only flushed when the response starts, and an abort switch for the
case where the response is already on the wire.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable

from starlette.datastructures import MutableHeaders
from starlette.types import Message, Receive, Scope, Send

logger = logging.getLogger(__name__)

Sink = Callable[[bytes], Awaitable[None]]


class BodyStream:
    """Readable view over an ASGI ``receive`` callable.

    Reads are serialized so that only one consumer pulls messages at a
    time. ``pipe`` copies the body into an async sink in the background;
    ``unpipe`` detaches every such copier.
    """

    def __init__(self, receive: Receive) -> None:
        self._receive = receive
        self._lock = asyncio.Lock()
        self._ended = asyncio.Event()
        self._pipes: set[asyncio.Task] = set()
        self.disconnected = False

    @property
    def ended(self) -> bool:
        return self._ended.is_set()

    async def receive(self) -> Message:
        """Pull the next raw ASGI message, tracking end of body."""
        async with self._lock:
            if self.ended:
                return {"type": "http.disconnect"} if self.disconnected else {
                    "type": "http.request",
                    "body": b"",
                    "more_body": False,
                }
            message = await self._receive()
            if message["type"] == "http.disconnect":
                self.disconnected = True
                self._ended.set()
            elif message["type"] == "http.request" and not message.get("more_body", False):
                self._ended.set()
            return message

    async def read(self) -> bytes:
        """Return the next body chunk, or ``b""`` once the body has ended."""
        while not self.ended:
            message = await self.receive()
            if message["type"] == "http.request":
                chunk = message.get("body", b"")
                if chunk or self.ended:
                    return chunk
        return b""

    def pipe(self, sink: Sink) -> asyncio.Task:
        """Copy the remaining body into ``sink`` in a background task."""

        async def run() -> None:
            while True:
                chunk = await self.read()
                if chunk:
                    await sink(chunk)
                if self.ended:
                    return

        task = asyncio.create_task(run())
        self._pipes.add(task)
        task.add_done_callback(self._pipes.discard)
        return task

    @property
    def piped(self) -> bool:
        return bool(self._pipes)

    def unpipe(self) -> None:
        """Detach every active pipe destination."""
        for task in list(self._pipes):
            task.cancel()
        self._pipes.clear()

    async def drain(self) -> None:
        """Read and discard until the body has ended."""
        discarded = 0
        while not self.ended:
            discarded += len(await self.read())
        if discarded:
            logger.debug("drained %d unread request bytes", discarded)

    async def wait_ended(self) -> None:
        await self._ended.wait()


class ASGIRequest:
    """Inbound request descriptor built from an HTTP scope."""

    def __init__(self, scope: Scope, receive: Receive | BodyStream) -> None:
        self.scope = scope
        self.body = receive if isinstance(receive, BodyStream) else BodyStream(receive)

    @property
    def method(self) -> str:
        return self.scope.get("method", "GET")

    @property
    def original_url(self) -> str | None:
        """Full request target as first seen by the application.

        Mounted sub-applications see a shortened ``path``; prefixing
        ``root_path`` recovers what the client actually requested.
        """
        if "path" not in self.scope and "raw_path" not in self.scope:
            return None
        raw_path = self.scope.get("raw_path")
        if raw_path is not None:
            path = raw_path.decode("latin-1")
        else:
            path = self.scope.get("path")
            if path is None:
                return None
            root_path = self.scope.get("root_path", "")
            if root_path and not path.startswith(root_path):
                path = root_path + path
        query = self.scope.get("query_string", b"")
        if query:
            path = f"{path}?{query.decode('latin-1')}"
        return path

    @property
    def accept(self) -> str | None:
        for name, value in self.scope.get("headers", []):
            if name.lower() == b"accept":
                return value.decode("latin-1")
        return None

    async def receive(self) -> Message:
        return await self.body.receive()


class ASGIResponse:
    """Outbound response descriptor wrapping an ASGI ``send`` callable.

    Status and headers stay mutable until the ``http.response.start``
    message goes out, either through ``start``/``end`` or through the
    wrapped ``send`` handed to the application.
    """

    supports_reason_phrase = False

    def __init__(self, send: Send) -> None:
        self._send = send
        self.status_code: object = 200
        self.reason_phrase: str | None = None
        self._start: Message = {"type": "http.response.start", "status": 200, "headers": []}
        self.headers = MutableHeaders(scope=self._start)
        self.headers_sent = False
        self.finished = False
        self.aborted = False

    async def send(self, message: Message) -> None:
        """Forward an application message, recording response progress."""
        if self.aborted:
            return
        if message["type"] == "http.response.start":
            self.headers_sent = True
            self.status_code = message["status"]
        elif message["type"] == "http.response.body" and not message.get("more_body", False):
            self.finished = True
        await self._send(message)

    async def start(self) -> None:
        self._start["status"] = self.status_code
        await self.send(self._start)

    async def end(self, body: bytes = b"") -> None:
        if not self.headers_sent:
            await self.start()
        await self.send({"type": "http.response.body", "body": body, "more_body": False})

    def destroy(self) -> None:
        """Abandon the response; nothing further reaches the client.

        The ASGI server closes the connection once the application
        returns (or raises) with the response incomplete.
        """
        self.aborted = True
