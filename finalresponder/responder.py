"""Final responder: the last link of a request pipeline.

``make_responder`` returns a ``finalize`` coroutine function for one
request. Call it with nothing when no handler matched (404) or with
whatever the failing handler produced. It either writes a short error
response or, when the response has already started, abandons the
connection. It never does both.

Usage:
    finalize = make_responder(request, response, ResponderConfig(env="production"))
    await finalize(exc)
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from typing import Any, Awaitable, Callable

from finalresponder.body import ResponseBody, build_body
from finalresponder.config import ResponderConfig
from finalresponder.errors import ErrorInfo, not_found_message, resolve_error_info, status_phrase
from finalresponder.negotiation import choose_media_type
from finalresponder.transport import ASGIRequest, ASGIResponse

logger = logging.getLogger(__name__)

Finalize = Callable[..., Awaitable[None]]

# Set by others, but describe a body this responder replaces
REPRESENTATION_HEADERS = ("content-encoding", "content-language", "content-range")

SECURITY_HEADERS = {
    "content-security-policy": "default-src 'none'",
    "x-content-type-options": "nosniff",
}

# Strong references to running async observers
_observer_tasks: set[asyncio.Task] = set()


def _notify_observer(onerror: Callable, error: Any, request: Any, response: Any) -> None:
    """Run ``onerror`` on a later loop iteration; its failures are not ours."""

    def run() -> None:
        result = onerror(error, request, response)
        if inspect.isawaitable(result):
            task = asyncio.ensure_future(result)
            _observer_tasks.add(task)
            task.add_done_callback(_observer_tasks.discard)

    asyncio.get_running_loop().call_soon(run)


def _abort(response: ASGIResponse, status: int) -> None:
    logger.debug("cannot %d after headers sent", status)
    destroy = getattr(response, "destroy", None)
    if callable(destroy):
        destroy()


async def _drain_request(request: ASGIRequest) -> None:
    """Make sure nobody is still reading the request body, then finish it."""
    body = request.body
    if body.ended:
        return
    body.unpipe()
    await body.drain()
    await body.wait_ended()


async def _write(request: ASGIRequest, response: ASGIResponse, info: ErrorInfo, body: ResponseBody) -> None:
    response.status_code = info.status
    if response.supports_reason_phrase:
        response.reason_phrase = status_phrase(info.status)

    for name in REPRESENTATION_HEADERS:
        if name in response.headers:
            del response.headers[name]

    for name, value in info.headers.items():
        response.headers[name] = value

    for name, value in SECURITY_HEADERS.items():
        response.headers[name] = value

    response.headers["content-type"] = body.content_type
    response.headers["content-length"] = str(body.length)

    if request.method == "HEAD":
        await response.end()
        return

    await response.end(body.content)


def make_responder(
    request: ASGIRequest,
    response: ASGIResponse,
    config: ResponderConfig | None = None,
) -> Finalize:
    """Create the finalize step for one request/response pair."""
    config = config or ResponderConfig()
    onerror = config.onerror

    async def finalize(error: Any = None) -> None:
        if error is None:
            info = ErrorInfo(status=404, message=not_found_message(request.method, request.original_url))
        else:
            info = resolve_error_info(error, response, production=config.is_production)

        logger.debug("default %s", info.status)

        if error is not None and onerror is not None:
            _notify_observer(onerror, error, request, response)

        if response.headers_sent:
            _abort(response, info.status)
            return

        media_type = choose_media_type(
            request.accept,
            config.content_type_negotiation,
            config.default_content_type,
        )
        body = build_body(media_type, info.message)

        await _drain_request(request)
        await _write(request, response, info, body)

    return finalize
