"""Error inspection for the final responder.

Errors reaching the end of a pipeline can be anything: exceptions,
Starlette ``HTTPException``s, plain strings, dicts. ``resolve_error_info``
reads them once, defensively, and returns an ``ErrorInfo`` that the
rest of the responder works from.
"""

from __future__ import annotations

import logging
import re
import traceback
from collections.abc import Mapping
from dataclasses import dataclass, field
from http import HTTPStatus
from typing import Any
from urllib.parse import quote, urlsplit

logger = logging.getLogger(__name__)

# Codes in common use that http.HTTPStatus does not list
_EXTRA_PHRASES = {
    509: "Bandwidth Limit Exceeded",
}

# Runs of characters outside the URL-safe set, or "%" not starting a valid escape
_UNSAFE_URL_CHARS = re.compile(
    r"(?:[^\x21\x23-\x3B\x3D\x3F-\x5F\x61-\x7A\x7C\x7E]"
    r"|%(?:[^0-9A-Fa-f]|[0-9A-Fa-f][^0-9A-Fa-f]|$))+"
)

# Left unescaped alongside the always-safe alphanumerics and "_.-~"
_URI_RESERVED = ";,/?:@&=+$!*'()#"

_MISSING = object()


class HTTPError(Exception):
    """Exception carrying the HTTP status (and headers) it should produce.

    Args:
        status: HTTP status code, expected in the 4xx/5xx range.
        message: Human readable description.
        headers: Extra response headers, sent only with a valid status.
    """

    def __init__(
        self,
        status: int = 500,
        message: str | None = None,
        headers: Mapping[str, str] | None = None,
    ) -> None:
        self.status = status
        self.headers = dict(headers) if headers else None
        super().__init__(message or status_phrase(status))


@dataclass(frozen=True)
class ErrorInfo:
    """What the responder needs to know about a failed request."""

    status: int
    message: str
    headers: dict[str, str] = field(default_factory=dict)


def is_error_status(value: Any) -> bool:
    """Return True for an int status code in the 400-599 range."""
    return isinstance(value, int) and not isinstance(value, bool) and 400 <= value <= 599


def status_phrase(status: int) -> str:
    try:
        return HTTPStatus(status).phrase
    except ValueError:
        pass
    if status in _EXTRA_PHRASES:
        return _EXTRA_PHRASES[status]
    return "Client Error" if 400 <= status < 500 else "Server Error"


def _get_field(error: Any, name: str) -> Any:
    if isinstance(error, Mapping):
        return error.get(name, _MISSING)
    try:
        return getattr(error, name, _MISSING)
    except Exception:
        return _MISSING


def get_error_status(error: Any) -> int | None:
    """Return the explicit status carried by ``error``, if it is valid.

    ``status`` wins over ``status_code``; invalid candidates are skipped,
    never clamped.
    """
    for name in ("status", "status_code", "statusCode"):
        candidate = _get_field(error, name)
        if is_error_status(candidate):
            return candidate
    return None


def _is_header_text(value: str) -> bool:
    try:
        value.encode("latin-1")
    except UnicodeEncodeError:
        return False
    return "\r" not in value and "\n" not in value


def get_error_headers(error: Any) -> dict[str, str]:
    """Copy ``error.headers`` when it is a mapping; anything else yields nothing.

    Pairs that cannot go on the wire as latin-1 header text are skipped.
    """
    headers = _get_field(error, "headers")
    if not isinstance(headers, Mapping):
        return {}

    copied = {}
    for key, value in headers.items():
        key, value = str(key), str(value)
        if not (_is_header_text(key) and _is_header_text(value)):
            logger.debug("skipping unencodable error header %r", key)
            continue
        copied[key] = value
    return copied


def get_response_status(response: Any) -> int | None:
    status = getattr(response, "status_code", None)
    return status if is_error_status(status) else None


def describe_error(error: Any) -> str | None:
    """Return the diagnostic text for ``error``: traceback, stack or str()."""
    try:
        if isinstance(error, BaseException):
            if error.__traceback__ is not None:
                text = "".join(traceback.format_exception(type(error), error, error.__traceback__))
            else:
                text = "".join(traceback.format_exception_only(type(error), error))
            return text.rstrip("\n") or None

        stack = _get_field(error, "stack")
        if isinstance(stack, str) and stack:
            return stack
        return str(error) or None
    except Exception:
        return None


def encode_url(url: str) -> str:
    """Percent-encode unsafe characters, leaving valid escapes alone."""
    return _UNSAFE_URL_CHARS.sub(lambda match: quote(match.group(0), safe=_URI_RESERVED), url)


def resource_name(original_url: str | None) -> str:
    """Return the encoded pathname of the request, or ``"resource"``."""
    if not original_url:
        return "resource"
    if original_url.startswith("/"):
        # Origin form is already a path, even when it starts with "//"
        pathname = original_url.partition("?")[0]
    else:
        try:
            pathname = urlsplit(original_url).path
        except ValueError:
            return "resource"
    if not pathname:
        return "resource"
    return encode_url(pathname)


def not_found_message(method: str, original_url: str | None) -> str:
    return f"Cannot {method} {resource_name(original_url)}"


def resolve_error_info(error: Any, response: Any, production: bool = False) -> ErrorInfo:
    """Work out status, headers and message for ``error``.

    Status comes from the error's own ``status``/``status_code`` when
    valid, then the response's current status when that is an error
    code, then 500. Headers are forwarded only in the first case.
    Production mode always shows the status phrase.
    """
    headers: dict[str, str] = {}
    status = get_error_status(error)
    if status is not None:
        headers = get_error_headers(error)
    else:
        status = get_response_status(response) or 500

    message = None if production else describe_error(error)
    return ErrorInfo(status=status, message=message or status_phrase(status), headers=headers)
