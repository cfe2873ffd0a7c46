"""Accept-header negotiation between the two error representations."""

from __future__ import annotations

from werkzeug.datastructures import MIMEAccept
from werkzeug.http import parse_accept_header

from finalresponder.body import HTML, TEXT

# Preference order when the client does not distinguish
SUPPORTED_TYPES = [HTML, TEXT]


def negotiate_media_type(accept: str | None) -> str:
    """Pick HTML or plain text for an ``Accept`` header value.

    A missing header accepts anything. When nothing on offer is
    acceptable, plain text is used.
    """
    accepted = parse_accept_header(accept if accept is not None else "*/*", MIMEAccept)
    return accepted.best_match(SUPPORTED_TYPES, default=TEXT)


def choose_media_type(accept: str | None, negotiate: bool, default: str = HTML) -> str:
    if not negotiate:
        return default
    return negotiate_media_type(accept)
