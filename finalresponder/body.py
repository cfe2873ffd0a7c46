"""Response bodies for the final responder."""

from __future__ import annotations

from dataclasses import dataclass

from markupsafe import escape

HTML = "text/html"
TEXT = "text/plain"

_HTML_DOCUMENT = (
    "<!DOCTYPE html>\n"
    '<html lang="en">\n'
    "<head>\n"
    '<meta charset="utf-8">\n'
    "<title>Error</title>\n"
    "</head>\n"
    "<body>\n"
    "<pre>{message}</pre>\n"
    "</body>\n"
    "</html>\n"
)


@dataclass(frozen=True)
class ResponseBody:
    """Encoded payload plus the headers that describe it."""

    content: bytes
    content_type: str

    @property
    def length(self) -> int:
        return len(self.content)


def build_html_body(message: str) -> ResponseBody:
    """Wrap an escaped ``message`` in a minimal HTML error page.

    Newlines become ``<br>`` and double spaces keep their width so
    indented tracebacks stay readable.
    """
    escaped = str(escape(message)).replace("\n", "<br>").replace("  ", " &nbsp;")
    html = _HTML_DOCUMENT.format(message=escaped)
    return ResponseBody(content=html.encode("utf-8"), content_type="text/html; charset=utf-8")


def build_text_body(message: str) -> ResponseBody:
    return ResponseBody(content=f"{message}\n".encode("utf-8"), content_type="text/plain; charset=utf-8")


def build_body(media_type: str, message: str) -> ResponseBody:
    if media_type == HTML:
        return build_html_body(message)
    return build_text_body(message)
