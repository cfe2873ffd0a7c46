"""ASGI middleware that installs the final responder behind an application.

Requests the wrapped application leaves unanswered get a 404; exceptions
it raises become error responses. Once the application has started a
response, an exception can no longer be reported to the client, so the
response is abandoned and the exception re-raised for the server to
close the connection.
"""

import logging

from starlette.types import ASGIApp, Receive, Scope, Send

from finalresponder.config import ResponderConfig
from finalresponder.responder import make_responder
from finalresponder.transport import ASGIRequest, ASGIResponse

logger = logging.getLogger(__name__)


class FinalResponderMiddleware:
    """ASGI middleware that finalizes every HTTP request.

    Args:
        app: The ASGI application to wrap.
        config: Responder options; read from the environment when omitted.
    """

    def __init__(self, app: ASGIApp, config: ResponderConfig | None = None) -> None:
        self.app = app
        self.config = config or ResponderConfig()

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        request = ASGIRequest(scope, receive)
        response = ASGIResponse(send)
        finalize = make_responder(request, response, self.config)

        try:
            await self.app(scope, request.receive, response.send)
        except Exception as exc:
            await finalize(exc)
            if response.aborted:
                raise
            return

        if not response.headers_sent:
            await finalize()
        elif not response.finished:
            logger.debug("%s %s returned with an incomplete response", request.method, scope.get("path"))
