"""Ready-made ``onerror`` observers."""

import logging
from typing import Any, Callable

logger = logging.getLogger(__name__)


def log_errors(log: logging.Logger | None = None) -> Callable[[Any, Any, Any], None]:
    """Build an observer that logs every error the responder handles.

    Exceptions are logged with their traceback; other values are logged
    as-is.
    """
    log = log or logger

    def onerror(error: Any, request: Any, response: Any) -> None:
        path = request.scope.get("path", "") if hasattr(request, "scope") else ""
        exc_info = error if isinstance(error, BaseException) else None
        log.error("Unhandled exception on %s %s: %s", request.method, path, error, exc_info=exc_info)

    return onerror
