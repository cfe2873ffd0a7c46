from finalresponder.config import ResponderConfig, load_config
from finalresponder.errors import HTTPError
from finalresponder.middleware import FinalResponderMiddleware
from finalresponder.observers import log_errors
from finalresponder.responder import make_responder
from finalresponder.transport import ASGIRequest, ASGIResponse, BodyStream

__all__ = [
    "ASGIRequest",
    "ASGIResponse",
    "BodyStream",
    "FinalResponderMiddleware",
    "HTTPError",
    "ResponderConfig",
    "load_config",
    "log_errors",
    "make_responder",
]
