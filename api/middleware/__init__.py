from .request_id import RequestIDMiddleware, get_client_ip, get_request_id
from .logging import LoggingMiddleware, sanitize

__all__ = [
    "RequestIDMiddleware",
    "LoggingMiddleware",
    "get_request_id",
    "get_client_ip",
    "sanitize",
]
