from .client import close_http_client, get_http_client, request_with_retry
from .errors import ComandaHTTPError, ComandaHTTPNetworkError, ComandaHTTPStatusError

__all__ = [
    "close_http_client",
    "get_http_client",
    "request_with_retry",
    "ComandaHTTPError",
    "ComandaHTTPNetworkError",
    "ComandaHTTPStatusError",
]
