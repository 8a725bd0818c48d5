"""
Middleware package.
"""

from stitchpay.middleware.request_context import (
    RequestContext,
    RequestContextMiddleware,
    get_request_context,
    get_client_ip,
)

__all__ = [
    "RequestContext",
    "RequestContextMiddleware",
    "get_request_context",
    "get_client_ip",
]
