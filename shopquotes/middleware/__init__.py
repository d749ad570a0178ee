from shopquotes.middleware.request_context import (
    RequestContextMiddleware,
    RequestIdLogFilter,
    get_request_id,
)

__all__ = ["RequestContextMiddleware", "RequestIdLogFilter", "get_request_id"]
