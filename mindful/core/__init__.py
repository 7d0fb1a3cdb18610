# Core infrastructure
from mindful.core.context import (
    RequestContext,
    clear_context,
    get_context,
    get_course_id,
    get_request_id,
    get_trace_id,
    get_user_id,
    set_course_id,
    set_request_id,
    set_trace_id,
    set_user_id,
)
from mindful.core.logging import configure_structlog, get_logger
from mindful.core.middleware import RequestContextMiddleware


__all__ = [
    "RequestContext",
    "RequestContextMiddleware",
    "clear_context",
    "configure_structlog",
    "get_context",
    "get_course_id",
    "get_logger",
    "get_request_id",
    "get_trace_id",
    "get_user_id",
    "set_course_id",
    "set_request_id",
    "set_trace_id",
    "set_user_id",
]
