"""FastMCP middleware that opens one span per MCP request."""

from typing import Any

import logfire
from fastmcp.server.middleware import Middleware, MiddlewareContext

from . import get_config

# Tool arguments copied onto the request span so a trace can be found by
# the reservation, book or caller it touched.
_TRACKED_ARGUMENTS = ("reservation_id", "book_id", "user_id", "actor_id", "status")


class MCPInstrumentationMiddleware(Middleware):
    """Traces every MCP request with the lending identifiers it carries."""

    def __init__(self):
        self.enabled = get_config().enabled

    async def on_message(self, context: MiddlewareContext, call_next) -> Any:
        if not self.enabled:
            return await call_next(context)

        method = context.method or "unknown"
        kind = _request_kind(method)

        with logfire.span(
            f"mcp.{kind}.{method}",
            _span_name=f"MCP {method}",
            mcp_method=method,
            mcp_request_kind=kind,
        ) as span:
            message = getattr(context, "message", None)
            name = getattr(message, "name", None)
            uri = getattr(message, "uri", None)
            if name is not None:
                span.set_attribute("tool.name", name)
                for key, value in _tracked_arguments(getattr(message, "arguments", None)):
                    span.set_attribute(f"lending.{key}", value)
            elif uri is not None:
                span.set_attribute("resource.uri", str(uri))

            try:
                result = await call_next(context)
            except Exception as e:
                span.set_attribute("mcp.status", "error")
                span.set_attribute("error.type", type(e).__name__)
                raise

            span.set_attribute("mcp.status", "success")
            return result


def _request_kind(method: str) -> str:
    if method.startswith("tools/"):
        return "tool"
    if method.startswith("resources/"):
        return "resource"
    return "system"


def _tracked_arguments(arguments: Any):
    if not isinstance(arguments, dict):
        return
    for key in _TRACKED_ARGUMENTS:
        value = arguments.get(key)
        if isinstance(value, str):
            yield key, value
