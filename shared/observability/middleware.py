from starlette.types import ASGIApp, Message, Receive, Scope, Send
from starlette.requests import Request as StarletteRequest
from .context import (
    RequestContext,
    generate_trace_id,
    generate_request_id,
    generate_span_id,
    set_current_context,
    reset_current_context,
)


class ContextMiddleware:
    """
    ASGI Middleware that creates RequestContext from headers and attaches it to request.state.

    Reads X-Trace-Id and X-Request-Id, generating either one when absent.
    Always generates a NEW span_id for each incoming request.
    """

    def __init__(self, app: ASGIApp, service_name: str):
        self.app = app
        self.service_name = service_name

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        request = StarletteRequest(scope)

        trace_id = request.headers.get('X-Trace-Id') or generate_trace_id()
        request_id = request.headers.get('X-Request-Id') or generate_request_id()
        span_id = generate_span_id()

        endpoint_code = f"{scope.get('method', 'GET')}{scope.get('path', '/')}"
        request_source = f"{self.service_name.upper()}:{endpoint_code}"

        ctx = RequestContext(
            trace_id=trace_id,
            request_id=request_id,
            request_source=request_source,
            span_id=span_id
        )

        scope.setdefault("state", {})
        scope["state"]["context"] = ctx
        token = set_current_context(ctx)

        async def send_with_headers(message: Message):
            if message["type"] == "http.response.start":
                headers = list(message.get("headers", []))
                headers.append((b"x-trace-id", trace_id.encode()))
                headers.append((b"x-request-id", request_id.encode()))
                headers.append((b"x-span-id", span_id.encode()))
                message["headers"] = headers
            await send(message)

        try:
            await self.app(scope, receive, send_with_headers)
        finally:
            reset_current_context(token)
