from fastapi import Request
from .context import RequestContext


def get_request_context(request: Request) -> RequestContext:
    """
    FastAPI dependency returning the RequestContext built by ContextMiddleware.

    Usage:
        @router.get("/climbs")
        async def list_climbs(ctx: RequestContext = Depends(get_request_context)):
            logger.info("Listing climbs", ctx)
    """
    ctx = getattr(request.state, "context", None)
    if ctx is None:
        raise RuntimeError("RequestContext missing - is ContextMiddleware installed?")
    return ctx
