import uuid

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from app.stockflow.core.context import ACTOR_ID_HEADER, ACTOR_NAME_HEADER, build_request_context


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Attach trace id and caller-declared actor to ``request.state``."""

    async def dispatch(self, request: Request, call_next):
        trace_id = request.headers.get("X-Trace-ID") or str(uuid.uuid4())
        actor_id = (request.headers.get(ACTOR_ID_HEADER) or "").strip() or None
        actor_name = (request.headers.get(ACTOR_NAME_HEADER) or "").strip() or None

        request.state.trace_id = trace_id
        request.state.actor_id = actor_id
        request.state.actor_name = actor_name
        request.state.context = build_request_context(
            actor_id=actor_id,
            actor_name=actor_name,
            trace_id=trace_id,
        )

        response: Response = await call_next(request)
        response.headers["X-Trace-ID"] = trace_id
        return response
