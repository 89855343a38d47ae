from dataclasses import dataclass

from fastapi import Request

from app.stockflow.core.error_catalog import AppError, ErrorCatalog

ACTOR_ID_HEADER = "X-Actor-ID"
ACTOR_NAME_HEADER = "X-Actor-Name"


@dataclass(frozen=True)
class Actor:
    id: str
    name: str | None = None


@dataclass(frozen=True)
class RequestContext:
    actor_id: str | None
    actor_name: str | None
    trace_id: str


def build_request_context(
    *,
    actor_id: str | None,
    actor_name: str | None,
    trace_id: str,
) -> RequestContext:
    return RequestContext(
        actor_id=actor_id,
        actor_name=actor_name,
        trace_id=trace_id,
    )


def get_request_context(request: Request) -> RequestContext:
    context = getattr(request.state, "context", None)
    if isinstance(context, RequestContext):
        return context
    return build_request_context(
        actor_id=getattr(request.state, "actor_id", None),
        actor_name=getattr(request.state, "actor_name", None),
        trace_id=getattr(request.state, "trace_id", ""),
    )


def require_actor(request: Request) -> Actor:
    context = get_request_context(request)
    if not context.actor_id:
        raise AppError(
            ErrorCatalog.ACTOR_REQUIRED,
            details={"message": f"{ACTOR_ID_HEADER} header is required"},
        )
    return Actor(id=context.actor_id, name=context.actor_name)
