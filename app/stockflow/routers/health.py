from fastapi import APIRouter, Depends, Request
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from app.stockflow.core.error_catalog import ErrorCatalog
from app.stockflow.core.errors import error_response
from app.stockflow.db.session import get_db

router = APIRouter()


@router.get("/health")
async def health(request: Request):
    return {"status": "ok", "trace_id": getattr(request.state, "trace_id", "")}


@router.get("/ready")
def ready(request: Request, db=Depends(get_db)):
    trace_id = getattr(request.state, "trace_id", "")
    try:
        db.execute(text("SELECT 1"))
    except SQLAlchemyError as exc:
        return error_response(
            code=ErrorCatalog.DB_UNAVAILABLE.code,
            message=ErrorCatalog.DB_UNAVAILABLE.message,
            details={"type": exc.__class__.__name__},
            trace_id=trace_id,
            status_code=ErrorCatalog.DB_UNAVAILABLE.status_code,
        )
    return {"status": "ready", "trace_id": trace_id}
