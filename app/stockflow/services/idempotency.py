import hashlib
import json
from dataclasses import dataclass
from datetime import datetime

from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError

from app.stockflow.core.error_catalog import ConflictError, ErrorCatalog
from app.stockflow.core.metrics import metrics
from app.stockflow.db.models import IdempotencyRecord
from app.stockflow.repos.idempotency import IdempotencyRepository


IDEMPOTENCY_HEADER = "Idempotency-Key"
# conflicts and server faults are re-executed on retry, not replayed
_RETRYABLE_STATUS_CODES = {409, 500, 503}


@dataclass
class IdempotencyReplay:
    status_code: int
    response_body: dict


class IdempotencyContext:
    def __init__(self, record: IdempotencyRecord, repo: IdempotencyRepository):
        self._record = record
        self._repo = repo

    def _finish(self, state: str, status_code: int, response_body: dict) -> None:
        self._record.status_code = status_code
        self._record.response_body = json.dumps(response_body, default=str)
        self._record.state = state
        self._record.updated_at = datetime.utcnow()
        self._repo.update(self._record)

    def record_success(self, *, status_code: int, response_body: dict) -> None:
        self._finish("succeeded", status_code, response_body)

    def record_failure(self, *, status_code: int, response_body: dict) -> None:
        self._finish("failed", status_code, response_body)


class IdempotencyService:
    def __init__(self, db):
        self.repo = IdempotencyRepository(db)

    @staticmethod
    def fingerprint(payload: object) -> str:
        payload_bytes = json.dumps(payload, sort_keys=True, default=str).encode("utf-8")
        return hashlib.sha256(payload_bytes).hexdigest()

    def start(
        self,
        *,
        endpoint: str,
        method: str,
        idempotency_key: str,
        request_hash: str,
    ) -> tuple[IdempotencyContext | None, IdempotencyReplay | None]:
        existing = self.repo.get_by_key(endpoint=endpoint, method=method, idempotency_key=idempotency_key)
        if existing:
            return self._handle_existing(existing, request_hash)

        record = IdempotencyRecord(
            endpoint=endpoint,
            method=method,
            idempotency_key=idempotency_key,
            request_hash=request_hash,
            state="in_progress",
            status_code=None,
            response_body=None,
        )
        try:
            record = self.repo.create(record)
        except IntegrityError:
            self.repo.db.rollback()
            return self._handle_existing(
                self.repo.get_by_key(endpoint=endpoint, method=method, idempotency_key=idempotency_key),
                request_hash,
            )

        return IdempotencyContext(record, self.repo), None

    def _handle_existing(
        self, existing: IdempotencyRecord | None, request_hash: str
    ) -> tuple[IdempotencyContext | None, IdempotencyReplay | None]:
        if existing is None:
            raise ConflictError(ErrorCatalog.IDEMPOTENCY_REQUEST_IN_PROGRESS)
        if existing.request_hash != request_hash:
            raise ConflictError(ErrorCatalog.IDEMPOTENCY_KEY_REUSED_WITH_DIFFERENT_PAYLOAD)
        if existing.state == "in_progress":
            raise ConflictError(ErrorCatalog.IDEMPOTENCY_REQUEST_IN_PROGRESS)
        if existing.state == "failed" and (existing.status_code or 500) in _RETRYABLE_STATUS_CODES:
            existing.state = "in_progress"
            existing.status_code = None
            existing.response_body = None
            existing.updated_at = datetime.utcnow()
            return IdempotencyContext(self.repo.update(existing), self.repo), None
        if existing.response_body is None or existing.status_code is None:
            raise ConflictError(ErrorCatalog.IDEMPOTENCY_REQUEST_IN_PROGRESS)
        response_body = json.loads(existing.response_body)
        return None, IdempotencyReplay(status_code=existing.status_code, response_body=response_body)


def extract_idempotency_key(headers) -> str | None:
    key = (headers.get(IDEMPOTENCY_HEADER) or "").strip()
    return key or None


def begin_idempotent_request(request, db, payload: object):
    """Start idempotency tracking when the caller sent a key.

    Returns ``(context, replay_response)``; both are ``None`` without a key.
    """
    idempotency_key = extract_idempotency_key(request.headers)
    if idempotency_key is None:
        request.state.idempotency = None
        return None, None
    context, replay = IdempotencyService(db).start(
        endpoint=str(request.url.path),
        method=request.method,
        idempotency_key=idempotency_key,
        request_hash=IdempotencyService.fingerprint(payload),
    )
    if replay:
        metrics.increment_idempotency_replay()
        return None, JSONResponse(
            status_code=replay.status_code,
            content=replay.response_body,
            headers={"X-Idempotency-Result": ErrorCatalog.IDEMPOTENCY_REPLAY.code},
        )
    request.state.idempotency = context
    return context, None
