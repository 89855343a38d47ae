from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from sqlalchemy import or_, select

from app.stockflow.core.metrics import metrics
from app.stockflow.db.models import Sale, StockRecord, Transfer, TransferLine
from app.stockflow.services.transfer_state import (
    CANCELLED,
    IN_TRANSIT,
    PARTIALLY_RECEIVED,
    PENDING,
    RECEIVED,
    LineReceipt,
    derive_status,
    receipt_state,
)


SEVERITY_CRITICAL = "CRITICAL"
SEVERITY_WARN = "WARN"


@dataclass(frozen=True)
class IntegrityFinding:
    check_id: str
    severity: str
    message: str
    entity: str
    entity_id: str | None
    details: dict


def _report(check_id: str, findings: list[IntegrityFinding]) -> list[IntegrityFinding]:
    if findings:
        metrics.increment_invariant_violation(check_id, len(findings))
    return findings


def _lines_by_transfer(db) -> dict:
    grouped: dict = {}
    for line in db.execute(select(TransferLine).order_by(TransferLine.position)).scalars().all():
        grouped.setdefault(line.transfer_id, []).append(line)
    return grouped


def check_negative_stock(db) -> list[IntegrityFinding]:
    rows = db.execute(
        select(
            StockRecord.id,
            StockRecord.product_id,
            StockRecord.store_id,
            StockRecord.warehouse_qty,
            StockRecord.store_qty,
        )
        .where(or_(StockRecord.warehouse_qty < 0, StockRecord.store_qty < 0))
    ).all()
    findings = [
        IntegrityFinding(
            check_id="negative_stock",
            severity=SEVERITY_CRITICAL,
            message="Stock record holds a negative quantity.",
            entity="stock_records",
            entity_id=str(row.id),
            details={
                "product_id": str(row.product_id),
                "store_id": str(row.store_id),
                "warehouse_qty": row.warehouse_qty,
                "store_qty": row.store_qty,
            },
        )
        for row in rows
    ]
    return _report("negative_stock", findings)


def check_over_received_lines(db) -> list[IntegrityFinding]:
    rows = db.execute(
        select(TransferLine.id, TransferLine.transfer_id, TransferLine.requested_qty, TransferLine.received_qty)
        .where(TransferLine.received_qty.is_not(None))
        .where(or_(TransferLine.received_qty > TransferLine.requested_qty, TransferLine.received_qty < 0))
    ).all()
    findings = [
        IntegrityFinding(
            check_id="over_received_line",
            severity=SEVERITY_CRITICAL,
            message="Transfer line received quantity outside 0..requested.",
            entity="transfer_lines",
            entity_id=str(row.id),
            details={
                "transfer_id": str(row.transfer_id),
                "requested_qty": row.requested_qty,
                "received_qty": row.received_qty,
            },
        )
        for row in rows
    ]
    return _report("over_received_line", findings)


def check_transfer_status(db) -> list[IntegrityFinding]:
    lines_by_transfer = _lines_by_transfer(db)
    findings = []
    for transfer in db.execute(select(Transfer)).scalars().all():
        lines = lines_by_transfer.get(transfer.id, [])
        expected = derive_status(
            [
                LineReceipt(
                    requested=line.requested_qty,
                    state=receipt_state(line.received_qty, line.receiving_notes, line.received_location),
                )
                for line in lines
            ],
            dispatched=transfer.dispatched_at is not None,
            cancelled=transfer.cancelled_at is not None,
        )
        if expected != transfer.status:
            findings.append(
                IntegrityFinding(
                    check_id="transfer_status_derivation",
                    severity=SEVERITY_CRITICAL,
                    message="Stored transfer status differs from the status derived from its lines.",
                    entity="transfers",
                    entity_id=str(transfer.id),
                    details={"status": transfer.status, "expected": expected, "lines": len(lines)},
                )
            )
    return _report("transfer_status_derivation", findings)


def check_transfer_fsm(db) -> list[IntegrityFinding]:
    rows = db.execute(
        select(
            Transfer.id,
            Transfer.status,
            Transfer.dispatched_at,
            Transfer.received_at,
            Transfer.cancelled_at,
        )
    ).all()
    findings = []
    for row in rows:
        status = row.status
        if status == PENDING:
            invalid = any([row.dispatched_at, row.received_at, row.cancelled_at])
        elif status == IN_TRANSIT:
            invalid = row.dispatched_at is None or row.received_at is not None or row.cancelled_at is not None
        elif status in {RECEIVED, PARTIALLY_RECEIVED}:
            invalid = row.received_at is None or row.cancelled_at is not None
        elif status == CANCELLED:
            invalid = row.cancelled_at is None or row.received_at is not None
        else:
            invalid = True
        if invalid:
            findings.append(
                IntegrityFinding(
                    check_id="transfer_fsm",
                    severity=SEVERITY_CRITICAL,
                    message="Transfer state/timestamps inconsistent.",
                    entity="transfers",
                    entity_id=str(row.id),
                    details={
                        "status": status,
                        "dispatched_at": _format_datetime(row.dispatched_at),
                        "received_at": _format_datetime(row.received_at),
                        "cancelled_at": _format_datetime(row.cancelled_at),
                    },
                )
            )
    return _report("transfer_fsm", findings)


def check_linked_sale_totals(db) -> list[IntegrityFinding]:
    lines_by_transfer = _lines_by_transfer(db)
    rows = db.execute(
        select(Transfer.id, Transfer.status, Sale.id.label("sale_id"), Sale.total, Sale.status.label("sale_status"))
        .join(Sale, Sale.id == Transfer.sale_id)
    ).all()
    findings = []
    orphaned_sales = []
    for row in rows:
        value = sum(
            (Decimal(str(line.unit_price)) * line.requested_qty for line in lines_by_transfer.get(row.id, [])),
            Decimal("0"),
        )
        total = Decimal(str(row.total))
        if abs(value - total) > Decimal("0.01"):
            findings.append(
                IntegrityFinding(
                    check_id="linked_sale_total",
                    severity=SEVERITY_CRITICAL,
                    message="Linked sale total differs from the transfer value.",
                    entity="sales",
                    entity_id=str(row.sale_id),
                    details={"transfer_id": str(row.id), "transfer_value": str(value), "sale_total": str(total)},
                )
            )
        if row.status == CANCELLED and row.sale_status != "cancelled":
            orphaned_sales.append(
                IntegrityFinding(
                    check_id="cancelled_transfer_active_sale",
                    severity=SEVERITY_CRITICAL,
                    message="Cancelled transfer still has an active linked sale.",
                    entity="sales",
                    entity_id=str(row.sale_id),
                    details={"transfer_id": str(row.id), "sale_status": row.sale_status},
                )
            )
    return _report("linked_sale_total", findings) + _report("cancelled_transfer_active_sale", orphaned_sales)


def check_stale_open_transfers(db, *, max_age_days: int = 30, now: datetime | None = None) -> list[IntegrityFinding]:
    now = now or datetime.utcnow()
    rows = db.execute(
        select(Transfer.id, Transfer.status, Transfer.created_at).where(Transfer.status.in_({PENDING, IN_TRANSIT}))
    ).all()
    findings = [
        IntegrityFinding(
            check_id="stale_open_transfer",
            severity=SEVERITY_WARN,
            message=f"Open transfer older than {max_age_days} days.",
            entity="transfers",
            entity_id=str(row.id),
            details={"status": row.status, "created_at": _format_datetime(row.created_at)},
        )
        for row in rows
        if (now - row.created_at).days > max_age_days
    ]
    return _report("stale_open_transfer", findings)


def _format_datetime(value: datetime | None) -> str | None:
    if value is None:
        return None
    return value.isoformat()


def run_integrity_checks(db) -> list[IntegrityFinding]:
    findings: list[IntegrityFinding] = []
    findings.extend(check_negative_stock(db))
    findings.extend(check_over_received_lines(db))
    findings.extend(check_transfer_status(db))
    findings.extend(check_transfer_fsm(db))
    findings.extend(check_linked_sale_totals(db))
    findings.extend(check_stale_open_transfers(db))
    return findings
