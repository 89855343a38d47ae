"""Pure transfer state rules.

Nothing in this module touches the database: the engine feeds it line
receipt states and markers and persists whatever status comes back.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable, Union

PENDING = "pending"
IN_TRANSIT = "in_transit"
RECEIVED = "received"
PARTIALLY_RECEIVED = "partially_received"
CANCELLED = "cancelled"

TRANSFER_STATUSES = (PENDING, IN_TRANSIT, RECEIVED, PARTIALLY_RECEIVED, CANCELLED)
OPEN_STATUSES = frozenset({PENDING, IN_TRANSIT})
TERMINAL_STATUSES = frozenset({RECEIVED, PARTIALLY_RECEIVED, CANCELLED})

SUB_LOCATIONS = ("warehouse", "store")

PAYMENT_TOLERANCE = Decimal("1")


@dataclass(frozen=True)
class NotYetReceived:
    pass


@dataclass(frozen=True)
class Received:
    quantity: int
    note: str | None
    location: str


ReceiptState = Union[NotYetReceived, Received]


@dataclass(frozen=True)
class LineReceipt:
    requested: int
    state: ReceiptState


def receipt_state(received_qty: int | None, note: str | None, location: str | None) -> ReceiptState:
    if received_qty is None:
        return NotYetReceived()
    return Received(quantity=received_qty, note=note, location=location or "store")


def derive_status(lines: Iterable[LineReceipt], *, dispatched: bool, cancelled: bool) -> str:
    if cancelled:
        return CANCELLED
    lines = list(lines)
    if not lines or any(isinstance(line.state, NotYetReceived) for line in lines):
        return IN_TRANSIT if dispatched else PENDING
    if all(line.state.quantity == line.requested for line in lines):
        return RECEIVED
    return PARTIALLY_RECEIVED


def can_transition(current: str, action: str) -> bool:
    if action == "dispatch":
        return current == PENDING
    if action in {"receive", "cancel"}:
        return current in OPEN_STATUSES
    return False


def payments_reconcile(total: Decimal, amounts: Iterable[Decimal]) -> bool:
    """Totals agree when they differ by less than one currency unit."""
    paid = sum((Decimal(amount) for amount in amounts), Decimal("0"))
    return abs(Decimal(total) - paid) < PAYMENT_TOLERANCE


def payment_method_for(cash_amount: Decimal, transfer_amount: Decimal) -> str:
    if cash_amount > 0 and transfer_amount > 0:
        return "mixed"
    if transfer_amount > 0:
        return "transfer"
    return "cash"
