from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime

from app.stockflow.core.error_catalog import DomainValidationError, ErrorCatalog, NotFoundError
from app.stockflow.core.logging import log_json
from app.stockflow.db.models import Product, Store, StockRecord
from app.stockflow.repos.stock import StockRepository
from app.stockflow.services.transfer_state import SUB_LOCATIONS

logger = logging.getLogger("stockflow.stock")


@dataclass(frozen=True)
class StockAdjustment:
    product_id: str
    store_id: str
    sub_location: str
    previous: int
    current: int

    @property
    def delta(self) -> int:
        return self.current - self.previous


def _require_sub_location(sub_location: str) -> None:
    if sub_location not in SUB_LOCATIONS:
        raise DomainValidationError(
            details={"message": "sub_location must be warehouse or store", "sub_location": sub_location}
        )


class StockLedger:
    """Quantity-by-location store.

    Every write goes through ``adjust_quantity`` so the non-negative rule has
    a single enforcement point. Callers own the transaction.
    """

    def __init__(self, db):
        self.db = db
        self.repo = StockRepository(db)

    def get_quantity(self, product_id, store_id, sub_location: str) -> int:
        _require_sub_location(sub_location)
        record = self.repo.get_record(product_id, store_id)
        if record is None:
            return 0
        return record.quantity_at(sub_location)

    def lock_rows(self, keys) -> None:
        """Lock existing (product_id, store_id) rows in a stable order."""
        for product_id, store_id in sorted(set(keys), key=lambda key: (str(key[0]), str(key[1]))):
            self.repo.lock_record(product_id, store_id)

    def _create_record(self, product_id, store_id) -> StockRecord:
        if self.db.get(Product, product_id) is None:
            raise NotFoundError(ErrorCatalog.PRODUCT_NOT_FOUND, details={"product_id": str(product_id)})
        if self.db.get(Store, store_id) is None:
            raise NotFoundError(ErrorCatalog.STORE_NOT_FOUND, details={"store_id": str(store_id)})
        return self.repo.add_record(
            StockRecord(product_id=product_id, store_id=store_id, warehouse_qty=0, store_qty=0)
        )

    def adjust_quantity(self, product_id, store_id, sub_location: str, delta: int) -> StockAdjustment:
        _require_sub_location(sub_location)
        record = self.repo.lock_record(product_id, store_id)
        if record is None and delta >= 0:
            record = self._create_record(product_id, store_id)
        applied = record is not None and self.repo.apply_delta(
            record.id, sub_location, delta, updated_at=datetime.utcnow()
        )
        if record is not None:
            # re-read so the reported quantities reflect the row as written
            self.repo.refresh_record(record)
        current = record.quantity_at(sub_location) if record is not None else 0
        if not applied:
            available = current
            log_json(
                logger,
                {
                    "event": "stock.adjust_rejected",
                    "product_id": str(product_id),
                    "store_id": str(store_id),
                    "sub_location": sub_location,
                    "available": available,
                    "requested": -delta,
                },
                level=logging.WARNING,
            )
            raise DomainValidationError(
                ErrorCatalog.INSUFFICIENT_STOCK,
                details={
                    "product_id": str(product_id),
                    "store_id": str(store_id),
                    "sub_location": sub_location,
                    "available": available,
                    "requested": -delta,
                },
            )
        return StockAdjustment(
            product_id=str(product_id),
            store_id=str(store_id),
            sub_location=sub_location,
            previous=current - delta,
            current=current,
        )

    def reserved_quantities(self, store_id, product_ids=None) -> dict:
        """In-flight units per product: ``{product_id: {"warehouse": n, "store": n}}``."""
        reserved: dict = {}
        for (product_id, location), qty in self.repo.reserved_by_location(store_id, product_ids).items():
            bucket = reserved.setdefault(product_id, {location_name: 0 for location_name in SUB_LOCATIONS})
            if location in bucket:
                bucket[location] += qty
        return reserved

    def set_quantity(self, product_id, store_id, sub_location: str, quantity: int) -> StockAdjustment:
        if quantity < 0:
            raise DomainValidationError(details={"message": "quantity must be >= 0", "quantity": quantity})
        self.lock_rows([(product_id, store_id)])
        current = self.get_quantity(product_id, store_id, sub_location)
        return self.adjust_quantity(product_id, store_id, sub_location, quantity - current)

    def move_between_locations(
        self,
        product_id,
        store_id,
        from_location: str,
        to_location: str,
        quantity: int,
    ) -> tuple[StockAdjustment, StockAdjustment]:
        if from_location == to_location:
            raise DomainValidationError(details={"message": "from_location and to_location must differ"})
        if quantity <= 0:
            raise DomainValidationError(details={"message": "quantity must be > 0", "quantity": quantity})
        outgoing = self.adjust_quantity(product_id, store_id, from_location, -quantity)
        incoming = self.adjust_quantity(product_id, store_id, to_location, quantity)
        return outgoing, incoming
