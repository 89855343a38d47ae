from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy import func, select, update

from app.stockflow.db.models import StockRecord, Transfer, TransferLine

OPEN_TRANSFER_STATUSES = ("pending", "in_transit")


@dataclass(frozen=True)
class StockQueryFilters:
    store_id: str | None = None
    product_id: str | None = None


class StockRepository:
    def __init__(self, db):
        self.db = db

    def get_record(self, product_id, store_id) -> StockRecord | None:
        return (
            self.db.execute(
                select(StockRecord).where(
                    StockRecord.product_id == product_id,
                    StockRecord.store_id == store_id,
                )
            )
            .scalars()
            .first()
        )

    def lock_record(self, product_id, store_id) -> StockRecord | None:
        return (
            self.db.execute(
                select(StockRecord)
                .where(
                    StockRecord.product_id == product_id,
                    StockRecord.store_id == store_id,
                )
                .with_for_update()
                .execution_options(populate_existing=True)
            )
            .scalars()
            .first()
        )

    def apply_delta(self, record_id, sub_location: str, delta: int, *, updated_at) -> bool:
        """Add `delta` in one statement; False when the row would go negative."""
        column = StockRecord.warehouse_qty if sub_location == "warehouse" else StockRecord.store_qty
        result = self.db.execute(
            update(StockRecord)
            .where(StockRecord.id == record_id, column + delta >= 0)
            .values({column: column + delta, StockRecord.updated_at: updated_at})
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    def refresh_record(self, record: StockRecord) -> StockRecord:
        self.db.refresh(record)
        return record

    def add_record(self, record: StockRecord) -> StockRecord:
        self.db.add(record)
        self.db.flush()
        return record

    def list_records(self, filters: StockQueryFilters, *, page: int, page_size: int) -> tuple[list[StockRecord], int]:
        query = select(StockRecord)
        if filters.store_id:
            query = query.where(StockRecord.store_id == filters.store_id)
        if filters.product_id:
            query = query.where(StockRecord.product_id == filters.product_id)
        total = self.db.execute(select(func.count()).select_from(query.subquery())).scalar_one()
        rows = (
            self.db.execute(
                query.order_by(StockRecord.created_at.asc(), StockRecord.id.asc())
                .offset((page - 1) * page_size)
                .limit(page_size)
            )
            .scalars()
            .all()
        )
        return rows, total

    def reserved_by_location(self, store_id, product_ids=None) -> dict[tuple, int]:
        """Units requested by open outgoing transfers, keyed by (product_id, from_location)."""
        query = (
            select(
                TransferLine.product_id,
                TransferLine.from_location,
                func.coalesce(func.sum(TransferLine.requested_qty), 0),
            )
            .join(Transfer, Transfer.id == TransferLine.transfer_id)
            .where(
                Transfer.origin_store_id == store_id,
                Transfer.status.in_(OPEN_TRANSFER_STATUSES),
            )
            .group_by(TransferLine.product_id, TransferLine.from_location)
        )
        if product_ids is not None:
            query = query.where(TransferLine.product_id.in_(list(product_ids)))
        return {
            (product_id, location): int(qty or 0)
            for product_id, location, qty in self.db.execute(query).all()
        }
