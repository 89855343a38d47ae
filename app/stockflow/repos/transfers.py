from __future__ import annotations

from dataclasses import dataclass, field

from sqlalchemy import func, or_, select

from app.stockflow.db.models import Transfer, TransferLine


@dataclass(frozen=True)
class TransferQueryFilters:
    store_id: str | None = None
    direction: str = "all"
    statuses: tuple[str, ...] = field(default_factory=tuple)


class TransferRepository:
    def __init__(self, db):
        self.db = db

    def _apply_filters(self, filters: TransferQueryFilters):
        query = select(Transfer)
        if filters.store_id:
            if filters.direction == "sent":
                query = query.where(Transfer.origin_store_id == filters.store_id)
            elif filters.direction == "received":
                query = query.where(Transfer.destination_store_id == filters.store_id)
            else:
                query = query.where(
                    or_(
                        Transfer.origin_store_id == filters.store_id,
                        Transfer.destination_store_id == filters.store_id,
                    )
                )
        if filters.statuses:
            query = query.where(Transfer.status.in_(filters.statuses))
        return query

    def list_transfers(
        self,
        filters: TransferQueryFilters,
        *,
        page: int,
        page_size: int,
    ) -> tuple[list[Transfer], int]:
        base_query = self._apply_filters(filters)
        total = self.db.execute(select(func.count()).select_from(base_query.subquery())).scalar_one()
        rows = (
            self.db.execute(
                base_query.order_by(Transfer.created_at.desc(), Transfer.transfer_number.desc())
                .offset((page - 1) * page_size)
                .limit(page_size)
            )
            .scalars()
            .all()
        )
        return rows, total

    def get_transfer(self, transfer_id) -> Transfer | None:
        return self.db.execute(select(Transfer).where(Transfer.id == transfer_id)).scalars().first()

    def lock_transfer(self, transfer_id) -> Transfer | None:
        return (
            self.db.execute(
                select(Transfer)
                .where(Transfer.id == transfer_id)
                .with_for_update()
                .execution_options(populate_existing=True)
            )
            .scalars()
            .first()
        )

    def get_lines(self, transfer_id) -> list[TransferLine]:
        return (
            self.db.execute(
                select(TransferLine)
                .where(TransferLine.transfer_id == transfer_id)
                .order_by(TransferLine.position.asc())
            )
            .scalars()
            .all()
        )

    def get_lines_for(self, transfer_ids) -> dict:
        if not transfer_ids:
            return {}
        rows = (
            self.db.execute(
                select(TransferLine)
                .where(TransferLine.transfer_id.in_(list(transfer_ids)))
                .order_by(TransferLine.transfer_id, TransferLine.position.asc())
            )
            .scalars()
            .all()
        )
        grouped: dict = {}
        for row in rows:
            grouped.setdefault(row.transfer_id, []).append(row)
        return grouped

    def next_transfer_number(self) -> int:
        current = self.db.execute(select(func.max(Transfer.transfer_number))).scalar_one()
        return int(current or 0) + 1

    def add(self, transfer: Transfer, lines: list[TransferLine]) -> Transfer:
        self.db.add(transfer)
        self.db.flush()
        for line in lines:
            line.transfer_id = transfer.id
        self.db.add_all(lines)
        self.db.flush()
        return transfer
