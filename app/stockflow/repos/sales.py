from sqlalchemy import func, select

from app.stockflow.db.models import Payment, Sale, SaleLine


class SaleRepository:
    def __init__(self, db):
        self.db = db

    def get_sale(self, sale_id) -> Sale | None:
        return self.db.execute(select(Sale).where(Sale.id == sale_id)).scalars().first()

    def lock_sale(self, sale_id) -> Sale | None:
        stmt = select(Sale).where(Sale.id == sale_id).with_for_update().execution_options(populate_existing=True)
        return self.db.execute(stmt).scalars().first()

    def get_lines(self, sale_id) -> list[SaleLine]:
        return (
            self.db.execute(select(SaleLine).where(SaleLine.sale_id == sale_id).order_by(SaleLine.position.asc()))
            .scalars()
            .all()
        )

    def get_payments(self, sale_id, *, active_only: bool = False, lock: bool = False) -> list[Payment]:
        query = select(Payment).where(Payment.sale_id == sale_id)
        if active_only:
            query = query.where(Payment.status == "active")
        if lock:
            query = query.with_for_update()
        return self.db.execute(query.order_by(Payment.created_at.asc(), Payment.id.asc())).scalars().all()

    def next_invoice_number(self) -> int:
        current = self.db.execute(select(func.max(Sale.invoice_number))).scalar_one()
        return int(current or 0) + 1

    def add(self, sale: Sale, lines: list[SaleLine], payments: list[Payment]) -> Sale:
        self.db.add(sale)
        self.db.flush()
        for line in lines:
            line.sale_id = sale.id
        for payment in payments:
            payment.sale_id = sale.id
        self.db.add_all(lines)
        self.db.add_all(payments)
        self.db.flush()
        return sale
