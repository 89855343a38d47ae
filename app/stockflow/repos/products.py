from sqlalchemy import func, or_, select

from app.stockflow.db.models import Product


class ProductRepository:
    def __init__(self, db):
        self.db = db

    def get_by_id(self, product_id):
        return self.db.get(Product, product_id)

    def get_by_reference(self, reference: str):
        return self.db.execute(select(Product).where(Product.reference == reference)).scalars().first()

    def get_many(self, product_ids) -> dict:
        if not product_ids:
            return {}
        rows = self.db.execute(select(Product).where(Product.id.in_(list(product_ids)))).scalars().all()
        return {row.id: row for row in rows}

    def list_products(self, *, q: str | None = None, limit: int | None = None, offset: int | None = None):
        stmt = select(Product)
        count_stmt = select(func.count()).select_from(Product)
        if q:
            like = f"%{q.strip()}%"
            condition = or_(Product.name.ilike(like), Product.reference.ilike(like))
            stmt = stmt.where(condition)
            count_stmt = count_stmt.where(condition)
        stmt = stmt.order_by(Product.name.asc())
        if offset:
            stmt = stmt.offset(offset)
        if limit:
            stmt = stmt.limit(limit)
        return self.db.execute(stmt).scalars().all(), self.db.execute(count_stmt).scalar_one()

    def create(self, product: Product):
        self.db.add(product)
        self.db.commit()
        self.db.refresh(product)
        return product
