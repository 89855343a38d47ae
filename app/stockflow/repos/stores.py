from sqlalchemy import func, select

from app.stockflow.db.models import Store


class StoreRepository:
    def __init__(self, db):
        self.db = db

    def get_by_id(self, store_id):
        return self.db.get(Store, store_id)

    def get_by_code(self, code: str):
        return self.db.execute(select(Store).where(Store.code == code)).scalars().first()

    def list_stores(
        self,
        *,
        search: str | None = None,
        is_active: bool | None = None,
        limit: int | None = None,
        offset: int | None = None,
    ):
        stmt = select(Store)
        count_stmt = select(func.count()).select_from(Store)

        if search:
            pattern = f"%{search.strip()}%"
            stmt = stmt.where(Store.name.ilike(pattern))
            count_stmt = count_stmt.where(Store.name.ilike(pattern))
        if is_active is not None:
            stmt = stmt.where(Store.is_active == is_active)
            count_stmt = count_stmt.where(Store.is_active == is_active)

        stmt = stmt.order_by(Store.is_main.desc(), Store.name.asc())
        if offset:
            stmt = stmt.offset(offset)
        if limit:
            stmt = stmt.limit(limit)

        rows = self.db.execute(stmt).scalars().all()
        total = self.db.execute(count_stmt).scalar_one()
        return rows, total

    def create(self, store: Store):
        self.db.add(store)
        self.db.commit()
        self.db.refresh(store)
        return store

    def update(self, store: Store):
        self.db.add(store)
        self.db.commit()
        self.db.refresh(store)
        return store
