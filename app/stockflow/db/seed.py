import uuid

from sqlalchemy import select

from app.stockflow.core.config import settings
from app.stockflow.db.models import Store


def _get_or_create_main_store(db) -> Store:
    main_store_id = uuid.UUID(settings.MAIN_STORE_ID)
    store = db.execute(select(Store).where(Store.id == main_store_id)).scalars().first()
    if store:
        if not store.is_main:
            store.is_main = True
        return store
    store = Store(
        id=main_store_id,
        name=settings.MAIN_STORE_NAME,
        code="MAIN",
        is_main=True,
        is_active=True,
    )
    db.add(store)
    db.flush()
    return store


def run_seed(db):
    _get_or_create_main_store(db)
    db.commit()
