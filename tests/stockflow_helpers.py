from __future__ import annotations

import uuid
from decimal import Decimal

from app.stockflow.core.config import settings
from app.stockflow.db.models import Product, StockRecord, Store
from app.stockflow.db.seed import run_seed


MAIN_STORE_ID = settings.MAIN_STORE_ID


def actor_headers(actor_id: str = "user-1", name: str = "Ana Ops", **extra) -> dict:
    headers = {"X-Actor-ID": actor_id, "X-Actor-Name": name}
    headers.update(extra)
    return headers


def seed_defaults(db_session):
    run_seed(db_session)


def create_store(db_session, *, name: str, is_active: bool = True) -> Store:
    store = Store(id=uuid.uuid4(), name=name, is_main=False, is_active=is_active)
    db_session.add(store)
    db_session.commit()
    return store


def create_product(db_session, *, name: str, price: str = "1000.00", reference: str | None = None) -> Product:
    product = Product(
        id=uuid.uuid4(),
        name=name,
        reference=reference,
        price=Decimal(price),
        cost=Decimal("0.00"),
    )
    db_session.add(product)
    db_session.commit()
    return product


def put_stock(db_session, *, product_id, store_id, warehouse: int = 0, store: int = 0) -> StockRecord:
    record = StockRecord(
        id=uuid.uuid4(),
        product_id=product_id,
        store_id=store_id,
        warehouse_qty=warehouse,
        store_qty=store,
    )
    db_session.add(record)
    db_session.commit()
    return record


def stock_of(db_session, product_id, store_id) -> tuple[int, int]:
    db_session.expire_all()
    record = (
        db_session.query(StockRecord)
        .filter(StockRecord.product_id == product_id, StockRecord.store_id == store_id)
        .first()
    )
    if record is None:
        return 0, 0
    return record.warehouse_qty, record.store_qty


def setup_network(db_session, *, warehouse: int = 50, store: int = 0, price: str = "1000.00"):
    """Main store holding one product plus an active satellite store."""
    seed_defaults(db_session)
    satellite = create_store(db_session, name="Satellite North")
    product = create_product(db_session, name="Blue Jacket", price=price, reference=f"BJ-{uuid.uuid4().hex[:6]}")
    put_stock(db_session, product_id=product.id, store_id=uuid.UUID(MAIN_STORE_ID), warehouse=warehouse, store=store)
    return satellite, product


def transfer_payload(destination_id, lines: list[dict], *, origin_id=MAIN_STORE_ID, **extra) -> dict:
    payload = {
        "origin_store_id": str(origin_id),
        "destination_store_id": str(destination_id),
        "lines": lines,
    }
    payload.update(extra)
    return payload


def line(product_id, quantity: int, from_location: str = "warehouse", unit_price: str | None = None) -> dict:
    item = {"product_id": str(product_id), "quantity": quantity, "from_location": from_location}
    if unit_price is not None:
        item["unit_price"] = unit_price
    return item


def create_transfer(client, payload: dict, headers: dict | None = None):
    response = client.post("/stockflow/transfers", headers=headers or actor_headers(), json=payload)
    assert response.status_code == 201, response.text
    return response.json()


def act(client, transfer_id: str, body: dict, headers: dict | None = None):
    return client.post(
        f"/stockflow/transfers/{transfer_id}/actions",
        headers=headers or actor_headers(),
        json=body,
    )
