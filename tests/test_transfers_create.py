import uuid

from app.stockflow.db.models import Transfer
from tests.stockflow_helpers import (
    MAIN_STORE_ID,
    actor_headers,
    create_product,
    create_store,
    create_transfer,
    line,
    put_stock,
    setup_network,
    stock_of,
    transfer_payload,
)


def test_create_decrements_source_warehouse(client, db_session):
    satellite, product = setup_network(db_session, warehouse=50)

    body = create_transfer(client, transfer_payload(satellite.id, [line(product.id, 20)], description="Restock"))

    assert body["status"] == "pending"
    assert body["transfer_number"] == 1
    assert body["origin_store_id"] == MAIN_STORE_ID
    assert body["description"] == "Restock"
    assert body["created_by"] == "user-1"
    assert body["created_by_name"] == "Ana Ops"
    assert body["lines"][0]["requested_qty"] == 20
    assert body["lines"][0]["received_qty"] is None
    assert body["lines"][0]["unit_price"] == "1000.00"
    assert body["total_value"] == "20000.00"
    assert stock_of(db_session, product.id, uuid.UUID(MAIN_STORE_ID)) == (30, 0)


def test_create_insufficient_stock_leaves_nothing_behind(client, db_session):
    satellite, product = setup_network(db_session, warehouse=15)

    response = client.post(
        "/stockflow/transfers",
        headers=actor_headers(),
        json=transfer_payload(satellite.id, [line(product.id, 20)]),
    )

    assert response.status_code == 422
    payload = response.json()
    assert payload["code"] == "INSUFFICIENT_STOCK"
    assert payload["details"]["available"] == 15
    assert payload["details"]["requested"] == 20
    assert payload["trace_id"]
    assert stock_of(db_session, product.id, uuid.UUID(MAIN_STORE_ID)) == (15, 0)
    assert db_session.query(Transfer).count() == 0


def test_create_rolls_back_every_line_when_one_fails(client, db_session):
    satellite, product = setup_network(db_session, warehouse=50)
    scarce = create_product(db_session, name="Red Scarf")
    put_stock(db_session, product_id=scarce.id, store_id=uuid.UUID(MAIN_STORE_ID), store=3)

    response = client.post(
        "/stockflow/transfers",
        headers=actor_headers(),
        json=transfer_payload(satellite.id, [line(product.id, 10), line(scarce.id, 5, "store")]),
    )

    assert response.status_code == 422
    assert response.json()["code"] == "INSUFFICIENT_STOCK"
    assert stock_of(db_session, product.id, uuid.UUID(MAIN_STORE_ID)) == (50, 0)
    assert stock_of(db_session, scarce.id, uuid.UUID(MAIN_STORE_ID)) == (0, 3)


def test_lines_for_same_row_see_each_other(client, db_session):
    satellite, product = setup_network(db_session, warehouse=10)

    response = client.post(
        "/stockflow/transfers",
        headers=actor_headers(),
        json=transfer_payload(satellite.id, [line(product.id, 6), line(product.id, 6)]),
    )

    assert response.status_code == 422
    assert response.json()["details"]["available"] == 4
    assert stock_of(db_session, product.id, uuid.UUID(MAIN_STORE_ID)) == (10, 0)


def test_create_from_store_sub_location(client, db_session):
    satellite, product = setup_network(db_session, warehouse=5, store=8)

    body = create_transfer(client, transfer_payload(satellite.id, [line(product.id, 8, "store", unit_price="12.50")]))

    assert body["lines"][0]["from_location"] == "store"
    assert body["total_value"] == "100.00"
    assert stock_of(db_session, product.id, uuid.UUID(MAIN_STORE_ID)) == (5, 0)


def test_transfer_numbers_are_sequential(client, db_session):
    satellite, product = setup_network(db_session, warehouse=50)

    first = create_transfer(client, transfer_payload(satellite.id, [line(product.id, 1)]))
    second = create_transfer(client, transfer_payload(satellite.id, [line(product.id, 1)]))

    assert second["transfer_number"] == first["transfer_number"] + 1


def test_create_requires_actor(client, db_session):
    satellite, product = setup_network(db_session)

    response = client.post("/stockflow/transfers", json=transfer_payload(satellite.id, [line(product.id, 1)]))

    assert response.status_code == 400
    assert response.json()["code"] == "ACTOR_REQUIRED"


def test_create_rejects_same_origin_and_destination(client, db_session):
    _satellite, product = setup_network(db_session)

    response = client.post(
        "/stockflow/transfers",
        headers=actor_headers(),
        json=transfer_payload(MAIN_STORE_ID, [line(product.id, 1)]),
    )

    assert response.status_code == 422
    assert response.json()["code"] == "VALIDATION_ERROR"


def test_create_rejects_empty_lines(client, db_session):
    satellite, _product = setup_network(db_session)

    response = client.post("/stockflow/transfers", headers=actor_headers(), json=transfer_payload(satellite.id, []))

    assert response.status_code == 422
    assert response.json()["code"] == "VALIDATION_ERROR"


def test_create_rejects_non_positive_quantity(client, db_session):
    satellite, product = setup_network(db_session)

    response = client.post(
        "/stockflow/transfers",
        headers=actor_headers(),
        json=transfer_payload(satellite.id, [line(product.id, 0)]),
    )

    assert response.status_code == 422
    assert response.json()["details"]["errors"][0]["field"] == "lines.0.quantity"


def test_create_unknown_product_is_not_found(client, db_session):
    satellite, _product = setup_network(db_session)

    response = client.post(
        "/stockflow/transfers",
        headers=actor_headers(),
        json=transfer_payload(satellite.id, [line(uuid.uuid4(), 1)]),
    )

    assert response.status_code == 404
    assert response.json()["code"] == "PRODUCT_NOT_FOUND"


def test_create_unknown_destination_is_not_found(client, db_session):
    _satellite, product = setup_network(db_session)

    response = client.post(
        "/stockflow/transfers",
        headers=actor_headers(),
        json=transfer_payload(uuid.uuid4(), [line(product.id, 1)]),
    )

    assert response.status_code == 404
    assert response.json()["code"] == "STORE_NOT_FOUND"


def test_create_rejects_inactive_destination(client, db_session):
    _satellite, product = setup_network(db_session)
    closed = create_store(db_session, name="Closed Outlet", is_active=False)

    response = client.post(
        "/stockflow/transfers",
        headers=actor_headers(),
        json=transfer_payload(closed.id, [line(product.id, 1)]),
    )

    assert response.status_code == 422
    assert response.json()["code"] == "VALIDATION_ERROR"
    assert stock_of(db_session, product.id, uuid.UUID(MAIN_STORE_ID)) == (50, 0)


def test_get_transfer_detail_and_not_found(client, db_session):
    satellite, product = setup_network(db_session)
    created = create_transfer(client, transfer_payload(satellite.id, [line(product.id, 2)]))

    response = client.get(f"/stockflow/transfers/{created['id']}")
    assert response.status_code == 200
    assert response.json()["id"] == created["id"]

    missing = client.get(f"/stockflow/transfers/{uuid.uuid4()}")
    assert missing.status_code == 404
    assert missing.json()["code"] == "TRANSFER_NOT_FOUND"
