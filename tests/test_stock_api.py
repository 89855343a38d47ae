import uuid

from tests.stockflow_helpers import (
    MAIN_STORE_ID,
    actor_headers,
    create_product,
    create_transfer,
    line,
    setup_network,
    stock_of,
    transfer_payload,
)


def test_list_stock_reports_reservations(client, db_session):
    satellite, product = setup_network(db_session, warehouse=50)
    create_transfer(client, transfer_payload(satellite.id, [line(product.id, 20)]))

    response = client.get("/stockflow/stock", params={"store_id": MAIN_STORE_ID})

    assert response.status_code == 200
    body = response.json()
    assert body["total"] == 1
    row = body["rows"][0]
    assert row["product_id"] == str(product.id)
    assert row["product_name"] == "Blue Jacket"
    assert row["warehouse_qty"] == 30
    assert row["store_qty"] == 0
    assert row["total"] == 30
    assert row["reserved_warehouse"] == 20
    assert row["reserved_store"] == 0


def test_reservation_released_after_receipt(client, db_session):
    satellite, product = setup_network(db_session, warehouse=50)
    created = create_transfer(client, transfer_payload(satellite.id, [line(product.id, 20)]))
    client.post(
        f"/stockflow/transfers/{created['id']}/actions",
        headers=actor_headers(),
        json={"action": "receive"},
    )

    rows = client.get("/stockflow/stock", params={"product_id": str(product.id)}).json()["rows"]

    by_store = {row["store_id"]: row for row in rows}
    assert by_store[MAIN_STORE_ID]["reserved_warehouse"] == 0
    assert by_store[str(satellite.id)]["store_qty"] == 20


def test_adjust_stock_sets_absolute_quantity(client, db_session):
    _satellite, product = setup_network(db_session, warehouse=50)

    response = client.post(
        "/stockflow/stock/adjustments",
        headers=actor_headers(),
        json={
            "product_id": str(product.id),
            "store_id": MAIN_STORE_ID,
            "sub_location": "warehouse",
            "quantity": 42,
            "reason": "Cycle count",
        },
    )

    assert response.status_code == 200, response.text
    body = response.json()
    assert body["adjustments"][0]["previous"] == 50
    assert body["adjustments"][0]["current"] == 42
    assert body["adjustments"][0]["delta"] == -8
    assert body["record"]["warehouse_qty"] == 42
    assert stock_of(db_session, product.id, uuid.UUID(MAIN_STORE_ID)) == (42, 0)

    events = client.get("/stockflow/audit-events", params={"action": "stock.adjust"}).json()["events"]
    assert events[0]["metadata"] == {"reason": "Cycle count", "delta": -8}


def test_adjust_stock_creates_record_for_new_store(client, db_session):
    satellite, _product = setup_network(db_session)
    fresh = create_product(db_session, name="Grey Socks")

    response = client.post(
        "/stockflow/stock/adjustments",
        headers=actor_headers(),
        json={
            "product_id": str(fresh.id),
            "store_id": str(satellite.id),
            "sub_location": "store",
            "quantity": 9,
            "reason": "Opening balance",
        },
    )

    assert response.status_code == 200
    assert stock_of(db_session, fresh.id, satellite.id) == (0, 9)


def test_adjust_stock_rejects_negative_quantity(client, db_session):
    _satellite, product = setup_network(db_session)

    response = client.post(
        "/stockflow/stock/adjustments",
        headers=actor_headers(),
        json={
            "product_id": str(product.id),
            "store_id": MAIN_STORE_ID,
            "sub_location": "warehouse",
            "quantity": -1,
            "reason": "Typo",
        },
    )

    assert response.status_code == 422
    assert stock_of(db_session, product.id, uuid.UUID(MAIN_STORE_ID)) == (50, 0)


def test_move_stock_between_sub_locations(client, db_session):
    _satellite, product = setup_network(db_session, warehouse=50)

    response = client.post(
        "/stockflow/stock/moves",
        headers=actor_headers(),
        json={
            "product_id": str(product.id),
            "store_id": MAIN_STORE_ID,
            "from_location": "warehouse",
            "to_location": "store",
            "quantity": 12,
        },
    )

    assert response.status_code == 200, response.text
    assert response.json()["record"]["total"] == 50
    assert stock_of(db_session, product.id, uuid.UUID(MAIN_STORE_ID)) == (38, 12)


def test_move_stock_beyond_available_is_rejected(client, db_session):
    _satellite, product = setup_network(db_session, warehouse=5)

    response = client.post(
        "/stockflow/stock/moves",
        headers=actor_headers(),
        json={
            "product_id": str(product.id),
            "store_id": MAIN_STORE_ID,
            "from_location": "warehouse",
            "to_location": "store",
            "quantity": 6,
        },
    )

    assert response.status_code == 422
    assert response.json()["code"] == "INSUFFICIENT_STOCK"
    assert stock_of(db_session, product.id, uuid.UUID(MAIN_STORE_ID)) == (5, 0)


def test_stock_mutations_require_actor(client, db_session):
    _satellite, product = setup_network(db_session)

    response = client.post(
        "/stockflow/stock/moves",
        json={
            "product_id": str(product.id),
            "store_id": MAIN_STORE_ID,
            "from_location": "warehouse",
            "to_location": "store",
            "quantity": 1,
        },
    )

    assert response.status_code == 400
