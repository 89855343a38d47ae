import uuid

from tests.stockflow_helpers import (
    MAIN_STORE_ID,
    act,
    actor_headers,
    create_product,
    create_transfer,
    line,
    put_stock,
    setup_network,
    stock_of,
    transfer_payload,
)


def _create(client, db_session, quantity=20, warehouse=50):
    satellite, product = setup_network(db_session, warehouse=warehouse)
    body = create_transfer(client, transfer_payload(satellite.id, [line(product.id, quantity)]))
    return satellite, product, body


def test_full_receipt_moves_units_to_destination(client, db_session):
    satellite, product, created = _create(client, db_session)

    response = act(
        client,
        created["id"],
        {"action": "receive"},
        headers=actor_headers("user-2", "Luis Receiver"),
    )

    assert response.status_code == 200, response.text
    body = response.json()
    assert body["status"] == "received"
    assert body["received_by"] == "user-2"
    assert body["received_by_name"] == "Luis Receiver"
    assert body["received_at"] is not None
    assert body["lines"][0]["received_qty"] == 20
    assert body["lines"][0]["received_location"] == "store"
    assert body["lines"][0]["shortage_qty"] == 0
    assert stock_of(db_session, product.id, satellite.id) == (0, 20)
    assert stock_of(db_session, product.id, uuid.UUID(MAIN_STORE_ID)) == (30, 0)


def test_partial_receipt_records_shrinkage(client, db_session):
    satellite, product, created = _create(client, db_session)
    item_id = created["lines"][0]["id"]

    response = act(
        client,
        created["id"],
        {
            "action": "receive",
            "items": [{"item_id": item_id, "quantity_received": 15, "note": "5 damaged in transit"}],
        },
    )

    assert response.status_code == 200, response.text
    body = response.json()
    assert body["status"] == "partially_received"
    assert body["lines"][0]["received_qty"] == 15
    assert body["lines"][0]["shortage_qty"] == 5
    assert body["lines"][0]["receiving_notes"] == "5 damaged in transit"
    assert stock_of(db_session, product.id, satellite.id) == (0, 15)
    # shrinkage is not returned to the origin
    assert stock_of(db_session, product.id, uuid.UUID(MAIN_STORE_ID)) == (30, 0)


def test_omitted_lines_are_received_in_full(client, db_session):
    satellite, product = setup_network(db_session, warehouse=50)
    second = create_product(db_session, name="Green Cap")
    put_stock(db_session, product_id=second.id, store_id=uuid.UUID(MAIN_STORE_ID), warehouse=10)
    created = create_transfer(
        client,
        transfer_payload(satellite.id, [line(product.id, 5), line(second.id, 4)]),
    )
    first_line = next(item for item in created["lines"] if item["product_id"] == str(product.id))

    response = act(
        client,
        created["id"],
        {"action": "receive", "items": [{"item_id": first_line["id"], "quantity_received": 3}]},
    )

    assert response.status_code == 200, response.text
    assert response.json()["status"] == "partially_received"
    assert stock_of(db_session, product.id, satellite.id) == (0, 3)
    assert stock_of(db_session, second.id, satellite.id) == (0, 4)


def test_receipt_into_warehouse_and_per_item_location(client, db_session):
    satellite, product = setup_network(db_session, warehouse=50)
    second = create_product(db_session, name="Green Cap")
    put_stock(db_session, product_id=second.id, store_id=uuid.UUID(MAIN_STORE_ID), warehouse=10)
    created = create_transfer(
        client,
        transfer_payload(satellite.id, [line(product.id, 5), line(second.id, 4)]),
    )
    second_line = next(item for item in created["lines"] if item["product_id"] == str(second.id))

    response = act(
        client,
        created["id"],
        {
            "action": "receive",
            "to_location": "warehouse",
            "items": [{"item_id": second_line["id"], "quantity_received": 4, "to_location": "store"}],
        },
    )

    assert response.status_code == 200, response.text
    assert response.json()["status"] == "received"
    assert stock_of(db_session, product.id, satellite.id) == (5, 0)
    assert stock_of(db_session, second.id, satellite.id) == (0, 4)


def test_over_receipt_is_rejected_without_side_effects(client, db_session):
    satellite, product, created = _create(client, db_session)
    item_id = created["lines"][0]["id"]

    response = act(
        client,
        created["id"],
        {"action": "receive", "items": [{"item_id": item_id, "quantity_received": 21}]},
    )

    assert response.status_code == 422
    payload = response.json()
    assert payload["code"] == "OVER_RECEIPT"
    assert payload["details"]["requested"] == 20
    assert payload["details"]["received"] == 21
    assert stock_of(db_session, product.id, satellite.id) == (0, 0)
    assert client.get(f"/stockflow/transfers/{created['id']}").json()["status"] == "pending"


def test_receipt_of_zero_units_is_rejected(client, db_session):
    _satellite, _product, created = _create(client, db_session)
    item_id = created["lines"][0]["id"]

    response = act(
        client,
        created["id"],
        {"action": "receive", "items": [{"item_id": item_id, "quantity_received": 0}]},
    )

    assert response.status_code == 422
    assert response.json()["code"] == "VALIDATION_ERROR"
    assert client.get(f"/stockflow/transfers/{created['id']}").json()["status"] == "pending"


def test_zero_on_one_line_is_allowed_when_others_arrive(client, db_session):
    satellite, product = setup_network(db_session, warehouse=50)
    second = create_product(db_session, name="Green Cap")
    put_stock(db_session, product_id=second.id, store_id=uuid.UUID(MAIN_STORE_ID), warehouse=10)
    created = create_transfer(
        client,
        transfer_payload(satellite.id, [line(product.id, 5), line(second.id, 4)]),
    )
    lost = next(item for item in created["lines"] if item["product_id"] == str(second.id))

    response = act(
        client,
        created["id"],
        {"action": "receive", "items": [{"item_id": lost["id"], "quantity_received": 0, "note": "box lost"}]},
    )

    assert response.status_code == 200, response.text
    body = response.json()
    assert body["status"] == "partially_received"
    lost_line = next(item for item in body["lines"] if item["id"] == lost["id"])
    assert lost_line["received_qty"] == 0
    assert lost_line["shortage_qty"] == 4
    assert stock_of(db_session, second.id, satellite.id) == (0, 0)


def test_unknown_item_is_rejected(client, db_session):
    _satellite, _product, created = _create(client, db_session)

    response = act(
        client,
        created["id"],
        {"action": "receive", "items": [{"item_id": str(uuid.uuid4()), "quantity_received": 1}]},
    )

    assert response.status_code == 422
    assert response.json()["code"] == "VALIDATION_ERROR"


def test_duplicate_item_is_rejected(client, db_session):
    _satellite, _product, created = _create(client, db_session)
    item_id = created["lines"][0]["id"]

    response = act(
        client,
        created["id"],
        {
            "action": "receive",
            "items": [
                {"item_id": item_id, "quantity_received": 5},
                {"item_id": item_id, "quantity_received": 5},
            ],
        },
    )

    assert response.status_code == 422
    assert response.json()["details"]["message"] == "item listed more than once"


def test_second_receipt_is_rejected(client, db_session):
    satellite, product, created = _create(client, db_session)
    item_id = created["lines"][0]["id"]
    first = act(
        client,
        created["id"],
        {"action": "receive", "items": [{"item_id": item_id, "quantity_received": 15}]},
    )
    assert first.status_code == 200

    second = act(
        client,
        created["id"],
        {"action": "receive", "items": [{"item_id": item_id, "quantity_received": 5}]},
    )

    assert second.status_code == 422
    payload = second.json()
    assert payload["code"] == "INVALID_TRANSFER_STATE"
    assert payload["details"]["status"] == "partially_received"
    assert stock_of(db_session, product.id, satellite.id) == (0, 15)


def test_dispatch_then_receive(client, db_session):
    satellite, product, created = _create(client, db_session)

    dispatched = act(client, created["id"], {"action": "dispatch"})
    assert dispatched.status_code == 200, dispatched.text
    assert dispatched.json()["status"] == "in_transit"
    assert dispatched.json()["dispatched_by"] == "user-1"

    again = act(client, created["id"], {"action": "dispatch"})
    assert again.status_code == 422
    assert again.json()["code"] == "INVALID_TRANSFER_STATE"

    received = act(client, created["id"], {"action": "receive"})
    assert received.status_code == 200
    assert received.json()["status"] == "received"
    assert stock_of(db_session, product.id, satellite.id) == (0, 20)


def test_receive_unknown_transfer(client, db_session):
    setup_network(db_session)

    response = act(client, str(uuid.uuid4()), {"action": "receive"})

    assert response.status_code == 404
    assert response.json()["code"] == "TRANSFER_NOT_FOUND"


def test_receive_requires_actor(client, db_session):
    _satellite, _product, created = _create(client, db_session)

    response = client.post(f"/stockflow/transfers/{created['id']}/actions", json={"action": "receive"})

    assert response.status_code == 400
    assert response.json()["code"] == "ACTOR_REQUIRED"
