import uuid

from tests.stockflow_helpers import (
    MAIN_STORE_ID,
    act,
    create_transfer,
    line,
    setup_network,
    stock_of,
    transfer_payload,
)


def test_cancel_restores_origin_stock(client, db_session):
    satellite, product = setup_network(db_session, warehouse=50)
    created = create_transfer(client, transfer_payload(satellite.id, [line(product.id, 20)]))
    assert stock_of(db_session, product.id, uuid.UUID(MAIN_STORE_ID)) == (30, 0)

    response = act(client, created["id"], {"action": "cancel", "reason": "Destination closed for inventory"})

    assert response.status_code == 200, response.text
    body = response.json()
    assert body["success"] is True
    assert body["total_refund"] == "0.00"
    transfer = body["transfer"]
    assert transfer["status"] == "cancelled"
    assert transfer["cancelled_by"] == "user-1"
    assert transfer["cancelled_by_name"] == "Ana Ops"
    assert transfer["cancellation_reason"] == "Destination closed for inventory"
    assert transfer["cancelled_at"] is not None
    assert stock_of(db_session, product.id, uuid.UUID(MAIN_STORE_ID)) == (50, 0)
    assert stock_of(db_session, product.id, satellite.id) == (0, 0)


def test_cancel_restores_each_sub_location(client, db_session):
    satellite, product = setup_network(db_session, warehouse=10, store=6)
    created = create_transfer(
        client,
        transfer_payload(satellite.id, [line(product.id, 4), line(product.id, 6, "store")]),
    )
    assert stock_of(db_session, product.id, uuid.UUID(MAIN_STORE_ID)) == (6, 0)

    response = act(client, created["id"], {"action": "cancel", "reason": "Wrong products"})

    assert response.status_code == 200
    assert stock_of(db_session, product.id, uuid.UUID(MAIN_STORE_ID)) == (10, 6)


def test_cancel_in_transit_transfer(client, db_session):
    satellite, product = setup_network(db_session, warehouse=50)
    created = create_transfer(client, transfer_payload(satellite.id, [line(product.id, 5)]))
    assert act(client, created["id"], {"action": "dispatch"}).status_code == 200

    response = act(client, created["id"], {"action": "cancel", "reason": "Truck broke down"})

    assert response.status_code == 200
    assert response.json()["transfer"]["status"] == "cancelled"
    assert stock_of(db_session, product.id, uuid.UUID(MAIN_STORE_ID)) == (50, 0)


def test_cancel_refunds_linked_sale(client, db_session):
    satellite, product = setup_network(db_session, warehouse=50, price="5000.00")
    created = create_transfer(
        client,
        transfer_payload(
            satellite.id,
            [line(product.id, 20)],
            payment={"cash_amount": "60000.00", "transfer_amount": "40000.00"},
        ),
    )
    assert created["sale_id"]

    response = act(client, created["id"], {"action": "cancel", "reason": "Customer store withdrew order"})

    assert response.status_code == 200, response.text
    assert response.json()["total_refund"] == "100000.00"

    sale = client.get(f"/stockflow/sales/{created['sale_id']}").json()
    assert sale["status"] == "cancelled"
    assert sale["cancellation_reason"] == "Customer store withdrew order"
    assert {payment["status"] for payment in sale["payments"]} == {"cancelled"}
    assert all(payment["cancelled_by"] == "user-1" for payment in sale["payments"])


def test_cancel_requires_reason(client, db_session):
    satellite, product = setup_network(db_session, warehouse=50)
    created = create_transfer(client, transfer_payload(satellite.id, [line(product.id, 5)]))

    for body in ({"action": "cancel"}, {"action": "cancel", "reason": "   "}):
        response = act(client, created["id"], body)
        assert response.status_code == 422
        assert response.json()["code"] == "VALIDATION_ERROR"

    assert client.get(f"/stockflow/transfers/{created['id']}").json()["status"] == "pending"
    assert stock_of(db_session, product.id, uuid.UUID(MAIN_STORE_ID)) == (45, 0)


def test_cancel_after_receipt_is_rejected(client, db_session):
    satellite, product = setup_network(db_session, warehouse=50)
    created = create_transfer(client, transfer_payload(satellite.id, [line(product.id, 5)]))
    assert act(client, created["id"], {"action": "receive"}).status_code == 200

    response = act(client, created["id"], {"action": "cancel", "reason": "Too late"})

    assert response.status_code == 422
    assert response.json()["code"] == "INVALID_TRANSFER_STATE"
    assert stock_of(db_session, product.id, uuid.UUID(MAIN_STORE_ID)) == (45, 0)
    assert stock_of(db_session, product.id, satellite.id) == (0, 5)


def test_cancel_twice_is_rejected(client, db_session):
    satellite, product = setup_network(db_session, warehouse=50)
    created = create_transfer(client, transfer_payload(satellite.id, [line(product.id, 5)]))
    assert act(client, created["id"], {"action": "cancel", "reason": "Duplicate"}).status_code == 200

    response = act(client, created["id"], {"action": "cancel", "reason": "Duplicate"})

    assert response.status_code == 422
    assert response.json()["details"]["status"] == "cancelled"
    assert stock_of(db_session, product.id, uuid.UUID(MAIN_STORE_ID)) == (50, 0)


def test_cancelled_transfer_cannot_be_received(client, db_session):
    satellite, product = setup_network(db_session, warehouse=50)
    created = create_transfer(client, transfer_payload(satellite.id, [line(product.id, 5)]))
    assert act(client, created["id"], {"action": "cancel", "reason": "Duplicate"}).status_code == 200

    response = act(client, created["id"], {"action": "receive"})

    assert response.status_code == 422
    assert response.json()["code"] == "INVALID_TRANSFER_STATE"
    assert stock_of(db_session, product.id, satellite.id) == (0, 0)
