import uuid

from app.stockflow.db.models import Payment, Sale, Transfer
from tests.stockflow_helpers import (
    MAIN_STORE_ID,
    actor_headers,
    create_transfer,
    line,
    setup_network,
    stock_of,
    transfer_payload,
)


def test_payment_mismatch_rejects_transfer(client, db_session):
    satellite, product = setup_network(db_session, warehouse=50, price="5000.00")

    response = client.post(
        "/stockflow/transfers",
        headers=actor_headers(),
        json=transfer_payload(
            satellite.id,
            [line(product.id, 20)],
            payment={"cash_amount": "60000.00", "transfer_amount": "40001.00"},
        ),
    )

    assert response.status_code == 422
    payload = response.json()
    assert payload["code"] == "PAYMENT_MISMATCH"
    assert payload["details"]["total"] == "100000.00"
    assert payload["details"]["paid"] == "100001.00"
    assert stock_of(db_session, product.id, uuid.UUID(MAIN_STORE_ID)) == (50, 0)
    assert db_session.query(Transfer).count() == 0
    assert db_session.query(Sale).count() == 0
    assert db_session.query(Payment).count() == 0


def test_mixed_payment_creates_linked_sale(client, db_session):
    satellite, product = setup_network(db_session, warehouse=50, price="5000.00")

    created = create_transfer(
        client,
        transfer_payload(
            satellite.id,
            [line(product.id, 20)],
            payment={"cash_amount": "60000.00", "transfer_amount": "40000.00"},
        ),
    )

    assert created["total_value"] == "100000.00"
    sale = client.get(f"/stockflow/sales/{created['sale_id']}")
    assert sale.status_code == 200
    body = sale.json()
    assert body["status"] == "completed"
    assert body["payment_method"] == "mixed"
    assert body["total"] == "100000.00"
    assert body["store_id"] == MAIN_STORE_ID
    assert body["buyer_store_id"] == str(satellite.id)
    assert body["invoice_number"] == 1
    assert body["lines"][0]["qty"] == 20
    assert body["lines"][0]["line_total"] == "100000.00"
    amounts = {payment["method"]: payment["amount"] for payment in body["payments"]}
    assert amounts == {"cash": "60000.00", "transfer": "40000.00"}


def test_sub_unit_difference_is_tolerated(client, db_session):
    satellite, product = setup_network(db_session, warehouse=50, price="5000.00")

    created = create_transfer(
        client,
        transfer_payload(
            satellite.id,
            [line(product.id, 20)],
            payment={"cash_amount": "100000.40"},
        ),
    )

    sale = client.get(f"/stockflow/sales/{created['sale_id']}").json()
    assert sale["payment_method"] == "cash"
    assert [payment["method"] for payment in sale["payments"]] == ["cash"]


def test_cent_short_payment_on_half_unit_price_is_accepted(client, db_session):
    satellite, product = setup_network(db_session, warehouse=5, price="10.50")

    created = create_transfer(
        client,
        transfer_payload(satellite.id, [line(product.id, 1)], payment={"cash_amount": "10.49"}),
    )

    sale = client.get(f"/stockflow/sales/{created['sale_id']}").json()
    assert sale["total"] == "10.50"
    assert sale["payments"][0]["amount"] == "10.49"


def test_transfer_only_payment_and_custom_prices(client, db_session):
    satellite, product = setup_network(db_session, warehouse=50, price="5000.00")

    created = create_transfer(
        client,
        transfer_payload(
            satellite.id,
            [line(product.id, 3, unit_price="250.00")],
            payment={"transfer_amount": "750.00"},
        ),
    )

    sale = client.get(f"/stockflow/sales/{created['sale_id']}").json()
    assert sale["payment_method"] == "transfer"
    assert sale["total"] == "750.00"
    assert sale["lines"][0]["unit_price"] == "250.00"


def test_invoice_numbers_are_sequential(client, db_session):
    satellite, product = setup_network(db_session, warehouse=50, price="10.00")
    payment = {"cash_amount": "10.00"}

    first = create_transfer(client, transfer_payload(satellite.id, [line(product.id, 1)], payment=payment))
    second = create_transfer(client, transfer_payload(satellite.id, [line(product.id, 1)], payment=payment))

    first_sale = client.get(f"/stockflow/sales/{first['sale_id']}").json()
    second_sale = client.get(f"/stockflow/sales/{second['sale_id']}").json()
    assert second_sale["invoice_number"] == first_sale["invoice_number"] + 1


def test_transfer_without_payment_has_no_sale(client, db_session):
    satellite, product = setup_network(db_session, warehouse=50)

    created = create_transfer(client, transfer_payload(satellite.id, [line(product.id, 1)]))

    assert created["sale_id"] is None
    assert db_session.query(Sale).count() == 0


def test_unknown_sale_is_not_found(client, db_session):
    response = client.get(f"/stockflow/sales/{uuid.uuid4()}")

    assert response.status_code == 404
    assert response.json()["code"] == "SALE_NOT_FOUND"
