from datetime import timedelta

import pytest

from tests.fixtures_data import (
    BURGER_ID,
    CAIPIRINHA_ID,
    COKE_ID,
    OTHER_STORE_ID,
    PAO_DE_QUEIJO_ID,
    STORE_ID,
    build_client,
    build_db,
    seed_store,
)
from vendafacil.core.errors import (
    AccessDeniedError,
    InsufficientStockError,
    NotFoundError,
    StateError,
    ValidationError,
)
from vendafacil.models.order_item import OrderItem
from vendafacil.models.product import Product
from vendafacil.models.sale import Sale, SaleItem
from vendafacil.services.access import grant_plan
from vendafacil.services.cash import open_session
from vendafacil.services.clock import utcnow
from vendafacil.services.customers import create_customer
from vendafacil.services.sales import normalize_payment_method, process_direct_sale


def _stock(db, product_id):
    return db.query(Product.stock_qty).filter(Product.id == product_id).scalar()


def test_selling_exactly_the_available_stock_leaves_zero():
    db = build_db()

    sale = process_direct_sale(db, STORE_ID, [{"product_id": PAO_DE_QUEIJO_ID, "quantity": 3}], "dinheiro")

    assert sale.total_cents == 2100
    assert sale.payment_method == "cash"
    assert _stock(db, PAO_DE_QUEIJO_ID) == 0


def test_selling_beyond_stock_is_rejected_without_persisting():
    db = build_db()
    process_direct_sale(db, STORE_ID, [{"product_id": PAO_DE_QUEIJO_ID, "quantity": 3}], "cash")

    with pytest.raises(InsufficientStockError):
        process_direct_sale(db, STORE_ID, [{"product_id": PAO_DE_QUEIJO_ID, "quantity": 1}], "cash")

    assert db.query(Sale).count() == 1
    assert _stock(db, PAO_DE_QUEIJO_ID) == 0


def test_direct_sale_is_atomic_across_lines():
    db = build_db()
    cart = [
        {"product_id": BURGER_ID, "quantity": 2},
        {"product_id": CAIPIRINHA_ID, "quantity": 6},
    ]

    with pytest.raises(InsufficientStockError):
        process_direct_sale(db, STORE_ID, cart, "pix")

    assert db.query(Sale).count() == 0
    assert db.query(SaleItem).count() == 0
    assert db.query(OrderItem).count() == 0
    assert _stock(db, BURGER_ID) == 20
    assert _stock(db, CAIPIRINHA_ID) == 5


def test_routed_products_create_production_items_linked_to_the_sale():
    db = build_db()

    sale = process_direct_sale(
        db,
        STORE_ID,
        [{"product_id": BURGER_ID, "quantity": 2}, {"product_id": COKE_ID, "quantity": 1}],
        "card",
    )

    assert sale.total_cents == 3500
    burger_line, coke_line = sale.items
    assert burger_line.status == "pending"
    assert burger_line.destino_preparo == "cozinha"
    assert coke_line.status == "done"
    assert coke_line.production_item_id is None

    production = db.get(OrderItem, burger_line.production_item_id)
    assert production.sale_id == sale.id
    assert production.comanda_id is None
    assert production.quantity == 2
    assert production.status == "pending"


@pytest.mark.parametrize(
    ("quantity", "expected"),
    [(0, 1), (-4, 1), (2.6, 3), ("2", 2), (None, 1)],
)
def test_quantities_are_clamped_and_rounded(quantity, expected):
    db = build_db()

    sale = process_direct_sale(db, STORE_ID, [{"product_id": COKE_ID, "quantity": quantity}], "cash")

    assert sale.items[0].quantity == expected
    assert sale.total_cents == expected * 500


@pytest.mark.parametrize(
    "entry",
    [
        {"product_id": COKE_ID, "quantity": float("inf")},
        {"product_id": COKE_ID, "quantity": float("nan")},
        {"product_id": COKE_ID, "quantity": 10_000},
        {"product_id": COKE_ID, "quantity": 1, "unit_price_cents": float("inf")},
    ],
)
def test_non_finite_or_oversized_numbers_are_validation_errors(entry):
    db = build_db()

    with pytest.raises(ValidationError):
        process_direct_sale(db, STORE_ID, [entry], "cash")

    assert db.query(Sale).count() == 0
    assert _stock(db, COKE_ID) == 30


def test_sales_api_rejects_infinite_quantity_with_validation_error():
    db = build_db()
    client = build_client(db)

    response = client.post(
        "/api/stores/1/sales",
        content='{"items": [{"product_id": 2, "quantity": Infinity}], "payment_method": "cash"}',
        headers={"Content-Type": "application/json"},
    )

    assert response.status_code == 400
    assert response.json() == {"detail": "Quantidade inválida", "code": "validation_error"}


def test_client_price_must_match_current_price():
    db = build_db()

    with pytest.raises(ValidationError):
        process_direct_sale(
            db,
            STORE_ID,
            [{"product_id": COKE_ID, "quantity": 1, "unit_price_cents": 450}],
            "cash",
        )

    assert db.query(Sale).count() == 0
    assert _stock(db, COKE_ID) == 30

    sale = process_direct_sale(
        db,
        STORE_ID,
        [{"product_id": COKE_ID, "quantity": 1, "unit_price_cents": 499.6}],
        "cash",
    )
    assert sale.total_cents == 500


def test_empty_cart_and_invalid_payment_are_rejected():
    db = build_db()

    with pytest.raises(ValidationError):
        process_direct_sale(db, STORE_ID, [], "cash")
    with pytest.raises(ValidationError):
        process_direct_sale(db, STORE_ID, [{"product_id": COKE_ID}], "boleto")


def test_unknown_product_aborts_the_sale():
    db = build_db()

    with pytest.raises(NotFoundError):
        process_direct_sale(db, STORE_ID, [{"product_id": COKE_ID}, {"product_id": 404}], "cash")

    assert db.query(Sale).count() == 0
    assert _stock(db, COKE_ID) == 30


def test_customer_must_belong_to_the_store():
    db = build_db()
    seed_store(db, OTHER_STORE_ID, name="Padaria Central", products=[])
    foreign = create_customer(db, OTHER_STORE_ID, {"name": "Carlos"})
    local = create_customer(db, STORE_ID, {"name": "Marina", "phone": "31 99999-0000"})

    with pytest.raises(NotFoundError):
        process_direct_sale(db, STORE_ID, [{"product_id": COKE_ID}], "cash", customer_id=foreign.id)

    sale = process_direct_sale(db, STORE_ID, [{"product_id": COKE_ID}], "cash", customer_id=local.id)
    assert sale.customer_id == local.id


def test_register_requirement_blocks_sale_until_a_session_is_open():
    db = build_db(settings={"allow_sale_without_open_cash_register": False})

    with pytest.raises(StateError):
        process_direct_sale(db, STORE_ID, [{"product_id": COKE_ID}], "cash")

    session = open_session(db, STORE_ID, 0)
    sale = process_direct_sale(db, STORE_ID, [{"product_id": COKE_ID}], "cash")

    assert sale.cash_session_id == session.id


def test_sale_links_to_open_register_when_not_required():
    db = build_db()
    session = open_session(db, STORE_ID, 1000)

    sale = process_direct_sale(db, STORE_ID, [{"product_id": COKE_ID}], "pix")

    assert sale.cash_session_id == session.id


def test_expired_plan_denies_sales():
    db = build_db(plan=None)
    grant_plan(db, STORE_ID, "weekly", now=utcnow() - timedelta(days=8))

    with pytest.raises(AccessDeniedError):
        process_direct_sale(db, STORE_ID, [{"product_id": COKE_ID}], "cash")


def test_store_without_plan_denies_sales():
    db = build_db(plan=None)

    with pytest.raises(AccessDeniedError):
        process_direct_sale(db, STORE_ID, [{"product_id": COKE_ID}], "cash")


@pytest.mark.parametrize(
    ("raw", "expected"),
    [("PIX", "pix"), ("Cartão", "card"), ("debito", "card"), ("dinheiro", "cash"), ("cash", "cash")],
)
def test_payment_method_aliases(raw, expected):
    assert normalize_payment_method(raw) == expected


def test_sales_api_returns_sale_and_receipt():
    db = build_db()
    client = build_client(db)

    response = client.post(
        "/api/stores/1/sales",
        json={"items": [{"product_id": BURGER_ID, "quantity": 1}], "payment_method": "pix"},
    )

    assert response.status_code == 201
    body = response.json()
    assert body["sale"]["total_cents"] == 1500
    assert body["sale"]["items"][0]["destino_preparo"] == "cozinha"
    assert "TOTAL" in body["receipt"]
    assert "R$ 15,00" in body["receipt"]

    listed = client.get("/api/stores/1/sales")
    detail = client.get(f"/api/stores/1/sales/{body['sale']['id']}")
    assert [sale["id"] for sale in listed.json()] == [body["sale"]["id"]]
    assert detail.json()["payment_method"] == "pix"


def test_sales_api_maps_stock_errors():
    db = build_db()
    client = build_client(db)

    response = client.post(
        "/api/stores/1/sales",
        json={"items": [{"product_id": CAIPIRINHA_ID, "quantity": 9}], "payment_method": "cash"},
    )

    assert response.status_code == 409
    assert response.json()["code"] == "insufficient_stock"


def test_sales_api_rejects_empty_cart():
    db = build_db()
    client = build_client(db)

    response = client.post("/api/stores/1/sales", json={"items": [], "payment_method": "cash"})

    assert response.status_code == 422
