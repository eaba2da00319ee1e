import pytest

from tests.fixtures_data import (
    BURGER_ID,
    CAIPIRINHA_ID,
    COKE_ID,
    OTHER_STORE_ID,
    PAO_DE_QUEIJO_ID,
    STORE_ID,
    build_db,
    seed_store,
)
from vendafacil.core.errors import (
    AccessDeniedError,
    ConflictError,
    InsufficientStockError,
    NotFoundError,
    PaymentError,
    StateError,
    ValidationError,
)
from vendafacil.models.comanda import Comanda
from vendafacil.models.order_item import OrderItem
from vendafacil.models.product import Product
from vendafacil.models.sale import Sale, SaleItem
from vendafacil.services import comandas
from vendafacil.services.access import block_access
from vendafacil.services.cash import open_session
from vendafacil.services.catalog import update_product
from vendafacil.services.comandas import (
    add_item_to_comanda,
    advance_item_status,
    close_comanda,
    get_comanda_detail,
    get_or_create_open_comanda,
    list_open_comandas,
)


def _stock(db, product_id):
    return db.query(Product.stock_qty).filter(Product.id == product_id).scalar()


def test_open_add_and_close_produces_sale_with_expected_total():
    db = build_db()

    comanda_id = get_or_create_open_comanda(db, STORE_ID, "12")
    add_item_to_comanda(db, STORE_ID, comanda_id, BURGER_ID, 2)
    add_item_to_comanda(db, STORE_ID, comanda_id, COKE_ID, 1)

    sale = close_comanda(db, STORE_ID, comanda_id, "cash")

    assert sale.total_cents == 3500
    assert sale.payment_method == "cash"
    assert sale.comanda_id == comanda_id
    assert [(item.product_name_snapshot, item.quantity, item.subtotal_cents) for item in sale.items] == [
        ("Burger", 2, 3000),
        ("Coke", 1, 500),
    ]
    assert sale.total_cents == sum(item.subtotal_cents for item in sale.items)

    comanda = db.get(Comanda, comanda_id)
    assert comanda.status == "fechada"
    assert comanda.closed_at is not None
    assert comanda.sale_id == sale.id
    assert _stock(db, BURGER_ID) == 18
    assert _stock(db, COKE_ID) == 29


def test_open_comanda_is_idempotent_while_open():
    db = build_db()

    first = get_or_create_open_comanda(db, STORE_ID, 5, customer_name="Ana")
    second = get_or_create_open_comanda(db, STORE_ID, 5)

    assert first == second
    assert db.query(Comanda).filter(Comanda.store_id == STORE_ID, Comanda.numero == 5).count() == 1
    assert db.get(Comanda, first).cliente_nome == "Ana"
    assert db.get(Comanda, first).mesa == "5"


def test_closed_table_gets_a_new_comanda():
    db = build_db()

    first = get_or_create_open_comanda(db, STORE_ID, 7)
    add_item_to_comanda(db, STORE_ID, first, COKE_ID, 1)
    close_comanda(db, STORE_ID, first, "pix")

    second = get_or_create_open_comanda(db, STORE_ID, 7)

    assert second != first
    assert db.get(Comanda, second).status == "aberta"


def test_same_table_number_is_independent_per_store():
    db = build_db()
    seed_store(db, OTHER_STORE_ID, name="Padaria Central", products=[])

    mine = get_or_create_open_comanda(db, STORE_ID, 3)
    theirs = get_or_create_open_comanda(db, OTHER_STORE_ID, 3)

    assert mine != theirs


def test_concurrent_open_returns_the_winning_comanda(monkeypatch):
    db = build_db()
    winner = get_or_create_open_comanda(db, STORE_ID, 5)

    original = comandas._find_open_comanda
    calls = []

    def stale_first_read(session, store_id, numero):
        calls.append(numero)
        if len(calls) == 1:
            return None
        return original(session, store_id, numero)

    monkeypatch.setattr(comandas, "_find_open_comanda", stale_first_read)

    loser = get_or_create_open_comanda(db, STORE_ID, 5)

    assert loser == winner
    assert len(calls) == 2
    assert db.query(Comanda).filter(Comanda.store_id == STORE_ID, Comanda.numero == 5).count() == 1


def test_concurrent_open_without_visible_winner_raises_conflict(monkeypatch):
    db = build_db()
    get_or_create_open_comanda(db, STORE_ID, 5)
    monkeypatch.setattr(comandas, "_find_open_comanda", lambda *_args: None)

    with pytest.raises(ConflictError):
        get_or_create_open_comanda(db, STORE_ID, 5)

    assert db.query(Comanda).count() == 1


@pytest.mark.parametrize("table_number", [0, -3, "abc", "", None, True, 2.5, float("inf"), 2**31])
def test_open_rejects_invalid_table_number(table_number):
    db = build_db()

    with pytest.raises(ValidationError):
        get_or_create_open_comanda(db, STORE_ID, table_number)

    assert db.query(Comanda).count() == 0


def test_open_requires_store():
    db = build_db()

    with pytest.raises(ValidationError):
        get_or_create_open_comanda(db, None, 1)


def test_open_for_unknown_store_is_not_found():
    db = build_db()

    with pytest.raises(NotFoundError):
        get_or_create_open_comanda(db, 99, 1)


@pytest.mark.parametrize("quantity", [0, -1, "abc", 1.5, True, None, float("inf"), 10_000])
def test_add_item_rejects_non_positive_or_non_integer_quantity(quantity):
    db = build_db()
    comanda_id = get_or_create_open_comanda(db, STORE_ID, 1)

    with pytest.raises(ValidationError):
        add_item_to_comanda(db, STORE_ID, comanda_id, BURGER_ID, quantity)

    assert db.query(OrderItem).count() == 0


def test_add_item_snapshots_price_and_routing():
    db = build_db()
    comanda_id = get_or_create_open_comanda(db, STORE_ID, 1)

    item = add_item_to_comanda(db, STORE_ID, comanda_id, CAIPIRINHA_ID, "2")

    assert item.status == "pending"
    assert item.destino_preparo == "bar"
    assert item.unit_price_cents == 1800
    assert item.subtotal_cents == 3600
    assert item.product_name_snapshot == "Caipirinha"
    assert item.comanda_id == comanda_id
    assert item.sale_id is None


def test_add_item_unknown_or_inactive_product_is_not_found():
    db = build_db()
    comanda_id = get_or_create_open_comanda(db, STORE_ID, 1)
    update_product(db, STORE_ID, COKE_ID, {"active": False})

    with pytest.raises(NotFoundError):
        add_item_to_comanda(db, STORE_ID, comanda_id, 999, 1)
    with pytest.raises(NotFoundError):
        add_item_to_comanda(db, STORE_ID, comanda_id, COKE_ID, 1)


def test_add_item_to_other_store_comanda_is_not_found():
    db = build_db()
    seed_store(db, OTHER_STORE_ID, name="Padaria Central", products=[])
    foreign = get_or_create_open_comanda(db, OTHER_STORE_ID, 1)

    with pytest.raises(NotFoundError):
        add_item_to_comanda(db, STORE_ID, foreign, BURGER_ID, 1)


def test_add_item_to_closed_comanda_is_rejected():
    db = build_db()
    comanda_id = get_or_create_open_comanda(db, STORE_ID, 1)
    add_item_to_comanda(db, STORE_ID, comanda_id, COKE_ID, 1)
    close_comanda(db, STORE_ID, comanda_id, "card")

    with pytest.raises(StateError):
        add_item_to_comanda(db, STORE_ID, comanda_id, COKE_ID, 1)

    assert db.query(OrderItem).filter(OrderItem.comanda_id == comanda_id).count() == 1


def test_add_item_above_stock_is_rejected_when_blocking():
    db = build_db()
    comanda_id = get_or_create_open_comanda(db, STORE_ID, 1)

    with pytest.raises(InsufficientStockError):
        add_item_to_comanda(db, STORE_ID, comanda_id, CAIPIRINHA_ID, 6)


def test_close_without_items_is_rejected_and_keeps_comanda_open():
    db = build_db()
    comanda_id = get_or_create_open_comanda(db, STORE_ID, 1)

    with pytest.raises(PaymentError):
        close_comanda(db, STORE_ID, comanda_id, "cash")

    assert db.get(Comanda, comanda_id).status == "aberta"
    assert db.query(Sale).count() == 0


def test_close_twice_creates_a_single_sale():
    db = build_db()
    comanda_id = get_or_create_open_comanda(db, STORE_ID, 1)
    add_item_to_comanda(db, STORE_ID, comanda_id, COKE_ID, 2)
    close_comanda(db, STORE_ID, comanda_id, "cash")

    with pytest.raises(PaymentError):
        close_comanda(db, STORE_ID, comanda_id, "cash")

    assert db.query(Sale).count() == 1
    assert _stock(db, COKE_ID) == 28


def test_close_rejects_invalid_payment_method_and_unknown_comanda():
    db = build_db()
    comanda_id = get_or_create_open_comanda(db, STORE_ID, 1)
    add_item_to_comanda(db, STORE_ID, comanda_id, COKE_ID, 1)

    with pytest.raises(ValidationError):
        close_comanda(db, STORE_ID, comanda_id, "cheque")
    with pytest.raises(NotFoundError):
        close_comanda(db, STORE_ID, 999, "cash")

    assert db.get(Comanda, comanda_id).status == "aberta"


def test_close_accepts_payment_aliases():
    db = build_db()
    comanda_id = get_or_create_open_comanda(db, STORE_ID, 1)
    add_item_to_comanda(db, STORE_ID, comanda_id, COKE_ID, 1)

    sale = close_comanda(db, STORE_ID, comanda_id, " Cartão ")

    assert sale.payment_method == "card"


def test_oversubscribed_stock_rejects_second_close_and_leaves_it_open():
    db = build_db()
    first = get_or_create_open_comanda(db, STORE_ID, 1)
    second = get_or_create_open_comanda(db, STORE_ID, 2)
    add_item_to_comanda(db, STORE_ID, first, PAO_DE_QUEIJO_ID, 3)
    add_item_to_comanda(db, STORE_ID, second, PAO_DE_QUEIJO_ID, 2)

    close_comanda(db, STORE_ID, first, "cash")
    with pytest.raises(PaymentError):
        close_comanda(db, STORE_ID, second, "cash")

    assert _stock(db, PAO_DE_QUEIJO_ID) == 0
    assert db.get(Comanda, second).status == "aberta"
    assert db.query(Sale).count() == 1
    assert db.query(SaleItem).count() == 1


def test_failed_close_does_not_touch_stock_of_other_lines():
    db = build_db()
    comanda_id = get_or_create_open_comanda(db, STORE_ID, 1)
    add_item_to_comanda(db, STORE_ID, comanda_id, BURGER_ID, 2)
    add_item_to_comanda(db, STORE_ID, comanda_id, PAO_DE_QUEIJO_ID, 3)
    db.query(Product).filter(Product.id == PAO_DE_QUEIJO_ID).update({"stock_qty": 1})
    db.commit()

    with pytest.raises(PaymentError):
        close_comanda(db, STORE_ID, comanda_id, "pix")

    assert _stock(db, BURGER_ID) == 20
    assert _stock(db, PAO_DE_QUEIJO_ID) == 1
    assert db.get(Comanda, comanda_id).status == "aberta"


def test_stock_floors_at_zero_when_blocking_is_disabled():
    db = build_db(settings={"blockSaleWithoutStock": False})
    comanda_id = get_or_create_open_comanda(db, STORE_ID, 1)
    add_item_to_comanda(db, STORE_ID, comanda_id, CAIPIRINHA_ID, 6)

    sale = close_comanda(db, STORE_ID, comanda_id, "cash")

    assert sale.total_cents == 6 * 1800
    assert _stock(db, CAIPIRINHA_ID) == 0


def test_close_with_blocked_access_is_denied_and_not_persisted():
    db = build_db()
    comanda_id = get_or_create_open_comanda(db, STORE_ID, 1)
    add_item_to_comanda(db, STORE_ID, comanda_id, COKE_ID, 1)
    block_access(db, STORE_ID)

    with pytest.raises(AccessDeniedError):
        close_comanda(db, STORE_ID, comanda_id, "cash")

    assert db.get(Comanda, comanda_id).status == "aberta"
    assert _stock(db, COKE_ID) == 30


def test_close_requires_open_register_when_configured():
    db = build_db(settings={"allow_sale_without_open_cash_register": False})
    comanda_id = get_or_create_open_comanda(db, STORE_ID, 1)
    add_item_to_comanda(db, STORE_ID, comanda_id, COKE_ID, 1)

    with pytest.raises(PaymentError):
        close_comanda(db, STORE_ID, comanda_id, "cash")

    session = open_session(db, STORE_ID, 5000)
    sale = close_comanda(db, STORE_ID, comanda_id, "cash")

    assert sale.cash_session_id == session.id


def test_canceled_items_are_left_out_of_the_sale():
    db = build_db()
    comanda_id = get_or_create_open_comanda(db, STORE_ID, 1)
    burger = add_item_to_comanda(db, STORE_ID, comanda_id, BURGER_ID, 1)
    add_item_to_comanda(db, STORE_ID, comanda_id, COKE_ID, 2)
    advance_item_status(db, STORE_ID, burger.id, "canceled")

    sale = close_comanda(db, STORE_ID, comanda_id, "cash")

    assert sale.total_cents == 1000
    assert [item.product_id for item in sale.items] == [COKE_ID]
    assert _stock(db, BURGER_ID) == 20


def test_close_finishes_unrouted_items_and_keeps_routed_ones_in_production():
    db = build_db()
    comanda_id = get_or_create_open_comanda(db, STORE_ID, 1)
    burger = add_item_to_comanda(db, STORE_ID, comanda_id, BURGER_ID, 1)
    coke = add_item_to_comanda(db, STORE_ID, comanda_id, COKE_ID, 1)
    burger_id, coke_id = burger.id, coke.id

    sale = close_comanda(db, STORE_ID, comanda_id, "cash")

    statuses = {item.production_item_id: item.status for item in sale.items}
    assert statuses == {burger_id: "pending", coke_id: "done"}
    assert db.get(OrderItem, coke_id).status == "done"
    assert db.get(OrderItem, coke_id).done_at is not None
    assert db.get(OrderItem, burger_id).status == "pending"


def test_sale_snapshot_survives_product_edits():
    db = build_db()
    comanda_id = get_or_create_open_comanda(db, STORE_ID, 1)
    add_item_to_comanda(db, STORE_ID, comanda_id, BURGER_ID, 1)
    sale = close_comanda(db, STORE_ID, comanda_id, "cash")
    sale_id = sale.id

    update_product(db, STORE_ID, BURGER_ID, {"name": "Burger Duplo", "price_cents": 2900})

    stored = db.get(Sale, sale_id)
    assert stored.total_cents == 1500
    assert stored.items[0].product_name_snapshot == "Burger"
    assert stored.items[0].unit_price_cents == 1500


def test_item_added_before_price_change_keeps_original_price():
    db = build_db()
    comanda_id = get_or_create_open_comanda(db, STORE_ID, 1)
    add_item_to_comanda(db, STORE_ID, comanda_id, BURGER_ID, 1)
    update_product(db, STORE_ID, BURGER_ID, {"price_cents": 2000})
    add_item_to_comanda(db, STORE_ID, comanda_id, BURGER_ID, 1)

    sale = close_comanda(db, STORE_ID, comanda_id, "cash")

    assert [item.unit_price_cents for item in sale.items] == [1500, 2000]
    assert sale.total_cents == 3500


def test_list_and_detail_report_open_totals():
    db = build_db()
    comanda_id = get_or_create_open_comanda(db, STORE_ID, 4, customer_name="Bia", mesa="Varanda 4")
    add_item_to_comanda(db, STORE_ID, comanda_id, BURGER_ID, 2)
    coke = add_item_to_comanda(db, STORE_ID, comanda_id, COKE_ID, 1)
    advance_item_status(db, STORE_ID, coke.id, "canceled")
    other = get_or_create_open_comanda(db, STORE_ID, 2)

    listed = list_open_comandas(db, STORE_ID)
    detail = get_comanda_detail(db, STORE_ID, comanda_id)

    assert [entry["numero"] for entry in listed] == [2, 4]
    assert listed[0]["id"] == other
    assert listed[0]["total_cents"] == 0
    assert listed[1]["total_cents"] == 3000
    assert listed[1]["items_count"] == 1
    assert detail["mesa"] == "Varanda 4"
    assert detail["cliente_nome"] == "Bia"
    assert detail["total_cents"] == 3000
    assert [item["status"] for item in detail["items"]] == ["pending", "canceled"]
