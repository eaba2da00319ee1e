from datetime import datetime, timezone
from types import SimpleNamespace

import pytest

from tests.fixtures_data import BURGER_ID, COKE_ID, STORE_ID, build_client, build_db
from vendafacil.services.comandas import add_item_to_comanda, close_comanda, get_or_create_open_comanda
from vendafacil.services.receipts import format_price_cents, receipt_lines, render_receipt

STORE = SimpleNamespace(
    name="Bar do Zé",
    legal_name="Zé Comércio de Alimentos LTDA",
    cnpj="12.345.678/0001-90",
    address="Rua das Flores, 10",
    city="Belo Horizonte",
    state="MG",
    phone="31 3333-0000",
)

SALE = {
    "id": 31,
    "created_at": datetime(2024, 5, 10, 21, 30, tzinfo=timezone.utc),
    "total_cents": 3500,
    "payment_method": "pix",
    "items": [
        {"product_name_snapshot": "Burger", "quantity": 2, "unit_price_cents": 1500, "subtotal_cents": 3000},
        {"product_name_snapshot": "Coke", "quantity": 1, "unit_price_cents": 500, "subtotal_cents": 500},
        {
            "product_name_snapshot": "Porção de batata",
            "quantity": 1,
            "unit_price_cents": 2200,
            "subtotal_cents": 2200,
            "status": "canceled",
        },
    ],
}


@pytest.mark.parametrize(("value", "expected"), [(0, "R$ 0,00"), (3500, "R$ 35,00"), (123456, "R$ 1.234,56")])
def test_format_price_cents(value, expected):
    assert format_price_cents(value) == expected


@pytest.mark.parametrize(("fmt", "columns"), [("58mm", 32), ("80mm", 48)])
def test_text_receipt_fits_the_paper_width(fmt, columns):
    text = render_receipt(SALE, STORE, fmt, comanda_meta={"numero": 12, "mesa": "Varanda", "cliente_nome": "Ana"})
    lines = text.splitlines()

    assert all(len(line) <= columns for line in lines)
    assert "-" * columns in lines
    assert "VENDA #31" in lines
    assert "Data: 10/05/2024 21:30 UTC" in lines
    assert "Comanda: 12 (Varanda)" in lines
    assert "Cliente: Ana" in lines
    assert lines[-1].strip() == "Obrigado pela preferência!"


def test_receipt_totals_and_skips_canceled_lines():
    lines = receipt_lines(SALE, STORE, 48)

    assert lines[0].strip() == "Bar do Zé"
    assert "CNPJ: 12.345.678/0001-90" in lines[2]
    assert any(line.startswith("TOTAL") and line.endswith("R$ 35,00") for line in lines)
    assert any(line.startswith("Pagamento") and line.endswith("PIX") for line in lines)
    assert not any("batata" in line for line in lines)
    assert any(line.startswith("  2 x R$ 15,00") and line.endswith("R$ 30,00") for line in lines)


def test_long_product_names_are_truncated():
    sale = dict(SALE, items=[dict(SALE["items"][0], product_name_snapshot="X" * 80)])

    lines = receipt_lines(sale, STORE, 32)

    assert "X" * 31 + "." in lines


def test_pdf_receipt_is_a_pdf_document():
    rendered = render_receipt(SALE, STORE, "PDF")

    assert isinstance(rendered, bytes)
    assert rendered.startswith(b"%PDF")


def test_unknown_receipt_format_is_rejected():
    with pytest.raises(ValueError):
        render_receipt(SALE, STORE, "a4")


def test_receipt_endpoint_serves_text_and_pdf():
    db = build_db(settings={"receipt_width": "58mm"})
    client = build_client(db)
    comanda_id = get_or_create_open_comanda(db, STORE_ID, 12)
    add_item_to_comanda(db, STORE_ID, comanda_id, BURGER_ID, 2)
    add_item_to_comanda(db, STORE_ID, comanda_id, COKE_ID, 1)
    sale_id = close_comanda(db, STORE_ID, comanda_id, "cash").id

    text = client.get(f"/api/stores/1/sales/{sale_id}/receipt")
    pdf = client.get(f"/api/stores/1/sales/{sale_id}/receipt", params={"format": "pdf"})
    invalid = client.get(f"/api/stores/1/sales/{sale_id}/receipt", params={"format": "a4"})
    missing = client.get("/api/stores/1/sales/999/receipt")

    assert text.status_code == 200
    assert text.headers["content-type"].startswith("text/plain")
    assert all(len(line) <= 32 for line in text.text.splitlines())
    assert "Comanda: 12" in text.text
    assert "R$ 35,00" in text.text
    assert pdf.headers["content-type"] == "application/pdf"
    assert pdf.content.startswith(b"%PDF")
    assert invalid.status_code == 400
    assert missing.status_code == 404
