from __future__ import annotations

import logging
import unicodedata
from typing import Any, Iterable, Mapping

from sqlalchemy.orm import Session

from vendafacil.core.errors import NotFoundError, StateError, ValidationError
from vendafacil.core.production import STATUS_DONE, STATUS_PENDING
from vendafacil.models.customer import Customer
from vendafacil.models.order_item import OrderItem
from vendafacil.models.sale import Sale, SaleItem
from vendafacil.services.access import require_sale_access
from vendafacil.services.cash import get_current_session
from vendafacil.services.catalog import MAX_ITEM_QUANTITY, decrement_stock, get_product, whole_number
from vendafacil.services.clock import as_utc, utcnow
from vendafacil.services.row_events import emit_row_changed, emit_rows_changed
from vendafacil.services.stores import get_store, store_settings

logger = logging.getLogger(__name__)

PAYMENT_METHODS = {"cash", "pix", "card"}
PAYMENT_METHOD_ALIASES = {
    "cartao": "card",
    "card": "card",
    "credito": "card",
    "debito": "card",
    "pix": "pix",
    "dinheiro": "cash",
    "cash": "cash",
}


def _strip_accents(value: str) -> str:
    normalized = unicodedata.normalize("NFKD", value)
    return "".join([char for char in normalized if not unicodedata.combining(char)])


def normalize_payment_method(method: str | None) -> str:
    lowered = _strip_accents(str(method or "").strip().lower())
    normalized = PAYMENT_METHOD_ALIASES.get(lowered, lowered)
    if normalized not in PAYMENT_METHODS:
        raise ValidationError("Forma de pagamento inválida")
    return normalized


def resolve_cash_session_id(db: Session, store_id: int, settings: Mapping[str, Any]) -> int | None:
    session = get_current_session(db, store_id)
    if session is None and not settings["allow_sale_without_open_cash_register"]:
        raise StateError("Caixa fechado. Abra o caixa para registrar vendas.")
    return session.id if session else None


def add_sale_item(
    db: Session,
    sale: Sale,
    *,
    product_id: int,
    name: str,
    quantity: int,
    unit_price_cents: int,
    status: str,
    destino_preparo: str,
    production_item_id: int | None = None,
) -> SaleItem:
    item = SaleItem(
        sale_id=sale.id,
        store_id=sale.store_id,
        product_id=product_id,
        product_name_snapshot=name,
        quantity=quantity,
        unit_price_cents=unit_price_cents,
        subtotal_cents=quantity * unit_price_cents,
        status=status,
        destino_preparo=destino_preparo,
        production_item_id=production_item_id,
    )
    db.add(item)
    return item


def _clamp_quantity(value: Any) -> int:
    if value is None:
        return 1
    return max(1, whole_number(value, "Quantidade inválida", maximum=MAX_ITEM_QUANTITY))


def _client_price(entry: Mapping[str, Any]) -> int | None:
    raw = entry.get("unit_price_cents")
    if raw is None:
        return None
    return whole_number(raw, "Preço inválido")


def process_direct_sale(
    db: Session,
    store_id: int,
    cart: Iterable[Mapping[str, Any]],
    payment_method: str | None,
    customer_id: int | None = None,
) -> Sale:
    """Venda de balcão: venda, itens, roteamento de preparo e baixa de estoque
    em uma única transação.
    """
    method = normalize_payment_method(payment_method)
    entries = [dict(entry) for entry in cart or []]
    if not entries:
        raise ValidationError("Carrinho vazio")

    store = get_store(db, store_id)
    settings = store_settings(store)
    require_sale_access(db, store_id)

    if customer_id is not None:
        customer = (
            db.query(Customer)
            .filter(Customer.store_id == store_id, Customer.id == customer_id)
            .first()
        )
        if not customer:
            raise NotFoundError("Cliente não encontrado")

    production_ids: list[int] = []
    product_ids: set[int] = set()
    try:
        sale = Sale(
            store_id=store_id,
            customer_id=customer_id,
            cash_session_id=resolve_cash_session_id(db, store_id, settings),
            payment_method=method,
            total_cents=0,
            created_at=utcnow(),
        )
        db.add(sale)
        db.flush()

        total = 0
        for entry in entries:
            product = get_product(db, store_id, entry.get("product_id"))
            quantity = _clamp_quantity(entry.get("quantity"))
            client_price = _client_price(entry)
            if client_price is not None and client_price != product.price_cents:
                raise ValidationError(f"Preço de {product.name} foi alterado. Atualize o carrinho.")

            unit_price = int(product.price_cents)
            destino = product.production_target or "nenhum"
            production_item_id = None
            status = STATUS_DONE
            if destino != "nenhum":
                production_item = OrderItem(
                    store_id=store_id,
                    sale_id=sale.id,
                    product_id=product.id,
                    product_name_snapshot=product.name,
                    quantity=quantity,
                    unit_price_cents=unit_price,
                    subtotal_cents=quantity * unit_price,
                    status=STATUS_PENDING,
                    destino_preparo=destino,
                )
                db.add(production_item)
                db.flush()
                production_item_id = production_item.id
                production_ids.append(production_item.id)
                status = STATUS_PENDING

            add_sale_item(
                db,
                sale,
                product_id=product.id,
                name=product.name,
                quantity=quantity,
                unit_price_cents=unit_price,
                status=status,
                destino_preparo=destino,
                production_item_id=production_item_id,
            )
            decrement_stock(
                db,
                store_id=store_id,
                product_id=product.id,
                quantity=quantity,
                block_without_stock=settings["block_sale_without_stock"],
            )
            product_ids.add(product.id)
            total += quantity * unit_price

        sale.total_cents = total
        db.commit()
    except Exception:
        db.rollback()
        raise

    db.refresh(sale)
    logger.info(
        "[SALES] direct sale store_id=%s sale_id=%s total_cents=%s method=%s",
        store_id,
        sale.id,
        sale.total_cents,
        method,
    )
    emit_row_changed("sales", store_id, sale.id, "insert")
    emit_rows_changed("sale_items", store_id, [item.id for item in sale.items], "insert")
    emit_rows_changed("order_items", store_id, production_ids, "insert")
    emit_rows_changed("products", store_id, sorted(product_ids))
    return sale


def get_sale(db: Session, store_id: int, sale_id: int) -> Sale:
    sale = db.query(Sale).filter(Sale.store_id == store_id, Sale.id == sale_id).first()
    if not sale:
        raise NotFoundError("Venda não encontrada")
    return sale


def list_sales(db: Session, store_id: int, *, cash_session_id: int | None = None, limit: int = 50) -> list[Sale]:
    query = db.query(Sale).filter(Sale.store_id == store_id)
    if cash_session_id is not None:
        query = query.filter(Sale.cash_session_id == cash_session_id)
    return query.order_by(Sale.created_at.desc(), Sale.id.desc()).limit(limit).all()


def sale_item_to_dict(item: SaleItem) -> dict[str, Any]:
    return {
        "id": item.id,
        "product_id": item.product_id,
        "product_name_snapshot": item.product_name_snapshot,
        "quantity": item.quantity,
        "unit_price_cents": item.unit_price_cents,
        "subtotal_cents": item.subtotal_cents,
        "status": item.status,
        "destino_preparo": item.destino_preparo,
        "production_item_id": item.production_item_id,
    }


def sale_to_dict(sale: Sale) -> dict[str, Any]:
    created_at = as_utc(sale.created_at)
    return {
        "id": sale.id,
        "store_id": sale.store_id,
        "comanda_id": sale.comanda_id,
        "customer_id": sale.customer_id,
        "cash_session_id": sale.cash_session_id,
        "total_cents": sale.total_cents,
        "payment_method": sale.payment_method,
        "created_at": created_at.isoformat() if created_at else None,
        "items": [sale_item_to_dict(item) for item in sale.items],
    }
