from __future__ import annotations

import logging
from typing import Any, Mapping

from sqlalchemy import case, update
from sqlalchemy.orm import Session

from vendafacil.core.errors import InsufficientStockError, NotFoundError, ValidationError
from vendafacil.core.production import normalize_production_target
from vendafacil.models.product import Product
from vendafacil.services.row_events import emit_row_changed

logger = logging.getLogger(__name__)

MAX_ITEM_QUANTITY = 9_999
MAX_INT_COLUMN = 2_147_483_647

EDITABLE_FIELDS = {
    "name",
    "category",
    "barcode",
    "price_cents",
    "cost_cents",
    "stock_qty",
    "min_stock_qty",
    "active",
    "production_target",
    "prep_time_minutes",
}


def whole_number(value: Any, message: str, *, maximum: int = MAX_INT_COLUMN) -> int:
    """Arredonda para inteiro, rejeitando Infinity, NaN e valores acima da coluna."""
    try:
        number = int(round(float(value)))
    except (TypeError, ValueError, OverflowError) as exc:
        raise ValidationError(message) from exc
    if number > maximum:
        raise ValidationError(message)
    return number


def get_product(db: Session, store_id: int, product_id: int, *, active_only: bool = True) -> Product:
    query = db.query(Product).filter(Product.store_id == store_id, Product.id == product_id)
    if active_only:
        query = query.filter(Product.active.is_(True))
    product = query.first()
    if not product:
        raise NotFoundError("Produto não encontrado")
    return product


def list_products(db: Session, store_id: int, *, include_inactive: bool = False) -> list[Product]:
    query = db.query(Product).filter(Product.store_id == store_id)
    if not include_inactive:
        query = query.filter(Product.active.is_(True))
    return query.order_by(Product.name.asc(), Product.id.asc()).all()


def decrement_stock(
    db: Session,
    *,
    store_id: int,
    product_id: int,
    quantity: int,
    block_without_stock: bool = True,
) -> None:
    """Baixa atômica de estoque dentro da transação do chamador.

    Com bloqueio ativo a linha só é alterada se houver saldo suficiente; sem
    bloqueio o saldo é limitado a zero.
    """
    if quantity <= 0:
        raise ValidationError("Quantidade deve ser maior que zero")

    stmt = update(Product).where(Product.store_id == store_id, Product.id == product_id)
    if block_without_stock:
        stmt = stmt.where(Product.stock_qty >= quantity).values(stock_qty=Product.stock_qty - quantity)
    else:
        stmt = stmt.values(
            stock_qty=case(
                (Product.stock_qty >= quantity, Product.stock_qty - quantity),
                else_=0,
            )
        )
    result = db.execute(stmt.execution_options(synchronize_session=False))
    if result.rowcount == 1:
        return

    exists = db.query(Product.id).filter(Product.store_id == store_id, Product.id == product_id).first()
    if not exists:
        raise NotFoundError("Produto não encontrado")
    logger.info(
        "[STOCK] insufficient store_id=%s product_id=%s quantity=%s",
        store_id,
        product_id,
        quantity,
    )
    raise InsufficientStockError("Estoque insuficiente para o produto")


def _clean_product_fields(data: Mapping[str, Any]) -> dict[str, Any]:
    cleaned = {key: value for key, value in data.items() if key in EDITABLE_FIELDS}
    if "name" in cleaned:
        name = str(cleaned["name"] or "").strip()
        if not name:
            raise ValidationError("Nome do produto é obrigatório")
        cleaned["name"] = name
    for field in ("price_cents", "cost_cents", "stock_qty", "min_stock_qty"):
        if field in cleaned and cleaned[field] is not None:
            value = whole_number(cleaned[field], "Valores de preço e estoque inválidos")
            if value < 0:
                raise ValidationError("Valores de preço e estoque não podem ser negativos")
            cleaned[field] = value
    if "production_target" in cleaned:
        try:
            cleaned["production_target"] = normalize_production_target(cleaned["production_target"])
        except ValueError as exc:
            raise ValidationError(str(exc)) from exc
    if cleaned.get("prep_time_minutes") is not None and int(cleaned["prep_time_minutes"]) <= 0:
        raise ValidationError("Tempo de preparo deve ser positivo")
    return cleaned


def create_product(db: Session, store_id: int, data: Mapping[str, Any]) -> Product:
    fields = _clean_product_fields(data)
    if "name" not in fields:
        raise ValidationError("Nome do produto é obrigatório")
    product = Product(store_id=store_id, **fields)
    try:
        db.add(product)
        db.commit()
        db.refresh(product)
    except Exception:
        db.rollback()
        raise
    emit_row_changed("products", store_id, product.id, "insert")
    return product


def update_product(db: Session, store_id: int, product_id: int, changes: Mapping[str, Any]) -> Product:
    product = get_product(db, store_id, product_id, active_only=False)
    fields = _clean_product_fields(changes)
    for key, value in fields.items():
        setattr(product, key, value)
    try:
        db.commit()
        db.refresh(product)
    except Exception:
        db.rollback()
        raise
    emit_row_changed("products", store_id, product.id)
    return product


def deactivate_product(db: Session, store_id: int, product_id: int) -> Product:
    return update_product(db, store_id, product_id, {"active": False})
