from __future__ import annotations

import logging
import re
import secrets
from typing import Any, Iterable, Mapping

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from vendafacil.core.errors import AccessDeniedError, ConflictError, NotFoundError, ValidationError
from vendafacil.models.customer import Customer
from vendafacil.models.order_item import OrderItem
from vendafacil.models.store_table import StoreTable
from vendafacil.services.access import get_store_access_status
from vendafacil.services.catalog import get_product
from vendafacil.services.comandas import (
    add_items_to_comanda,
    get_comanda,
    get_or_create_open_comanda,
    parse_item_quantity,
    parse_positive_int,
)
from vendafacil.services.row_events import emit_row_changed
from vendafacil.services.stores import get_store

logger = logging.getLogger(__name__)

TABLE_ACTIVE = "ativo"
INVALID_TABLE_LINK = "Link de mesa inválido ou expirado. Peça ajuda ao atendente."
DIGITAL_ORDERS_PAUSED = "Esta unidade está com o sistema de pedidos digital pausado no momento."


def _new_token() -> str:
    return secrets.token_urlsafe(16)


def public_path(table: StoreTable) -> str:
    return f"/api/public/stores/{table.store_id}/tables/{table.public_token}"


def table_to_dict(table: StoreTable) -> dict[str, Any]:
    return {
        "id": table.id,
        "store_id": table.store_id,
        "number": table.number,
        "status": table.status,
        "public_token": table.public_token,
        "public_path": public_path(table),
    }


def list_tables(db: Session, store_id: int) -> list[StoreTable]:
    return (
        db.query(StoreTable)
        .filter(StoreTable.store_id == store_id)
        .order_by(StoreTable.number.asc())
        .all()
    )


def create_table(db: Session, store_id: int, number: Any) -> StoreTable:
    numero = parse_positive_int(number, "Número da mesa inválido")
    get_store(db, store_id)
    table = StoreTable(store_id=store_id, number=numero, public_token=_new_token(), status=TABLE_ACTIVE)
    try:
        db.add(table)
        db.commit()
        db.refresh(table)
    except IntegrityError as exc:
        db.rollback()
        raise ConflictError(f"Mesa {numero} já cadastrada") from exc
    except Exception:
        db.rollback()
        raise
    logger.info("[TABLES] created store_id=%s number=%s table_id=%s", store_id, numero, table.id)
    emit_row_changed("store_tables", store_id, table.id, "insert")
    return table


def delete_table(db: Session, store_id: int, table_id: int) -> None:
    table = db.query(StoreTable).filter(StoreTable.store_id == store_id, StoreTable.id == table_id).first()
    if not table:
        raise NotFoundError("Mesa não encontrada")
    try:
        db.delete(table)
        db.commit()
    except Exception:
        db.rollback()
        raise
    logger.info("[TABLES] deleted store_id=%s table_id=%s", store_id, table_id)
    emit_row_changed("store_tables", store_id, table_id, "delete")


def get_table_by_token(db: Session, store_id: int, token: str | None) -> StoreTable:
    token = (token or "").strip()
    table = None
    if token:
        table = (
            db.query(StoreTable)
            .filter(
                StoreTable.store_id == store_id,
                StoreTable.public_token == token,
                StoreTable.status == TABLE_ACTIVE,
            )
            .first()
        )
    if not table:
        logger.info("[TABLES] invalid token store_id=%s", store_id)
        raise NotFoundError(INVALID_TABLE_LINK)
    return table


def get_or_create_comanda_by_table(
    db: Session,
    store_id: int,
    token: str | None,
    customer_name: str | None = None,
) -> tuple[StoreTable, int]:
    table = get_table_by_token(db, store_id, token)
    comanda_id = get_or_create_open_comanda(db, store_id, table.number, customer_name=customer_name)
    return table, comanda_id


def _digits(value: Any) -> str | None:
    digits = re.sub(r"\D", "", str(value or ""))
    return digits or None


def register_customer_on_table(
    db: Session,
    store_id: int,
    comanda_id: int,
    *,
    name: str | None,
    phone: str | None = None,
    cpf: str | None = None,
) -> Customer:
    """Vincula o cliente do autoatendimento à comanda e ao cadastro da loja.

    Reaproveita o cliente pelo telefone ou CPF; a comanda só recebe o nome
    se ainda estiver sem cliente.
    """
    clean_name = (name or "").strip()
    if not clean_name:
        raise ValidationError("Nome do cliente é obrigatório")
    phone_digits = _digits(phone)
    cpf_digits = _digits(cpf)
    comanda = get_comanda(db, store_id, comanda_id)

    customer = None
    if phone_digits:
        customer = db.query(Customer).filter(Customer.store_id == store_id, Customer.phone == phone_digits).first()
    if customer is None and cpf_digits:
        customer = db.query(Customer).filter(Customer.store_id == store_id, Customer.cpf == cpf_digits).first()
    created = customer is None

    try:
        if created:
            customer = Customer(store_id=store_id, name=clean_name, phone=phone_digits, cpf=cpf_digits)
            db.add(customer)
        elif cpf_digits and not customer.cpf:
            customer.cpf = cpf_digits
        if not comanda.cliente_nome:
            comanda.cliente_nome = clean_name
        db.commit()
        db.refresh(customer)
    except Exception:
        db.rollback()
        raise

    emit_row_changed("customers", store_id, customer.id, "insert" if created else "update")
    emit_row_changed("comandas", store_id, comanda_id)
    return customer


def place_table_order(
    db: Session,
    store_id: int,
    token: str | None,
    items: Iterable[Mapping[str, Any]],
    customer: Mapping[str, Any] | None = None,
) -> tuple[StoreTable, int, list[OrderItem]]:
    """Pedido do cardápio digital: resolve a mesa, abre ou reaproveita a
    comanda e lança os itens direto na fila de preparo.
    """
    table = get_table_by_token(db, store_id, token)
    if not get_store_access_status(db, store_id)["acesso_liberado"]:
        raise AccessDeniedError(DIGITAL_ORDERS_PAUSED)

    lines = [(entry.get("product_id"), entry.get("quantity", 1)) for entry in items or []]
    if not lines:
        raise ValidationError("Carrinho vazio")
    # Valida o carrinho antes de abrir comanda para a mesa.
    for product_id, quantity in lines:
        parse_item_quantity(quantity)
        get_product(db, store_id, product_id)

    customer_name = (customer or {}).get("name")
    comanda_id = get_or_create_open_comanda(db, store_id, table.number, customer_name=customer_name)
    if customer and (customer.get("name") or "").strip():
        register_customer_on_table(
            db,
            store_id,
            comanda_id,
            name=customer.get("name"),
            phone=customer.get("phone"),
            cpf=customer.get("cpf"),
        )
    created = add_items_to_comanda(db, store_id, comanda_id, lines)
    logger.info(
        "[TABLES] digital order store_id=%s table=%s comanda_id=%s items=%s",
        store_id,
        table.number,
        comanda_id,
        len(created),
    )
    return table, comanda_id, created
