from __future__ import annotations

import logging
from dataclasses import asdict, dataclass
from typing import Any, Iterable

from sqlalchemy import func, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from vendafacil.core.errors import (
    AccessDeniedError,
    ConflictError,
    InsufficientStockError,
    NotFoundError,
    PaymentError,
    StateError,
    ValidationError,
)
from vendafacil.core.production import (
    STATUS_CANCELED,
    STATUS_DONE,
    STATUS_PENDING,
    allowed_sources,
    is_terminal,
    normalize_item_status,
)
from vendafacil.models.comanda import Comanda
from vendafacil.models.order_item import OrderItem
from vendafacil.models.sale import Sale, SaleItem
from vendafacil.services.access import require_sale_access
from vendafacil.services.catalog import MAX_INT_COLUMN, MAX_ITEM_QUANTITY, decrement_stock, get_product
from vendafacil.services.clock import as_utc, utcnow
from vendafacil.services.row_events import emit_row_changed, emit_rows_changed
from vendafacil.services.sales import (
    add_sale_item,
    normalize_payment_method,
    resolve_cash_session_id,
)
from vendafacil.services.stores import get_store, store_settings

logger = logging.getLogger(__name__)

COMANDA_OPEN = "aberta"
COMANDA_CLOSED = "fechada"


@dataclass
class TransitionResult:
    item_id: int
    changed: bool
    status: str
    reason: str | None = None

    def as_dict(self) -> dict[str, Any]:
        return asdict(self)


def parse_positive_int(value: Any, message: str, *, maximum: int = MAX_INT_COLUMN) -> int:
    if isinstance(value, bool):
        raise ValidationError(message)
    if isinstance(value, str):
        value = value.strip()
        if not value.isdigit():
            raise ValidationError(message)
        value = int(value)
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    if not isinstance(value, int) or value <= 0 or value > maximum:
        raise ValidationError(message)
    return value


def _find_open_comanda(db: Session, store_id: int, numero: int) -> Comanda | None:
    return (
        db.query(Comanda)
        .filter(
            Comanda.store_id == store_id,
            Comanda.numero == numero,
            Comanda.status == COMANDA_OPEN,
        )
        .first()
    )


def get_comanda(db: Session, store_id: int, comanda_id: int) -> Comanda:
    comanda = db.query(Comanda).filter(Comanda.store_id == store_id, Comanda.id == comanda_id).first()
    if not comanda:
        raise NotFoundError("Comanda não encontrada")
    return comanda


def _lock_open_comanda(db: Session, store_id: int, comanda_id: int) -> None:
    # Toca a linha para serializar com o fechamento concorrente.
    result = db.execute(
        update(Comanda)
        .where(
            Comanda.id == comanda_id,
            Comanda.store_id == store_id,
            Comanda.status == COMANDA_OPEN,
        )
        .values(status=COMANDA_OPEN)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        get_comanda(db, store_id, comanda_id)
        raise StateError("Comanda não está aberta")


def get_or_create_open_comanda(
    db: Session,
    store_id: int | None,
    table_number: Any,
    customer_name: str | None = None,
    mesa: str | None = None,
) -> int:
    if not store_id:
        raise ValidationError("Loja não informada")
    numero = parse_positive_int(table_number, "Número da mesa inválido")

    existing = _find_open_comanda(db, store_id, numero)
    if existing:
        return existing.id

    get_store(db, store_id)
    comanda = Comanda(
        store_id=store_id,
        numero=numero,
        mesa=(mesa or "").strip() or str(numero),
        cliente_nome=(customer_name or "").strip() or None,
        status=COMANDA_OPEN,
    )
    try:
        db.add(comanda)
        db.commit()
    except IntegrityError:
        db.rollback()
        winner = _find_open_comanda(db, store_id, numero)
        if winner:
            logger.info(
                "[COMANDAS] open race resolved store_id=%s numero=%s comanda_id=%s",
                store_id,
                numero,
                winner.id,
            )
            return winner.id
        raise ConflictError("Outra estação abriu esta mesa ao mesmo tempo. Tente novamente.")
    except Exception:
        db.rollback()
        raise

    comanda_id = comanda.id
    logger.info("[COMANDAS] opened store_id=%s numero=%s comanda_id=%s", store_id, numero, comanda_id)
    emit_row_changed("comandas", store_id, comanda_id, "insert")
    return comanda_id


def parse_item_quantity(quantity: Any) -> int:
    return parse_positive_int(quantity, "Quantidade deve ser um inteiro positivo", maximum=MAX_ITEM_QUANTITY)


def add_items_to_comanda(
    db: Session,
    store_id: int,
    comanda_id: int,
    lines: Iterable[tuple[Any, Any]],
) -> list[OrderItem]:
    """Lança várias linhas ``(product_id, quantidade)`` numa única transação.

    Qualquer linha rejeitada cancela o lote inteiro. A checagem de estoque
    aqui é consultiva e soma as linhas do mesmo produto; a baixa real
    acontece no fechamento.
    """
    parsed = [(product_id, parse_item_quantity(quantity)) for product_id, quantity in lines]
    if not parsed:
        raise ValidationError("Nenhum item informado")
    comanda = get_comanda(db, store_id, comanda_id)
    if comanda.status != COMANDA_OPEN:
        raise StateError("Comanda não está aberta")
    settings = store_settings(get_store(db, store_id))

    now = utcnow()
    requested: dict[int, int] = {}
    items: list[OrderItem] = []
    for product_id, qty in parsed:
        product = get_product(db, store_id, product_id)
        requested[product.id] = requested.get(product.id, 0) + qty
        if settings["block_sale_without_stock"] and requested[product.id] > int(product.stock_qty or 0):
            raise InsufficientStockError(f"Estoque insuficiente para {product.name}")
        items.append(
            OrderItem(
                store_id=store_id,
                comanda_id=comanda_id,
                product_id=product.id,
                product_name_snapshot=product.name,
                quantity=qty,
                unit_price_cents=int(product.price_cents),
                subtotal_cents=qty * int(product.price_cents),
                status=STATUS_PENDING,
                destino_preparo=product.production_target or "nenhum",
                created_at=now,
                updated_at=now,
            )
        )

    try:
        _lock_open_comanda(db, store_id, comanda_id)
        db.add_all(items)
        db.commit()
    except Exception:
        db.rollback()
        raise
    for item in items:
        db.refresh(item)
    emit_rows_changed("order_items", store_id, [item.id for item in items], "insert")
    return items


def add_item_to_comanda(
    db: Session,
    store_id: int,
    comanda_id: int,
    product_id: int,
    quantity: Any,
) -> OrderItem:
    return add_items_to_comanda(db, store_id, comanda_id, [(product_id, quantity)])[0]


def advance_item_status(db: Session, store_id: int, item_id: int, new_status: str) -> TransitionResult:
    try:
        target = normalize_item_status(new_status)
    except ValueError as exc:
        raise ValidationError(str(exc)) from exc
    if target == STATUS_PENDING:
        raise ValidationError("Item não pode voltar para pendente")

    item = db.query(OrderItem).filter(OrderItem.store_id == store_id, OrderItem.id == item_id).first()
    if not item:
        raise NotFoundError("Item não encontrado")

    current = item.status
    if current == target or is_terminal(current):
        reason = "unchanged" if current == target else "terminal"
        logger.info(
            "[PRODUCTION] transition ignored item_id=%s current=%s target=%s reason=%s",
            item_id,
            current,
            target,
            reason,
        )
        return TransitionResult(item_id=item_id, changed=False, status=current, reason=reason)

    sources = allowed_sources(target)
    if current not in sources:
        raise StateError(f"Transição inválida: {current} -> {target}")

    if target == STATUS_CANCELED and item.sale_id is not None:
        raise StateError("Item de venda finalizada não pode ser cancelado")

    now = utcnow()
    values: dict[str, Any] = {"status": target, "updated_at": now}
    if target == STATUS_DONE:
        values["done_at"] = now

    try:
        if target == STATUS_CANCELED and item.comanda_id is not None:
            try:
                _lock_open_comanda(db, store_id, item.comanda_id)
            except StateError as exc:
                raise StateError("Comanda fechada: item não pode ser cancelado") from exc

        result = db.execute(
            update(OrderItem)
            .where(
                OrderItem.id == item_id,
                OrderItem.store_id == store_id,
                OrderItem.status.in_(sources),
            )
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            db.rollback()
            latest = (
                db.query(OrderItem.status)
                .filter(OrderItem.store_id == store_id, OrderItem.id == item_id)
                .scalar()
            )
            if latest == target or is_terminal(latest):
                logger.info(
                    "[PRODUCTION] concurrent transition item_id=%s latest=%s target=%s",
                    item_id,
                    latest,
                    target,
                )
                return TransitionResult(item_id=item_id, changed=False, status=latest, reason="concurrent")
            raise ConflictError("Item alterado por outra estação. Atualize e tente novamente.")

        mirrored = db.execute(
            update(SaleItem)
            .where(SaleItem.production_item_id == item_id, SaleItem.store_id == store_id)
            .values(status=target)
            .execution_options(synchronize_session=False)
        )
        db.commit()
    except Exception:
        db.rollback()
        raise

    logger.info("[PRODUCTION] item_id=%s %s -> %s", item_id, current, target)
    emit_row_changed("order_items", store_id, item_id)
    if mirrored.rowcount:
        emit_row_changed("sale_items", store_id, item_id)
    return TransitionResult(item_id=item_id, changed=True, status=target)


def close_comanda(db: Session, store_id: int, comanda_id: int, payment_method: str | None) -> Sale:
    """Fecha a comanda e gera a venda em uma única transação.

    Rejeições de estado, conflito ou estoque saem como ``PaymentError``; nada
    é persistido e o estoque não é alterado.
    """
    method = normalize_payment_method(payment_method)
    get_comanda(db, store_id, comanda_id)

    try:
        now = utcnow()
        result = db.execute(
            update(Comanda)
            .where(
                Comanda.id == comanda_id,
                Comanda.store_id == store_id,
                Comanda.status == COMANDA_OPEN,
            )
            .values(status=COMANDA_CLOSED, closed_at=now)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise StateError("Comanda já foi fechada")

        items = (
            db.query(OrderItem)
            .filter(
                OrderItem.store_id == store_id,
                OrderItem.comanda_id == comanda_id,
                OrderItem.status != STATUS_CANCELED,
            )
            .order_by(OrderItem.id.asc())
            .all()
        )
        if not items:
            raise StateError("Comanda sem itens para fechar")

        settings = store_settings(get_store(db, store_id))
        require_sale_access(db, store_id)

        sale = Sale(
            store_id=store_id,
            comanda_id=comanda_id,
            cash_session_id=resolve_cash_session_id(db, store_id, settings),
            payment_method=method,
            total_cents=sum(int(item.subtotal_cents) for item in items),
            created_at=now,
        )
        db.add(sale)
        db.flush()

        finished_ids = []
        for item in items:
            status = item.status
            if item.destino_preparo == "nenhum" and not is_terminal(status):
                # Item sem preparo é entregue no ato.
                status = STATUS_DONE
                item.status = STATUS_DONE
                item.updated_at = now
                item.done_at = now
                finished_ids.append(item.id)
            add_sale_item(
                db,
                sale,
                product_id=item.product_id,
                name=item.product_name_snapshot,
                quantity=item.quantity,
                unit_price_cents=item.unit_price_cents,
                status=status,
                destino_preparo=item.destino_preparo,
                production_item_id=item.id,
            )
            decrement_stock(
                db,
                store_id=store_id,
                product_id=item.product_id,
                quantity=item.quantity,
                block_without_stock=settings["block_sale_without_stock"],
            )

        db.execute(
            update(Comanda)
            .where(Comanda.id == comanda_id, Comanda.store_id == store_id)
            .values(sale_id=sale.id)
            .execution_options(synchronize_session=False)
        )
        db.commit()
    except AccessDeniedError:
        db.rollback()
        raise
    except (StateError, ConflictError) as exc:
        db.rollback()
        logger.info("[COMANDAS] close rejected comanda_id=%s code=%s", comanda_id, exc.code)
        raise PaymentError(exc.message) from exc
    except Exception:
        db.rollback()
        raise

    db.refresh(sale)
    logger.info(
        "[COMANDAS] closed store_id=%s comanda_id=%s sale_id=%s total_cents=%s",
        store_id,
        comanda_id,
        sale.id,
        sale.total_cents,
    )
    emit_row_changed("comandas", store_id, comanda_id)
    emit_row_changed("sales", store_id, sale.id, "insert")
    emit_rows_changed("sale_items", store_id, [item.id for item in sale.items], "insert")
    emit_rows_changed("order_items", store_id, finished_ids)
    emit_rows_changed("products", store_id, sorted({item.product_id for item in sale.items}))
    return sale


def _open_totals(db: Session, store_id: int, comanda_ids: list[int]) -> dict[int, tuple[int, int]]:
    if not comanda_ids:
        return {}
    rows = (
        db.query(
            OrderItem.comanda_id,
            func.coalesce(func.sum(OrderItem.subtotal_cents), 0),
            func.count(OrderItem.id),
        )
        .filter(
            OrderItem.store_id == store_id,
            OrderItem.comanda_id.in_(comanda_ids),
            OrderItem.status != STATUS_CANCELED,
        )
        .group_by(OrderItem.comanda_id)
        .all()
    )
    return {comanda_id: (int(total or 0), int(count or 0)) for comanda_id, total, count in rows}


def _iso(value) -> str | None:
    value = as_utc(value)
    return value.isoformat() if value else None


def comanda_to_dict(comanda: Comanda, total_cents: int = 0, items_count: int = 0) -> dict[str, Any]:
    return {
        "id": comanda.id,
        "store_id": comanda.store_id,
        "numero": comanda.numero,
        "mesa": comanda.mesa,
        "status": comanda.status,
        "cliente_nome": comanda.cliente_nome,
        "sale_id": comanda.sale_id,
        "opened_at": _iso(comanda.opened_at),
        "closed_at": _iso(comanda.closed_at),
        "total_cents": total_cents,
        "items_count": items_count,
    }


def order_item_to_dict(item: OrderItem) -> dict[str, Any]:
    return {
        "id": item.id,
        "comanda_id": item.comanda_id,
        "sale_id": item.sale_id,
        "product_id": item.product_id,
        "product_name_snapshot": item.product_name_snapshot,
        "quantity": item.quantity,
        "unit_price_cents": item.unit_price_cents,
        "subtotal_cents": item.subtotal_cents,
        "status": item.status,
        "destino_preparo": item.destino_preparo,
        "created_at": _iso(item.created_at),
        "done_at": _iso(item.done_at),
    }


def list_open_comandas(db: Session, store_id: int) -> list[dict[str, Any]]:
    comandas = (
        db.query(Comanda)
        .filter(Comanda.store_id == store_id, Comanda.status == COMANDA_OPEN)
        .order_by(Comanda.numero.asc())
        .all()
    )
    totals = _open_totals(db, store_id, [comanda.id for comanda in comandas])
    return [comanda_to_dict(comanda, *totals.get(comanda.id, (0, 0))) for comanda in comandas]


def get_comanda_detail(db: Session, store_id: int, comanda_id: int) -> dict[str, Any]:
    comanda = get_comanda(db, store_id, comanda_id)
    items = (
        db.query(OrderItem)
        .filter(OrderItem.store_id == store_id, OrderItem.comanda_id == comanda_id)
        .order_by(OrderItem.created_at.asc(), OrderItem.id.asc())
        .all()
    )
    active = [item for item in items if item.status != STATUS_CANCELED]
    payload = comanda_to_dict(
        comanda,
        total_cents=sum(int(item.subtotal_cents) for item in active),
        items_count=len(active),
    )
    payload["items"] = [order_item_to_dict(item) for item in items]
    return payload
