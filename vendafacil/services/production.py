from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy.orm import Session

from vendafacil.core.config import PRODUCTION_DEFAULT_PREP_MINUTES
from vendafacil.core.errors import ValidationError
from vendafacil.core.production import ACTIVE_STATUSES, normalize_production_target
from vendafacil.models.comanda import Comanda
from vendafacil.models.order_item import OrderItem
from vendafacil.models.product import Product
from vendafacil.services.clock import as_utc, utcnow


def normalize_destino(destino: str) -> str:
    try:
        value = normalize_production_target(destino)
    except ValueError as exc:
        raise ValidationError(str(exc)) from exc
    if value == "nenhum":
        raise ValidationError("Destino sem fila de preparo")
    return value


def list_production_queue(
    db: Session,
    store_id: int,
    destino: str,
    *,
    now: datetime | None = None,
) -> list[dict[str, Any]]:
    destino = normalize_destino(destino)
    now = now or utcnow()
    rows = (
        db.query(OrderItem, Comanda, Product.prep_time_minutes)
        .outerjoin(Comanda, Comanda.id == OrderItem.comanda_id)
        .outerjoin(Product, Product.id == OrderItem.product_id)
        .filter(
            OrderItem.store_id == store_id,
            OrderItem.destino_preparo == destino,
            OrderItem.status.in_(ACTIVE_STATUSES),
        )
        .order_by(OrderItem.created_at.asc(), OrderItem.id.asc())
        .all()
    )

    queue = []
    for item, comanda, prep_minutes in rows:
        created_at = as_utc(item.created_at)
        elapsed = max(0, int((now - created_at).total_seconds())) if created_at else 0
        target_minutes = int(prep_minutes or PRODUCTION_DEFAULT_PREP_MINUTES)
        queue.append(
            {
                "id": item.id,
                "comanda_id": item.comanda_id,
                "sale_id": item.sale_id,
                "comanda_numero": comanda.numero if comanda else None,
                "mesa": comanda.mesa if comanda else None,
                "cliente_nome": comanda.cliente_nome if comanda else None,
                "product_id": item.product_id,
                "product_name_snapshot": item.product_name_snapshot,
                "quantity": item.quantity,
                "status": item.status,
                "destino_preparo": item.destino_preparo,
                "created_at": created_at.isoformat() if created_at else None,
                "elapsed_seconds": elapsed,
                "target_prep_minutes": target_minutes,
                "is_late": elapsed > target_minutes * 60,
            }
        )
    return queue
