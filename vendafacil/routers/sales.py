from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends, HTTPException, Query, Response
from fastapi.responses import PlainTextResponse
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from vendafacil.core.database import get_db
from vendafacil.deps import require_store_member
from vendafacil.models.comanda import Comanda
from vendafacil.models.store_member import StoreMember
from vendafacil.services.audit import log_store_action
from vendafacil.services.receipts import RECEIPT_FORMATS, render_receipt
from vendafacil.services.sales import get_sale, list_sales, process_direct_sale, sale_to_dict
from vendafacil.services.stores import get_store, store_settings

router = APIRouter(prefix="/api/stores/{store_id}", tags=["sales"])


class CartItemPayload(BaseModel):
    product_id: int
    quantity: float | None = 1
    unit_price_cents: float | None = None


class DirectSalePayload(BaseModel):
    items: List[CartItemPayload] = Field(..., min_length=1)
    payment_method: str = Field(..., min_length=1)
    customer_id: int | None = None


def _comanda_meta(db: Session, store_id: int, comanda_id: int | None) -> dict | None:
    if comanda_id is None:
        return None
    comanda = db.query(Comanda).filter(Comanda.store_id == store_id, Comanda.id == comanda_id).first()
    if not comanda:
        return None
    return {"numero": comanda.numero, "mesa": comanda.mesa, "cliente_nome": comanda.cliente_nome}


@router.post("/sales", status_code=201)
def create_direct_sale(
    store_id: int,
    payload: DirectSalePayload,
    db: Session = Depends(get_db),
    member: StoreMember = Depends(require_store_member),
):
    sale = process_direct_sale(
        db,
        store_id,
        [item.model_dump() for item in payload.items],
        payload.payment_method,
        customer_id=payload.customer_id,
    )
    sale_payload = sale_to_dict(sale)
    store = get_store(db, store_id)
    receipt = render_receipt(sale, store, store_settings(store)["receipt_width"])
    log_store_action(
        db,
        store_id=store_id,
        member_id=member.id,
        action="sale.create",
        entity_type="sale",
        entity_id=sale_payload["id"],
        meta={"total_cents": sale_payload["total_cents"], "payment_method": sale_payload["payment_method"]},
    )
    return {"sale": sale_payload, "receipt": receipt}


@router.get("/sales")
def sales_list(
    store_id: int,
    cash_session_id: int | None = Query(None),
    limit: int = Query(50, ge=1, le=500),
    db: Session = Depends(get_db),
    _member: StoreMember = Depends(require_store_member),
):
    return [sale_to_dict(sale) for sale in list_sales(db, store_id, cash_session_id=cash_session_id, limit=limit)]


@router.get("/sales/{sale_id}")
def sale_detail(
    store_id: int,
    sale_id: int,
    db: Session = Depends(get_db),
    _member: StoreMember = Depends(require_store_member),
):
    return sale_to_dict(get_sale(db, store_id, sale_id))


@router.get("/sales/{sale_id}/receipt")
def sale_receipt(
    store_id: int,
    sale_id: int,
    format: str | None = Query(None),
    db: Session = Depends(get_db),
    _member: StoreMember = Depends(require_store_member),
):
    store = get_store(db, store_id)
    fmt = (format or store_settings(store)["receipt_width"]).strip().lower()
    if fmt not in RECEIPT_FORMATS:
        raise HTTPException(status_code=400, detail="Formato de cupom inválido")

    sale = get_sale(db, store_id, sale_id)
    rendered = render_receipt(sale, store, fmt, comanda_meta=_comanda_meta(db, store_id, sale.comanda_id))
    if fmt == "pdf":
        return Response(
            content=rendered,
            media_type="application/pdf",
            headers={"Content-Disposition": f'inline; filename="venda_{sale_id}.pdf"'},
        )
    return PlainTextResponse(rendered)
