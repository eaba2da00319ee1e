from __future__ import annotations

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from vendafacil.core.database import get_db
from vendafacil.deps import require_store_member
from vendafacil.models.store_member import StoreMember
from vendafacil.services.audit import log_store_action
from vendafacil.services.comandas import (
    add_item_to_comanda,
    advance_item_status,
    close_comanda,
    get_comanda,
    get_comanda_detail,
    get_or_create_open_comanda,
    list_open_comandas,
    order_item_to_dict,
)
from vendafacil.services.receipts import render_receipt
from vendafacil.services.sales import sale_to_dict
from vendafacil.services.stores import get_store, store_settings

router = APIRouter(prefix="/api/stores/{store_id}", tags=["comandas"])


class OpenComandaPayload(BaseModel):
    table_number: int
    customer_name: str | None = None
    mesa: str | None = None


class AddItemPayload(BaseModel):
    product_id: int
    quantity: int


class ItemStatusPayload(BaseModel):
    status: str = Field(..., min_length=1)


class CloseComandaPayload(BaseModel):
    payment_method: str = Field(..., min_length=1)


@router.post("/comandas/open")
def open_comanda(
    store_id: int,
    payload: OpenComandaPayload,
    db: Session = Depends(get_db),
    _member: StoreMember = Depends(require_store_member),
):
    comanda_id = get_or_create_open_comanda(
        db,
        store_id,
        payload.table_number,
        customer_name=payload.customer_name,
        mesa=payload.mesa,
    )
    return {"comanda_id": comanda_id}


@router.get("/comandas")
def list_comandas(
    store_id: int,
    db: Session = Depends(get_db),
    _member: StoreMember = Depends(require_store_member),
):
    return list_open_comandas(db, store_id)


@router.get("/comandas/{comanda_id}")
def comanda_detail(
    store_id: int,
    comanda_id: int,
    db: Session = Depends(get_db),
    _member: StoreMember = Depends(require_store_member),
):
    return get_comanda_detail(db, store_id, comanda_id)


@router.post("/comandas/{comanda_id}/items", status_code=201)
def add_item(
    store_id: int,
    comanda_id: int,
    payload: AddItemPayload,
    db: Session = Depends(get_db),
    _member: StoreMember = Depends(require_store_member),
):
    item = add_item_to_comanda(db, store_id, comanda_id, payload.product_id, payload.quantity)
    return order_item_to_dict(item)


@router.post("/items/{item_id}/status")
def update_item_status(
    store_id: int,
    item_id: int,
    payload: ItemStatusPayload,
    db: Session = Depends(get_db),
    member: StoreMember = Depends(require_store_member),
):
    result = advance_item_status(db, store_id, item_id, payload.status)
    if result.changed and result.status == "canceled":
        log_store_action(
            db,
            store_id=store_id,
            member_id=member.id,
            action="item.cancel",
            entity_type="order_item",
            entity_id=item_id,
        )
    return result.as_dict()


@router.post("/comandas/{comanda_id}/close")
def close(
    store_id: int,
    comanda_id: int,
    payload: CloseComandaPayload,
    db: Session = Depends(get_db),
    member: StoreMember = Depends(require_store_member),
):
    sale = close_comanda(db, store_id, comanda_id, payload.payment_method)
    sale_payload = sale_to_dict(sale)
    store = get_store(db, store_id)
    comanda = get_comanda(db, store_id, comanda_id)
    receipt = render_receipt(
        sale,
        store,
        store_settings(store)["receipt_width"],
        comanda_meta={"numero": comanda.numero, "mesa": comanda.mesa, "cliente_nome": comanda.cliente_nome},
    )
    log_store_action(
        db,
        store_id=store_id,
        member_id=member.id,
        action="comanda.close",
        entity_type="comanda",
        entity_id=comanda_id,
        meta={"sale_id": sale_payload["id"], "total_cents": sale_payload["total_cents"]},
    )
    return {"sale": sale_payload, "receipt": receipt}
