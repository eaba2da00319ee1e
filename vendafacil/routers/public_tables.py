from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from vendafacil.core.database import get_db
from vendafacil.services.catalog import list_products
from vendafacil.services.comandas import order_item_to_dict
from vendafacil.services.stores import get_store
from vendafacil.services.tables import get_or_create_comanda_by_table, get_table_by_token, place_table_order

logger = logging.getLogger(__name__)
PUBLIC_TABLE_PREFIX = "[PUBLIC_TABLE]"

router = APIRouter(prefix="/api/public/stores/{store_id}/tables/{token}", tags=["public-tables"])


class PublicMenuProduct(BaseModel):
    id: int
    name: str
    category: Optional[str]
    price_cents: int


class PublicTableResponse(BaseModel):
    store_id: int
    store_name: str
    table_number: int
    products: list[PublicMenuProduct]


class PublicCustomer(BaseModel):
    name: str = Field(..., min_length=1)
    phone: Optional[str] = None
    cpf: Optional[str] = None


class PublicComandaPayload(BaseModel):
    customer_name: Optional[str] = None


class PublicOrderItem(BaseModel):
    product_id: int
    quantity: int = 1


class PublicOrderPayload(BaseModel):
    items: list[PublicOrderItem] = Field(..., min_length=1)
    customer: Optional[PublicCustomer] = None


@router.get("", response_model=PublicTableResponse)
def public_table_menu(store_id: int, token: str, db: Session = Depends(get_db)):
    table = get_table_by_token(db, store_id, token)
    store = get_store(db, store_id)
    products = [
        PublicMenuProduct(id=product.id, name=product.name, category=product.category, price_cents=product.price_cents)
        for product in list_products(db, store_id)
    ]
    return PublicTableResponse(
        store_id=store.id,
        store_name=store.name,
        table_number=table.number,
        products=products,
    )


@router.post("/comanda")
def public_table_comanda(
    store_id: int,
    token: str,
    payload: PublicComandaPayload | None = None,
    db: Session = Depends(get_db),
):
    customer_name = payload.customer_name if payload else None
    table, comanda_id = get_or_create_comanda_by_table(db, store_id, token, customer_name=customer_name)
    logger.info("%s comanda store_id=%s table=%s comanda_id=%s", PUBLIC_TABLE_PREFIX, store_id, table.number, comanda_id)
    return {"comanda_id": comanda_id, "table_number": table.number}


@router.post("/orders", status_code=201)
def public_table_order(
    store_id: int,
    token: str,
    payload: PublicOrderPayload,
    db: Session = Depends(get_db),
):
    table, comanda_id, items = place_table_order(
        db,
        store_id,
        token,
        [item.model_dump() for item in payload.items],
        customer=payload.customer.model_dump() if payload.customer else None,
    )
    return {
        "comanda_id": comanda_id,
        "table_number": table.number,
        "items": [order_item_to_dict(item) for item in items],
    }
