from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from vendafacil.core.database import get_db
from vendafacil.deps import require_role, require_store_member
from vendafacil.models.product import Product
from vendafacil.models.store_member import StoreMember
from vendafacil.services.audit import log_store_action
from vendafacil.services.catalog import create_product, deactivate_product, list_products, update_product

router = APIRouter(prefix="/api/stores/{store_id}/products", tags=["products"])


class ProductCreate(BaseModel):
    name: str = Field(..., min_length=1)
    category: str | None = None
    barcode: str | None = None
    price_cents: int = Field(..., ge=0)
    cost_cents: int = Field(0, ge=0)
    stock_qty: int = Field(0, ge=0)
    min_stock_qty: int = Field(0, ge=0)
    production_target: str = "nenhum"
    prep_time_minutes: int | None = Field(None, gt=0)


class ProductUpdate(BaseModel):
    name: str | None = Field(None, min_length=1)
    category: str | None = None
    barcode: str | None = None
    price_cents: int | None = Field(None, ge=0)
    cost_cents: int | None = Field(None, ge=0)
    stock_qty: int | None = Field(None, ge=0)
    min_stock_qty: int | None = Field(None, ge=0)
    active: bool | None = None
    production_target: str | None = None
    prep_time_minutes: int | None = Field(None, gt=0)


def _product_to_dict(product: Product) -> dict:
    return {
        "id": product.id,
        "store_id": product.store_id,
        "name": product.name,
        "category": product.category,
        "barcode": product.barcode,
        "price_cents": product.price_cents,
        "cost_cents": product.cost_cents,
        "stock_qty": product.stock_qty,
        "min_stock_qty": product.min_stock_qty,
        "low_stock": product.stock_qty <= product.min_stock_qty,
        "active": product.active,
        "production_target": product.production_target,
        "prep_time_minutes": product.prep_time_minutes,
    }


@router.get("")
def products_list(
    store_id: int,
    include_inactive: bool = Query(False),
    db: Session = Depends(get_db),
    _member: StoreMember = Depends(require_store_member),
):
    return [_product_to_dict(product) for product in list_products(db, store_id, include_inactive=include_inactive)]


@router.post("", status_code=201)
def product_create(
    store_id: int,
    payload: ProductCreate,
    db: Session = Depends(get_db),
    member: StoreMember = Depends(require_role(["admin"])),
):
    product = create_product(db, store_id, payload.model_dump())
    response = _product_to_dict(product)
    log_store_action(
        db,
        store_id=store_id,
        member_id=member.id,
        action="product.create",
        entity_type="product",
        entity_id=response["id"],
    )
    return response


@router.patch("/{product_id}")
def product_update(
    store_id: int,
    product_id: int,
    payload: ProductUpdate,
    db: Session = Depends(get_db),
    member: StoreMember = Depends(require_role(["admin"])),
):
    changes = payload.model_dump(exclude_unset=True)
    product = update_product(db, store_id, product_id, changes)
    response = _product_to_dict(product)
    log_store_action(
        db,
        store_id=store_id,
        member_id=member.id,
        action="product.update",
        entity_type="product",
        entity_id=product_id,
        meta={"fields": sorted(changes)},
    )
    return response


@router.delete("/{product_id}")
def product_deactivate(
    store_id: int,
    product_id: int,
    db: Session = Depends(get_db),
    member: StoreMember = Depends(require_role(["admin"])),
):
    product = deactivate_product(db, store_id, product_id)
    response = _product_to_dict(product)
    log_store_action(
        db,
        store_id=store_id,
        member_id=member.id,
        action="product.deactivate",
        entity_type="product",
        entity_id=product_id,
    )
    return response
