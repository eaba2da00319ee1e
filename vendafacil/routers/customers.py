from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, EmailStr, Field
from sqlalchemy.orm import Session

from vendafacil.core.database import get_db
from vendafacil.deps import require_store_member
from vendafacil.models.store_member import StoreMember
from vendafacil.services.customers import create_customer, customer_to_dict, list_customers

router = APIRouter(prefix="/api/stores/{store_id}/customers", tags=["customers"])


class CustomerCreate(BaseModel):
    name: str = Field(..., min_length=1)
    phone: str | None = None
    email: EmailStr | None = None
    cpf: str | None = None


@router.get("")
def customers_list(
    store_id: int,
    q: str | None = Query(None),
    db: Session = Depends(get_db),
    _member: StoreMember = Depends(require_store_member),
):
    return [customer_to_dict(customer) for customer in list_customers(db, store_id, search=q)]


@router.post("", status_code=201)
def customer_create(
    store_id: int,
    payload: CustomerCreate,
    db: Session = Depends(get_db),
    _member: StoreMember = Depends(require_store_member),
):
    return customer_to_dict(create_customer(db, store_id, payload.model_dump()))
