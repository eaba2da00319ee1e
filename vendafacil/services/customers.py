from __future__ import annotations

from typing import Any, Mapping

from sqlalchemy.orm import Session

from vendafacil.core.errors import ValidationError
from vendafacil.models.customer import Customer
from vendafacil.services.row_events import emit_row_changed


def list_customers(db: Session, store_id: int, search: str | None = None, limit: int = 100) -> list[Customer]:
    query = db.query(Customer).filter(Customer.store_id == store_id)
    if search:
        pattern = f"%{search.strip()}%"
        query = query.filter(Customer.name.ilike(pattern) | Customer.phone.ilike(pattern))
    return query.order_by(Customer.name.asc()).limit(limit).all()


def create_customer(db: Session, store_id: int, data: Mapping[str, Any]) -> Customer:
    name = str(data.get("name") or "").strip()
    if not name:
        raise ValidationError("Nome do cliente é obrigatório")
    customer = Customer(
        store_id=store_id,
        name=name,
        phone=(data.get("phone") or None),
        email=(data.get("email") or None),
        cpf=(data.get("cpf") or None),
    )
    try:
        db.add(customer)
        db.commit()
        db.refresh(customer)
    except Exception:
        db.rollback()
        raise
    emit_row_changed("customers", store_id, customer.id, "insert")
    return customer


def customer_to_dict(customer: Customer) -> dict[str, Any]:
    return {
        "id": customer.id,
        "store_id": customer.store_id,
        "name": customer.name,
        "phone": customer.phone,
        "email": customer.email,
        "cpf": customer.cpf,
    }
