from __future__ import annotations

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.orm import Session

from vendafacil.core.database import get_db
from vendafacil.deps import require_role, require_store_member
from vendafacil.models.store_member import StoreMember
from vendafacil.services.audit import log_store_action
from vendafacil.services.tables import create_table, delete_table, list_tables, table_to_dict

router = APIRouter(prefix="/api/stores/{store_id}/tables", tags=["tables"])


class TableCreate(BaseModel):
    number: int


@router.get("")
def tables_list(
    store_id: int,
    db: Session = Depends(get_db),
    _member: StoreMember = Depends(require_store_member),
):
    return [table_to_dict(table) for table in list_tables(db, store_id)]


@router.post("", status_code=201)
def table_create(
    store_id: int,
    payload: TableCreate,
    db: Session = Depends(get_db),
    member: StoreMember = Depends(require_role(["admin"])),
):
    response = table_to_dict(create_table(db, store_id, payload.number))
    log_store_action(
        db,
        store_id=store_id,
        member_id=member.id,
        action="table.create",
        entity_type="table",
        entity_id=response["id"],
        meta={"number": response["number"]},
    )
    return response


@router.delete("/{table_id}")
def table_delete(
    store_id: int,
    table_id: int,
    db: Session = Depends(get_db),
    member: StoreMember = Depends(require_role(["admin"])),
):
    delete_table(db, store_id, table_id)
    log_store_action(
        db,
        store_id=store_id,
        member_id=member.id,
        action="table.delete",
        entity_type="table",
        entity_id=table_id,
    )
    return {"ok": True}
