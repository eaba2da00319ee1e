from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from vendafacil.core.database import get_db
from vendafacil.deps import require_role, require_store_member
from vendafacil.models.store_member import StoreMember
from vendafacil.services.access import get_store_access_status, start_trial
from vendafacil.services.audit import log_store_action

router = APIRouter(prefix="/api/stores/{store_id}/access", tags=["access"])


@router.get("")
def access_status(
    store_id: int,
    db: Session = Depends(get_db),
    _member: StoreMember = Depends(require_store_member),
):
    return get_store_access_status(db, store_id)


@router.post("/trial")
def access_start_trial(
    store_id: int,
    db: Session = Depends(get_db),
    member: StoreMember = Depends(require_role(["owner"])),
):
    status = start_trial(db, store_id)
    log_store_action(
        db,
        store_id=store_id,
        member_id=member.id,
        action="access.trial",
        entity_type="store",
        entity_id=store_id,
    )
    return status
