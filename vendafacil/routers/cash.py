from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from vendafacil.core.database import get_db
from vendafacil.deps import require_store_member
from vendafacil.models.store_member import StoreMember
from vendafacil.services.audit import log_store_action
from vendafacil.services.cash import (
    close_session,
    get_current_session,
    list_sessions,
    open_session,
    session_to_dict,
)

router = APIRouter(prefix="/api/stores/{store_id}/cash-sessions", tags=["cash"])


class OpenSessionPayload(BaseModel):
    opening_amount_cents: int = Field(..., ge=0)


class CloseSessionPayload(BaseModel):
    closing_amount_cents: int = Field(..., ge=0)


@router.post("", status_code=201)
def open_cash_session(
    store_id: int,
    payload: OpenSessionPayload,
    db: Session = Depends(get_db),
    member: StoreMember = Depends(require_store_member),
):
    session = open_session(db, store_id, payload.opening_amount_cents)
    response = session_to_dict(db, session)
    log_store_action(
        db,
        store_id=store_id,
        member_id=member.id,
        action="cash.open",
        entity_type="cash_session",
        entity_id=response["id"],
        meta={"opening_amount_cents": payload.opening_amount_cents},
    )
    return response


@router.post("/{session_id}/close")
def close_cash_session(
    store_id: int,
    session_id: int,
    payload: CloseSessionPayload,
    db: Session = Depends(get_db),
    member: StoreMember = Depends(require_store_member),
):
    session = close_session(db, store_id, session_id, payload.closing_amount_cents)
    response = session_to_dict(db, session)
    log_store_action(
        db,
        store_id=store_id,
        member_id=member.id,
        action="cash.close",
        entity_type="cash_session",
        entity_id=session_id,
        meta={
            "closing_amount_cents": payload.closing_amount_cents,
            "expected_cash_cents": response["summary"]["expected_cash_cents"],
        },
    )
    return response


@router.get("/current")
def current_cash_session(
    store_id: int,
    db: Session = Depends(get_db),
    _member: StoreMember = Depends(require_store_member),
):
    session = get_current_session(db, store_id)
    return {"session": session_to_dict(db, session) if session else None}


@router.get("")
def cash_sessions(
    store_id: int,
    limit: int = Query(30, ge=1, le=200),
    db: Session = Depends(get_db),
    _member: StoreMember = Depends(require_store_member),
):
    return [session_to_dict(db, session) for session in list_sessions(db, store_id, limit=limit)]
