from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Response, status
from pydantic import BaseModel, EmailStr, Field
from sqlalchemy.orm import Session

from vendafacil.core.database import get_db
from vendafacil.deps import get_current_member
from vendafacil.models.store_member import StoreMember
from vendafacil.services.audit import log_store_action
from vendafacil.services.staff_auth import (
    authenticate_member,
    clear_staff_session_cookie,
    create_staff_session,
    set_staff_session_cookie,
)

router = APIRouter(prefix="/api/auth", tags=["auth"])
logger = logging.getLogger(__name__)


class LoginPayload(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=1)
    store_id: int | None = None


class MemberRead(BaseModel):
    id: int
    store_id: int
    email: EmailStr
    name: str
    role: str


def _member_to_dict(member: StoreMember) -> dict:
    return {
        "id": member.id,
        "store_id": member.store_id,
        "email": member.email,
        "name": member.name,
        "role": member.role,
    }


@router.post("/login", response_model=MemberRead)
def login(payload: LoginPayload, response: Response, db: Session = Depends(get_db)):
    member = authenticate_member(db, payload.email, payload.password, store_id=payload.store_id)
    if not member:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="E-mail ou senha inválidos")

    set_staff_session_cookie(response, create_staff_session(member))
    logger.info("[AUTH] login store_id=%s member_id=%s", member.store_id, member.id)
    log_store_action(
        db,
        store_id=member.store_id,
        member_id=member.id,
        action="auth.login",
        entity_type="store_member",
        entity_id=member.id,
    )
    return _member_to_dict(member)


@router.post("/logout")
def logout(response: Response):
    clear_staff_session_cookie(response)
    return {"ok": True}


@router.get("/me", response_model=MemberRead)
def me(member: StoreMember = Depends(get_current_member)):
    return _member_to_dict(member)
