# vendafacil/deps.py
from __future__ import annotations

import logging
from typing import Iterable

from fastapi import Depends, HTTPException, Request, status
from sqlalchemy.orm import Session

from vendafacil.core.database import get_db
from vendafacil.models.store_member import StoreMember
from vendafacil.services.staff_auth import STAFF_SESSION_COOKIE, member_from_session_token

logger = logging.getLogger(__name__)


def _normalize_role(role: str | None) -> str:
    return (role or "").strip().lower()


def _log_access_denied(
    *,
    reason: str,
    member: StoreMember,
    store_id: int | None,
    request: Request,
) -> None:
    endpoint = f"{request.method} {request.url.path}"
    logger.warning(
        "Access denied (%s): member_id=%s member_role=%s member_store=%s store_id=%s endpoint=%s",
        reason,
        getattr(member, "id", None),
        getattr(member, "role", None),
        getattr(member, "store_id", None),
        store_id,
        endpoint,
    )


def get_current_member(
    request: Request,
    db: Session = Depends(get_db),
) -> StoreMember:
    token = request.cookies.get(STAFF_SESSION_COOKIE)
    if not token:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Não autenticado")

    member = member_from_session_token(db, token)
    if not member:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Sessão expirada ou inválida")
    return member


def require_store_member(
    store_id: int,
    request: Request,
    member: StoreMember = Depends(get_current_member),
) -> StoreMember:
    """Garante que o membro autenticado pertence à loja da rota."""
    if int(member.store_id) != int(store_id):
        _log_access_denied(reason="store_mismatch", member=member, store_id=store_id, request=request)
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Loja não autorizada")
    return member


def require_role(roles: Iterable[str]):
    allowed = {role.strip().lower() for role in roles}
    if "admin" in allowed or "owner" in allowed:
        allowed.update({"admin", "owner"})

    def _dependency(
        store_id: int,
        request: Request,
        member: StoreMember = Depends(require_store_member),
    ) -> StoreMember:
        if _normalize_role(member.role) not in allowed:
            _log_access_denied(reason="role_denied", member=member, store_id=store_id, request=request)
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Permissão insuficiente")
        return member

    return _dependency
