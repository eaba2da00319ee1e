from __future__ import annotations

import logging
import time
from typing import Any, Dict, Optional

from fastapi import Response
from itsdangerous import BadSignature, SignatureExpired, URLSafeTimedSerializer
from sqlalchemy.orm import Session

from vendafacil.core.config import (
    STAFF_SESSION_COOKIE_SAMESITE,
    STAFF_SESSION_COOKIE_SECURE,
    STAFF_SESSION_MAX_AGE_SECONDS,
    STAFF_SESSION_SECRET,
)
from vendafacil.models.store_member import StoreMember
from vendafacil.services.passwords import verify_password

logger = logging.getLogger(__name__)

STAFF_SESSION_COOKIE = "staff_session"
STAFF_SESSION_SALT = "staff-session"


def _serializer() -> URLSafeTimedSerializer:
    if not STAFF_SESSION_SECRET:
        raise RuntimeError("STAFF_SESSION_SECRET não configurado.")
    return URLSafeTimedSerializer(STAFF_SESSION_SECRET, salt=STAFF_SESSION_SALT)


def create_staff_session(member: StoreMember) -> str:
    payload = {
        "member_id": member.id,
        "store_id": member.store_id,
        "role": member.role,
        "exp": int(time.time()) + STAFF_SESSION_MAX_AGE_SECONDS,
    }
    return _serializer().dumps(payload)


def decode_staff_session(token: str | None) -> Optional[Dict[str, Any]]:
    if not token:
        return None
    try:
        payload = _serializer().loads(token, max_age=STAFF_SESSION_MAX_AGE_SECONDS)
    except (BadSignature, SignatureExpired, ValueError):
        return None
    if not isinstance(payload, dict):
        return None
    exp = payload.get("exp")
    if exp is not None:
        try:
            if int(exp) < int(time.time()):
                return None
        except (TypeError, ValueError):
            return None
    return payload


def member_from_session_token(db: Session, token: str | None) -> StoreMember | None:
    payload = decode_staff_session(token)
    if not payload:
        return None
    member = (
        db.query(StoreMember)
        .filter(
            StoreMember.id == payload.get("member_id"),
            StoreMember.store_id == payload.get("store_id"),
        )
        .first()
    )
    if not member or not member.active:
        return None
    return member


def authenticate_member(
    db: Session,
    email: str,
    password: str,
    store_id: int | None = None,
) -> StoreMember | None:
    query = db.query(StoreMember).filter(
        StoreMember.email == (email or "").strip().lower(),
        StoreMember.active.is_(True),
    )
    if store_id is not None:
        query = query.filter(StoreMember.store_id == store_id)
    matches = [member for member in query.all() if verify_password(password, member.password_hash)]
    if len(matches) != 1:
        logger.info("[AUTH] login failed email=%s candidates=%s", email, len(matches))
        return None
    return matches[0]


def set_staff_session_cookie(response: Response, token: str) -> None:
    samesite = STAFF_SESSION_COOKIE_SAMESITE
    # Browsers rejeitam SameSite=None sem Secure.
    if samesite == "none" and not STAFF_SESSION_COOKIE_SECURE:
        samesite = "lax"
    response.set_cookie(
        key=STAFF_SESSION_COOKIE,
        value=token,
        max_age=STAFF_SESSION_MAX_AGE_SECONDS,
        httponly=True,
        samesite=samesite,
        secure=STAFF_SESSION_COOKIE_SECURE,
        path="/",
    )


def clear_staff_session_cookie(response: Response) -> None:
    response.delete_cookie(key=STAFF_SESSION_COOKIE, path="/")
