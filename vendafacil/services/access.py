from __future__ import annotations

import logging
from datetime import datetime, timedelta

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from vendafacil.core.config import TRIAL_DAYS
from vendafacil.core.errors import AccessDeniedError, StateError, ValidationError
from vendafacil.models.store import Store
from vendafacil.models.store_access import StoreAccess
from vendafacil.services.clock import as_utc, utcnow
from vendafacil.services.stores import get_store

logger = logging.getLogger(__name__)

# plano_tipo -> (rótulo, dias; None = sem vencimento)
PLANS: dict[str, tuple[str, int | None]] = {
    "free": ("Avaliação", TRIAL_DAYS),
    "weekly": ("Semanal", 7),
    "monthly": ("Mensal", 30),
    "yearly": ("Anual", 365),
    "vitalicio": ("Vitalício", None),
}


def plan_label(plano_tipo: str | None) -> str:
    if not plano_tipo:
        return "-"
    plan = PLANS.get(plano_tipo)
    if plan:
        return plan[0]
    return plano_tipo[:1].upper() + plano_tipo[1:]


def _get_access(db: Session, store_id: int) -> StoreAccess | None:
    return db.query(StoreAccess).filter(StoreAccess.store_id == store_id).first()


def get_store_access_status(db: Session, store_id: int, *, now: datetime | None = None) -> dict:
    now = now or utcnow()
    access = _get_access(db, store_id)
    if access is None:
        return {
            "acesso_liberado": False,
            "data_fim_acesso": None,
            "plano_nome": None,
            "plano_tipo": None,
            "mensagem": "Nenhum plano ativo. Inicie a avaliação gratuita ou assine um plano.",
        }

    ends_at = as_utc(access.data_fim_acesso)
    if access.status_acesso != "ativo":
        liberado = False
        mensagem = "Acesso bloqueado. Entre em contato com o suporte."
    elif ends_at is not None and ends_at <= now:
        liberado = False
        mensagem = "Seu plano expirou. Renove para continuar vendendo."
    else:
        liberado = True
        mensagem = "Acesso liberado."

    return {
        "acesso_liberado": liberado,
        "data_fim_acesso": ends_at.isoformat() if ends_at else None,
        "plano_nome": access.plano_nome,
        "plano_tipo": access.plano_tipo,
        "mensagem": mensagem,
    }


def require_sale_access(db: Session, store_id: int) -> None:
    status = get_store_access_status(db, store_id)
    if not status["acesso_liberado"]:
        logger.info("[ACCESS] denied store_id=%s plano=%s", store_id, status["plano_tipo"])
        raise AccessDeniedError(status["mensagem"])


def _apply_plan(
    db: Session,
    store_id: int,
    plano_tipo: str,
    *,
    plano_nome: str | None = None,
    now: datetime | None = None,
) -> StoreAccess:
    if plano_tipo not in PLANS:
        raise ValidationError("Plano inválido")
    label, days = PLANS[plano_tipo]
    now = now or utcnow()
    access = _get_access(db, store_id)
    if access is None:
        access = StoreAccess(store_id=store_id)
        db.add(access)
    access.plano_tipo = plano_tipo
    access.plano_nome = plano_nome or label
    access.data_inicio_acesso = now
    access.data_fim_acesso = now + timedelta(days=days) if days is not None else None
    access.status_acesso = "ativo"
    return access


def grant_plan(
    db: Session,
    store_id: int,
    plano_tipo: str,
    *,
    plano_nome: str | None = None,
    now: datetime | None = None,
) -> dict:
    get_store(db, store_id)
    try:
        _apply_plan(db, store_id, plano_tipo, plano_nome=plano_nome, now=now)
        db.commit()
    except Exception:
        db.rollback()
        raise
    logger.info("[ACCESS] plan granted store_id=%s plano=%s", store_id, plano_tipo)
    return get_store_access_status(db, store_id, now=now)


def start_trial(db: Session, store_id: int, *, now: datetime | None = None) -> dict:
    store: Store = get_store(db, store_id)
    if store.trial_used:
        raise StateError("O período de avaliação já foi utilizado por esta loja.")
    try:
        store.trial_used = True
        _apply_plan(db, store_id, "free", now=now)
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise StateError("O período de avaliação já foi utilizado por esta loja.") from exc
    except Exception:
        db.rollback()
        raise
    logger.info("[ACCESS] trial started store_id=%s", store_id)
    return get_store_access_status(db, store_id, now=now)


def block_access(db: Session, store_id: int) -> dict:
    access = _get_access(db, store_id)
    if access is None:
        raise StateError("Loja sem plano para bloquear")
    try:
        access.status_acesso = "bloqueado"
        db.commit()
    except Exception:
        db.rollback()
        raise
    return get_store_access_status(db, store_id)
