from __future__ import annotations

import logging
from typing import Any

from sqlalchemy import func, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from vendafacil.core.errors import NotFoundError, StateError, ValidationError
from vendafacil.models.cash_session import CashSession
from vendafacil.models.sale import Sale
from vendafacil.services.catalog import whole_number
from vendafacil.services.clock import as_utc, utcnow
from vendafacil.services.row_events import emit_row_changed

logger = logging.getLogger(__name__)

PAYMENT_METHODS = ("cash", "pix", "card")


def _validate_amount(value: Any, label: str) -> int:
    amount = whole_number(value, f"{label} inválido")
    if amount < 0:
        raise ValidationError(f"{label} não pode ser negativo")
    return amount


def get_current_session(db: Session, store_id: int) -> CashSession | None:
    return (
        db.query(CashSession)
        .filter(CashSession.store_id == store_id, CashSession.closed_at.is_(None))
        .order_by(CashSession.id.desc())
        .first()
    )


def list_sessions(db: Session, store_id: int, limit: int = 30) -> list[CashSession]:
    return (
        db.query(CashSession)
        .filter(CashSession.store_id == store_id)
        .order_by(CashSession.opened_at.desc(), CashSession.id.desc())
        .limit(limit)
        .all()
    )


def get_session(db: Session, store_id: int, session_id: int) -> CashSession:
    session = (
        db.query(CashSession)
        .filter(CashSession.store_id == store_id, CashSession.id == session_id)
        .first()
    )
    if not session:
        raise NotFoundError("Sessão de caixa não encontrada")
    return session


def open_session(db: Session, store_id: int, opening_amount_cents: Any) -> CashSession:
    amount = _validate_amount(opening_amount_cents, "Valor de abertura")
    if get_current_session(db, store_id):
        raise StateError("Já existe um caixa aberto para esta loja")

    session = CashSession(store_id=store_id, opening_amount_cents=amount, opened_at=utcnow())
    try:
        db.add(session)
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise StateError("Já existe um caixa aberto para esta loja") from exc
    except Exception:
        db.rollback()
        raise
    db.refresh(session)
    logger.info("[CASH] session opened store_id=%s session_id=%s amount=%s", store_id, session.id, amount)
    emit_row_changed("cash_sessions", store_id, session.id, "insert")
    return session


def close_session(db: Session, store_id: int, session_id: int, closing_amount_cents: Any) -> CashSession:
    amount = _validate_amount(closing_amount_cents, "Valor de fechamento")
    try:
        result = db.execute(
            update(CashSession)
            .where(
                CashSession.id == session_id,
                CashSession.store_id == store_id,
                CashSession.closed_at.is_(None),
            )
            .values(closed_at=utcnow(), closing_amount_cents=amount)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            get_session(db, store_id, session_id)
            raise StateError("Sessão de caixa já está fechada")
        db.commit()
    except Exception:
        db.rollback()
        raise
    session = get_session(db, store_id, session_id)
    db.refresh(session)
    logger.info("[CASH] session closed store_id=%s session_id=%s amount=%s", store_id, session_id, amount)
    emit_row_changed("cash_sessions", store_id, session_id)
    return session


def session_summary(db: Session, session: CashSession) -> dict[str, Any]:
    rows = (
        db.query(
            Sale.payment_method,
            func.coalesce(func.sum(Sale.total_cents), 0),
            func.count(Sale.id),
        )
        .filter(Sale.store_id == session.store_id, Sale.cash_session_id == session.id)
        .group_by(Sale.payment_method)
        .all()
    )
    totals = {method: 0 for method in PAYMENT_METHODS}
    sales_count = 0
    for method, total, count in rows:
        totals[method] = totals.get(method, 0) + int(total or 0)
        sales_count += int(count or 0)

    expected = int(session.opening_amount_cents or 0) + totals["cash"]
    difference = None
    if session.closing_amount_cents is not None:
        difference = int(session.closing_amount_cents) - expected

    return {
        "expected_cash_cents": expected,
        "totals_by_method": totals,
        "sales_total_cents": sum(totals.values()),
        "sales_count": sales_count,
        "difference_cents": difference,
    }


def session_to_dict(db: Session, session: CashSession) -> dict[str, Any]:
    opened_at = as_utc(session.opened_at)
    closed_at = as_utc(session.closed_at)
    return {
        "id": session.id,
        "store_id": session.store_id,
        "opening_amount_cents": session.opening_amount_cents,
        "closing_amount_cents": session.closing_amount_cents,
        "opened_at": opened_at.isoformat() if opened_at else None,
        "closed_at": closed_at.isoformat() if closed_at else None,
        "summary": session_summary(db, session),
    }
