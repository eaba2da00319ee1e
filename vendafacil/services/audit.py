from __future__ import annotations

import json
import logging
from typing import Any, Mapping, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from vendafacil.models.audit_log import AuditLog

logger = logging.getLogger(__name__)


def log_store_action(
    db: Session,
    *,
    store_id: int,
    member_id: Optional[int],
    action: str,
    entity_type: Optional[str] = None,
    entity_id: Optional[int] = None,
    meta: Optional[Mapping[str, Any]] = None,
) -> AuditLog | None:
    """Grava a ação na trilha de auditoria depois da mutação principal.

    Falhas aqui não desfazem a operação já confirmada: são registradas no log
    e a sessão é limpa com rollback.
    """
    entry = AuditLog(
        store_id=store_id,
        member_id=member_id,
        action=action,
        entity_type=entity_type,
        entity_id=entity_id,
        meta_json=json.dumps(meta, ensure_ascii=False, default=str) if meta else None,
    )
    try:
        db.add(entry)
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("[AUDIT] failed action=%s store_id=%s", action, store_id)
        return None
    return entry
