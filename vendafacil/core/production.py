from __future__ import annotations

PRODUCTION_TARGETS = {
    "cozinha",
    "bar",
    "nenhum",
}

_TARGET_ALIASES = {
    "kitchen": "cozinha",
    "none": "nenhum",
    "": "nenhum",
}

STATUS_PENDING = "pending"
STATUS_QUEUED = "queued"
STATUS_IN_PROGRESS = "in_progress"
STATUS_DONE = "done"
STATUS_CANCELED = "canceled"

ITEM_STATUSES = {STATUS_PENDING, STATUS_QUEUED, STATUS_IN_PROGRESS, STATUS_DONE, STATUS_CANCELED}
TERMINAL_STATUSES = {STATUS_DONE, STATUS_CANCELED}
ACTIVE_STATUSES = ITEM_STATUSES - TERMINAL_STATUSES

# Ordem monotônica: um item só avança para um posto de rank maior.
_STATUS_RANK = {
    STATUS_PENDING: 0,
    STATUS_QUEUED: 1,
    STATUS_IN_PROGRESS: 2,
    STATUS_DONE: 3,
}

_STATUS_ALIASES = {
    "pendente": STATUS_PENDING,
    "fila": STATUS_QUEUED,
    "em_preparo": STATUS_IN_PROGRESS,
    "preparing": STATUS_IN_PROGRESS,
    "pronto": STATUS_DONE,
    "ready": STATUS_DONE,
    "cancelado": STATUS_CANCELED,
    "cancelled": STATUS_CANCELED,
}


def normalize_production_target(target: str | None, *, default: str = "nenhum") -> str:
    value = (target if target is not None else default).strip().lower()
    value = _TARGET_ALIASES.get(value, value)
    if value not in PRODUCTION_TARGETS:
        raise ValueError("Destino de preparo inválido")
    return value


def normalize_item_status(status: str | None) -> str:
    value = (status or "").strip().lower()
    value = _STATUS_ALIASES.get(value, value)
    if value not in ITEM_STATUSES:
        raise ValueError("Status de item inválido")
    return value


def allowed_sources(new_status: str) -> set[str]:
    """Estados a partir dos quais ``new_status`` pode ser alcançado."""
    if new_status == STATUS_CANCELED:
        return set(ACTIVE_STATUSES)
    target_rank = _STATUS_RANK.get(new_status)
    if target_rank is None:
        return set()
    return {status for status, rank in _STATUS_RANK.items() if rank < target_rank}


def is_terminal(status: str | None) -> bool:
    return (status or "") in TERMINAL_STATUSES
