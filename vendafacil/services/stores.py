from __future__ import annotations

from typing import Any, Mapping

from sqlalchemy.orm import Session

from vendafacil.core.errors import NotFoundError, ValidationError
from vendafacil.models.store import Store

RECEIPT_WIDTHS = {"58mm", "80mm"}

DEFAULT_SETTINGS: dict[str, Any] = {
    "block_sale_without_stock": True,
    "allow_sale_without_open_cash_register": True,
    "receipt_width": "80mm",
}

_CAMEL_KEYS = {
    "blockSaleWithoutStock": "block_sale_without_stock",
    "allowSaleWithoutOpenCashRegister": "allow_sale_without_open_cash_register",
    "receiptWidth": "receipt_width",
}


def _as_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in {"1", "true", "yes", "on", "sim"}
    return bool(value)


def normalize_settings(raw: Mapping[str, Any] | None) -> dict[str, Any]:
    settings = dict(DEFAULT_SETTINGS)
    for key, value in (raw or {}).items():
        key = _CAMEL_KEYS.get(key, key)
        if key not in DEFAULT_SETTINGS or value is None:
            continue
        if key == "receipt_width":
            width = str(value).strip().lower()
            if width not in RECEIPT_WIDTHS:
                raise ValidationError("Largura de cupom inválida")
            settings[key] = width
        else:
            settings[key] = _as_bool(value)
    return settings


def store_settings(store: Store) -> dict[str, Any]:
    return normalize_settings(store.settings if isinstance(store.settings, dict) else None)


def get_store(db: Session, store_id: int | None) -> Store:
    if not store_id:
        raise ValidationError("Loja não informada")
    store = db.query(Store).filter(Store.id == store_id).first()
    if not store:
        raise NotFoundError("Loja não encontrada")
    return store


def update_store_settings(db: Session, store_id: int, changes: Mapping[str, Any]) -> dict[str, Any]:
    store = get_store(db, store_id)
    merged = {**store_settings(store), **dict(changes)}
    store.settings = normalize_settings(merged)
    try:
        db.commit()
    except Exception:
        db.rollback()
        raise
    return store_settings(store)
