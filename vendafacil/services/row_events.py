from __future__ import annotations

from typing import Iterable

from vendafacil.services.event_bus import ROW_CHANGED, ROW_OPS, RowChange, event_bus


def build_row_payload(table: str, store_id: int, row_id: int | None, op: str) -> RowChange:
    if op not in ROW_OPS:
        raise ValueError(f"Operação de linha inválida: {op}")
    return RowChange(table=table, store_id=int(store_id), id=row_id, op=op)


def emit_row_changed(table: str, store_id: int, row_id: int | None, op: str = "update") -> int:
    return event_bus.emit(ROW_CHANGED, build_row_payload(table, store_id, row_id, op))


def emit_rows_changed(table: str, store_id: int, row_ids: Iterable[int], op: str = "update") -> None:
    for row_id in row_ids:
        emit_row_changed(table, store_id, row_id, op)
