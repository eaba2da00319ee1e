from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Iterable

from vendafacil.core.production import TERMINAL_STATUSES


def _parse_iso(value: str | None) -> datetime | None:
    if not value:
        return None
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


class ProductionBoard:
    """Fila de preparo vista por uma estação.

    O snapshot do servidor é a fonte da verdade; por cima dele fica a camada
    de intenções pendentes (ações otimistas ainda não confirmadas). Itens
    finalizados com confirmação continuam ocultos enquanto o servidor ainda
    os listar, para a tela não piscar por atraso de propagação.
    """

    def __init__(self, destino: str) -> None:
        self.destino = destino
        self._snapshot: list[dict[str, Any]] = []
        self._pending: dict[int, str] = {}
        self._settled: set[int] = set()

    def apply_snapshot(self, items: Iterable[dict[str, Any]]) -> None:
        self._snapshot = [dict(item) for item in items]
        listed = {item["id"] for item in self._snapshot}
        self._settled &= listed

    def begin(self, item_id: int, status: str) -> None:
        self._pending[item_id] = status

    def confirm(self, item_id: int, status: str | None = None) -> None:
        intended = self._pending.pop(item_id, None)
        final = status or intended
        if final in TERMINAL_STATUSES:
            self._settled.add(item_id)

    def fail(self, item_id: int) -> None:
        self._pending.pop(item_id, None)

    def is_pending(self, item_id: int) -> bool:
        return item_id in self._pending

    def is_suppressed(self, item_id: int) -> bool:
        return item_id in self._settled

    def visible_items(self) -> list[dict[str, Any]]:
        visible = []
        for item in self._snapshot:
            item_id = item["id"]
            if item_id in self._settled:
                continue
            intent = self._pending.get(item_id)
            if intent in TERMINAL_STATUSES:
                continue
            if intent:
                item = {**item, "status": intent}
            visible.append(item)
        return visible

    def elapsed_seconds(self, item: dict[str, Any], now: datetime | None = None) -> int:
        created_at = _parse_iso(item.get("created_at"))
        if created_at is None:
            return int(item.get("elapsed_seconds") or 0)
        now = now or datetime.now(timezone.utc)
        return max(0, int((now - created_at).total_seconds()))

    def is_late(self, item: dict[str, Any], now: datetime | None = None) -> bool:
        target_minutes = int(item.get("target_prep_minutes") or 0)
        if target_minutes <= 0:
            return bool(item.get("is_late"))
        return self.elapsed_seconds(item, now) > target_minutes * 60

    def late_items(self, now: datetime | None = None) -> list[dict[str, Any]]:
        return [item for item in self.visible_items() if self.is_late(item, now)]
