from __future__ import annotations

import logging
from collections import defaultdict
from typing import Callable, DefaultDict, List, TypedDict

ROW_CHANGED = "row.changed"
ROW_OPS = ("insert", "update", "delete")


class RowChange(TypedDict):
    table: str
    store_id: int
    id: int | None
    op: str


RowHandler = Callable[[RowChange], None]


class EventBus:
    """Barramento síncrono em processo para mudanças de linha já commitadas.

    Cada handler recebe o mesmo ``RowChange``. Falha de um handler é logada
    e não impede a entrega aos demais nem desfaz a transação de origem.
    """

    def __init__(self) -> None:
        self._handlers: DefaultDict[str, List[RowHandler]] = defaultdict(list)
        self._logger = logging.getLogger(__name__)

    def subscribe(self, event_name: str, handler: RowHandler) -> Callable[[], None]:
        handlers = self._handlers[event_name]
        if handler not in handlers:
            handlers.append(handler)

        def _unsubscribe() -> None:
            self.unsubscribe(event_name, handler)

        return _unsubscribe

    def unsubscribe(self, event_name: str, handler: RowHandler) -> None:
        handlers = self._handlers.get(event_name)
        if handlers and handler in handlers:
            handlers.remove(handler)

    def handler_count(self, event_name: str) -> int:
        return len(self._handlers.get(event_name, []))

    def emit(self, event_name: str, change: RowChange) -> int:
        handlers = list(self._handlers.get(event_name, []))
        if not handlers:
            self._logger.debug("[EVENTS] no handlers event=%s table=%s", event_name, change.get("table"))
            return 0
        delivered = 0
        for handler in handlers:
            try:
                handler(change)
            except Exception:
                self._logger.exception(
                    "[EVENTS] handler failed event=%s table=%s store_id=%s id=%s",
                    event_name,
                    change.get("table"),
                    change.get("store_id"),
                    change.get("id"),
                )
                continue
            delivered += 1
        return delivered


event_bus = EventBus()
