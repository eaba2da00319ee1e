from __future__ import annotations

import asyncio
import logging
import threading
from typing import Iterable

from vendafacil.core.config import REALTIME_QUEUE_SIZE
from vendafacil.services.event_bus import ROW_CHANGED, EventBus, RowChange

logger = logging.getLogger(__name__)

DEFAULT_TABLES = frozenset({"order_items", "comandas"})
KNOWN_TABLES = frozenset({"order_items", "comandas", "sales", "sale_items", "products", "cash_sessions", "customers", "store_tables"})


def parse_tables(raw: str | None) -> frozenset[str]:
    if not raw:
        return DEFAULT_TABLES
    tables = {part.strip().lower() for part in raw.split(",") if part.strip()}
    unknown = tables - KNOWN_TABLES
    if unknown:
        raise ValueError(f"Tabelas desconhecidas: {', '.join(sorted(unknown))}")
    return frozenset(tables) or DEFAULT_TABLES


class Subscription:
    """Fila de notificações de um assinante, presa ao loop que a criou."""

    def __init__(
        self,
        store_id: int,
        tables: Iterable[str],
        loop: asyncio.AbstractEventLoop,
        maxsize: int,
    ) -> None:
        self.store_id = store_id
        self.tables = frozenset(tables)
        self.loop = loop
        self.queue: asyncio.Queue[RowChange] = asyncio.Queue(maxsize=maxsize)
        self.dropped = 0

    def matches(self, payload: RowChange) -> bool:
        return payload.get("store_id") == self.store_id and payload.get("table") in self.tables

    def offer(self, payload: RowChange) -> None:
        self.loop.call_soon_threadsafe(self._put, payload)

    def _put(self, payload: RowChange) -> None:
        try:
            self.queue.put_nowait(payload)
        except asyncio.QueueFull:
            # Uma notificação pendente já dispara o refetch completo.
            self.dropped += 1
            logger.debug(
                "[REALTIME] queue full store_id=%s table=%s dropped=%s",
                self.store_id,
                payload.get("table"),
                self.dropped,
            )

    async def next(self) -> RowChange:
        return await self.queue.get()


class RealtimeHub:
    def __init__(self, queue_size: int = REALTIME_QUEUE_SIZE) -> None:
        self._queue_size = max(1, int(queue_size))
        self._subscriptions: set[Subscription] = set()
        self._lock = threading.Lock()

    def install(self, bus: EventBus) -> None:
        bus.subscribe(ROW_CHANGED, self.publish)

    def subscribe(
        self,
        store_id: int,
        tables: Iterable[str] = DEFAULT_TABLES,
        loop: asyncio.AbstractEventLoop | None = None,
    ) -> Subscription:
        subscription = Subscription(
            store_id=store_id,
            tables=tables,
            loop=loop or asyncio.get_running_loop(),
            maxsize=self._queue_size,
        )
        with self._lock:
            self._subscriptions.add(subscription)
        logger.info(
            "[REALTIME] subscribed store_id=%s tables=%s",
            store_id,
            ",".join(sorted(subscription.tables)),
        )
        return subscription

    def unsubscribe(self, subscription: Subscription) -> None:
        with self._lock:
            self._subscriptions.discard(subscription)
        logger.info("[REALTIME] unsubscribed store_id=%s", subscription.store_id)

    def subscriber_count(self, store_id: int | None = None) -> int:
        with self._lock:
            if store_id is None:
                return len(self._subscriptions)
            return sum(1 for sub in self._subscriptions if sub.store_id == store_id)

    def publish(self, payload: RowChange) -> None:
        with self._lock:
            targets = [sub for sub in self._subscriptions if sub.matches(payload)]
        for subscription in targets:
            try:
                subscription.offer(payload)
            except RuntimeError:
                # Loop do assinante já foi encerrado
                logger.warning("[REALTIME] dropping closed subscriber store_id=%s", subscription.store_id)
                self.unsubscribe(subscription)


realtime_hub = RealtimeHub()
