from __future__ import annotations

import logging
from typing import Any

from vendafacil.client.api import VendaFacilClient
from vendafacil.client.board import ProductionBoard
from vendafacil.core.errors import DomainError

logger = logging.getLogger(__name__)


class KitchenDisplay:
    def __init__(self, api: VendaFacilClient, destino: str = "cozinha") -> None:
        self.api = api
        self.board = ProductionBoard(destino)
        self.last_error: str | None = None

    def refresh(self) -> list[dict[str, Any]]:
        self.board.apply_snapshot(self.api.list_production_queue(self.board.destino))
        return self.board.visible_items()

    def on_notification(self, _payload: dict[str, Any] | None = None) -> list[dict[str, Any]]:
        return self.refresh()

    def _advance(self, item_id: int, status: str) -> bool:
        self.board.begin(item_id, status)
        try:
            result = self.api.advance_item_status(item_id, status)
        except DomainError as exc:
            logger.warning("[KDS] advance failed item_id=%s status=%s code=%s", item_id, status, exc.code)
            self.last_error = exc.message
            self.board.fail(item_id)
            self.refresh()
            return False
        self.last_error = None
        self.board.confirm(item_id, result.get("status"))
        return True

    def start(self, item_id: int) -> bool:
        return self._advance(item_id, "in_progress")

    def mark_done(self, item_id: int) -> bool:
        return self._advance(item_id, "done")
