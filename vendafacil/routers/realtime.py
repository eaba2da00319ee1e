from __future__ import annotations

import asyncio
import logging
from typing import Callable, ContextManager

from fastapi import APIRouter, Depends, Query, WebSocket, WebSocketDisconnect, status
from sqlalchemy.orm import Session

from vendafacil.core.database import get_session_factory
from vendafacil.core.request_context import clear_request_context, set_request_context
from vendafacil.services.realtime import Subscription, parse_tables, realtime_hub
from vendafacil.services.staff_auth import STAFF_SESSION_COOKIE, member_from_session_token

router = APIRouter(tags=["realtime"])
logger = logging.getLogger(__name__)


async def _forward_notifications(websocket: WebSocket, subscription: Subscription) -> None:
    while True:
        payload = await subscription.next()
        await websocket.send_json({"type": "row.changed", **payload})


async def _read_client(websocket: WebSocket) -> None:
    while True:
        message = await websocket.receive_text()
        if message.strip().lower() == "ping":
            await websocket.send_json({"type": "pong"})


@router.websocket("/api/stores/{store_id}/realtime")
async def realtime_feed(
    websocket: WebSocket,
    store_id: int,
    tables: str | None = Query(None),
    open_session: Callable[[], ContextManager[Session]] = Depends(get_session_factory),
):
    # A sessão fecha antes do accept: o feed não prende conexão do pool.
    with open_session() as db:
        member = member_from_session_token(db, websocket.cookies.get(STAFF_SESSION_COOKIE))
        member_id = member.id if member is not None else None
        member_store_id = int(member.store_id) if member is not None else None
    if member_id is None or member_store_id != int(store_id):
        logger.warning("[REALTIME] rejected store_id=%s member=%s", store_id, member_id)
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return
    try:
        table_set = parse_tables(tables)
    except ValueError:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    context_token = set_request_context(store_id=store_id, member_id=member_id, channel="ws")
    await websocket.accept()
    subscription = realtime_hub.subscribe(store_id, table_set)
    try:
        await websocket.send_json({"type": "subscribed", "tables": sorted(table_set)})
    except WebSocketDisconnect:
        realtime_hub.unsubscribe(subscription)
        clear_request_context(context_token)
        return

    sender = asyncio.create_task(_forward_notifications(websocket, subscription))
    receiver = asyncio.create_task(_read_client(websocket))
    try:
        done, pending = await asyncio.wait({sender, receiver}, return_when=asyncio.FIRST_COMPLETED)
        for task in pending:
            task.cancel()
        for task in done:
            exc = task.exception()
            if exc is not None and not isinstance(exc, WebSocketDisconnect):
                logger.error("[REALTIME] feed failed store_id=%s", store_id, exc_info=exc)
    finally:
        sender.cancel()
        receiver.cancel()
        realtime_hub.unsubscribe(subscription)
        clear_request_context(context_token)
