from __future__ import annotations

from starlette.middleware.base import BaseHTTPMiddleware

from vendafacil.core.request_context import set_request_context
from vendafacil.services.staff_auth import STAFF_SESSION_COOKIE, decode_staff_session


class StoreContextMiddleware(BaseHTTPMiddleware):
    """Decodifica o cookie de sessão e publica loja/membro no contexto da requisição."""

    async def dispatch(self, request, call_next):
        request.state.staff_session = None

        token = request.cookies.get(STAFF_SESSION_COOKIE)
        if token:
            payload = decode_staff_session(token)
            if payload:
                request.state.staff_session = payload
                set_request_context(
                    store_id=str(payload.get("store_id")),
                    member_id=str(payload.get("member_id")),
                )

        return await call_next(request)
