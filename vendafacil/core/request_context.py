from __future__ import annotations

from contextvars import ContextVar, Token
from dataclasses import dataclass, replace


@dataclass(frozen=True)
class RequestContext:
    request_id: str | None = None
    store_id: str | None = None
    member_id: str | None = None
    channel: str | None = None


_EMPTY = RequestContext()
_CONTEXT: ContextVar[RequestContext] = ContextVar("vendafacil_request_context", default=_EMPTY)


def current_context() -> RequestContext:
    return _CONTEXT.get()


def set_request_context(
    *,
    request_id: str | None = None,
    store_id: str | int | None = None,
    member_id: str | int | None = None,
    channel: str | None = None,
) -> Token:
    """Atualiza só os campos informados e devolve o token do contexto anterior."""
    changes = {}
    if request_id is not None:
        changes["request_id"] = request_id
    if store_id is not None:
        changes["store_id"] = str(store_id)
    if member_id is not None:
        changes["member_id"] = str(member_id)
    if channel is not None:
        changes["channel"] = channel
    return _CONTEXT.set(replace(_CONTEXT.get(), **changes))


def get_request_id() -> str | None:
    return _CONTEXT.get().request_id


def get_store_id() -> str | None:
    return _CONTEXT.get().store_id


def get_member_id() -> str | None:
    return _CONTEXT.get().member_id


def get_channel() -> str | None:
    return _CONTEXT.get().channel


def clear_request_context(token: Token | None = None) -> None:
    if token is not None:
        _CONTEXT.reset(token)
        return
    _CONTEXT.set(_EMPTY)
