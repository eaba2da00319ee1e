from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class DomainError(Exception):
    status_code = 400
    code = "domain_error"
    default_message = "Não foi possível concluir a operação."

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(DomainError):
    status_code = 400
    code = "validation_error"
    default_message = "Dados inválidos."


class NotFoundError(DomainError):
    status_code = 404
    code = "not_found"
    default_message = "Registro não encontrado."


class StateError(DomainError):
    status_code = 409
    code = "state_error"
    default_message = "Operação inválida para o estado atual."


class ConflictError(DomainError):
    status_code = 409
    code = "conflict"
    default_message = "Conflito de concorrência. Tente novamente."


class InsufficientStockError(ConflictError):
    code = "insufficient_stock"
    default_message = "Estoque insuficiente."


class PaymentError(DomainError):
    status_code = 409
    code = "payment_error"
    default_message = "Falha ao processar a venda."


class AccessDeniedError(DomainError):
    status_code = 403
    code = "access_denied"
    default_message = "Acesso da loja expirado ou bloqueado."


class TransientError(DomainError):
    status_code = 503
    code = "transient_error"
    default_message = "Falha de comunicação. Tente novamente."


ERRORS_BY_CODE: dict[str, type[DomainError]] = {
    cls.code: cls
    for cls in (
        ValidationError,
        NotFoundError,
        StateError,
        ConflictError,
        InsufficientStockError,
        PaymentError,
        AccessDeniedError,
        TransientError,
    )
}


async def _domain_error_handler(request: Request, exc: DomainError) -> JSONResponse:
    logger.info(
        "domain error code=%s status=%s path=%s detail=%s",
        exc.code,
        exc.status_code,
        request.url.path,
        exc.message,
    )
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.message, "code": exc.code},
    )


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(DomainError, _domain_error_handler)
