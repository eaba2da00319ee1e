from __future__ import annotations

import logging
from typing import Any, Iterable, Mapping

import httpx

from vendafacil.core.errors import (
    ERRORS_BY_CODE,
    AccessDeniedError,
    ConflictError,
    DomainError,
    NotFoundError,
    TransientError,
    ValidationError,
)

logger = logging.getLogger(__name__)

_ERRORS_BY_STATUS: dict[int, type[DomainError]] = {
    400: ValidationError,
    401: AccessDeniedError,
    403: AccessDeniedError,
    404: NotFoundError,
    409: ConflictError,
    422: ValidationError,
}


def error_from_response(response: httpx.Response) -> DomainError:
    try:
        data = response.json()
    except ValueError:
        data = {}
    if not isinstance(data, dict):
        data = {}

    detail = data.get("detail")
    if not isinstance(detail, str):
        # Erros de validação do FastAPI chegam como lista
        detail = "Dados inválidos." if response.status_code == 422 else None

    error_cls = ERRORS_BY_CODE.get(str(data.get("code") or ""))
    if error_cls is None:
        if response.status_code >= 500:
            error_cls = TransientError
        else:
            error_cls = _ERRORS_BY_STATUS.get(response.status_code, DomainError)
    return error_cls(detail)


class VendaFacilClient:
    """Cliente HTTP da API de uma loja.

    Aceita qualquer ``httpx.Client`` (inclusive o ``TestClient`` do FastAPI);
    falhas de rede viram ``TransientError`` e respostas de erro voltam como a
    exceção de domínio correspondente.
    """

    def __init__(self, http: httpx.Client, store_id: int) -> None:
        self._http = http
        self.store_id = store_id

    @classmethod
    def connect(cls, base_url: str, store_id: int, timeout: float = 10.0) -> "VendaFacilClient":
        return cls(httpx.Client(base_url=base_url, timeout=timeout), store_id)

    def close(self) -> None:
        self._http.close()

    def _request(self, method: str, path: str, *, scoped: bool = True, **kwargs: Any) -> httpx.Response:
        url = f"/api/stores/{self.store_id}{path}" if scoped else path
        try:
            response = self._http.request(method, url, **kwargs)
        except httpx.TransportError as exc:
            logger.warning("[CLIENT] transport error method=%s url=%s", method, url)
            raise TransientError("Falha de comunicação com o servidor. Tente novamente.") from exc
        if response.status_code >= 400:
            raise error_from_response(response)
        return response

    def _json(self, method: str, path: str, **kwargs: Any) -> Any:
        return self._request(method, path, **kwargs).json()

    # sessão

    def login(self, email: str, password: str) -> dict:
        return self._request(
            "POST",
            "/api/auth/login",
            scoped=False,
            json={"email": email, "password": password, "store_id": self.store_id},
        ).json()

    # comandas

    def list_open_comandas(self) -> list[dict]:
        return self._json("GET", "/comandas")

    def get_comanda(self, comanda_id: int) -> dict:
        return self._json("GET", f"/comandas/{comanda_id}")

    def get_or_create_open_comanda(self, table_number: int, customer_name: str | None = None) -> int:
        body = {"table_number": table_number, "customer_name": customer_name}
        try:
            return int(self._json("POST", "/comandas/open", json=body)["comanda_id"])
        except ConflictError:
            # Outra estação abriu a mesma mesa; relê a comanda vencedora.
            logger.info("[CLIENT] open conflict table=%s; re-reading", table_number)
            for comanda in self.list_open_comandas():
                if int(comanda["numero"]) == int(table_number):
                    return int(comanda["id"])
            raise

    def add_item_to_comanda(self, comanda_id: int, product_id: int, quantity: int) -> dict:
        return self._json(
            "POST",
            f"/comandas/{comanda_id}/items",
            json={"product_id": product_id, "quantity": quantity},
        )

    def advance_item_status(self, item_id: int, new_status: str) -> dict:
        return self._json("POST", f"/items/{item_id}/status", json={"status": new_status})

    def mark_item_done(self, item_id: int) -> dict:
        return self.advance_item_status(item_id, "done")

    def close_comanda(self, comanda_id: int, payment_method: str) -> dict:
        return self._json("POST", f"/comandas/{comanda_id}/close", json={"payment_method": payment_method})

    # vendas

    def process_direct_sale(
        self,
        cart: Iterable[Mapping[str, Any]],
        payment_method: str,
        customer_id: int | None = None,
    ) -> dict:
        body = {
            "items": [dict(entry) for entry in cart],
            "payment_method": payment_method,
            "customer_id": customer_id,
        }
        return self._json("POST", "/sales", json=body)

    def get_sale(self, sale_id: int) -> dict:
        return self._json("GET", f"/sales/{sale_id}")

    def get_receipt(self, sale_id: int, format: str | None = None) -> str | bytes:
        params = {"format": format} if format else None
        response = self._request("GET", f"/sales/{sale_id}/receipt", params=params)
        if response.headers.get("content-type", "").startswith("application/pdf"):
            return response.content
        return response.text

    # produção

    def list_production_queue(self, destino: str) -> list[dict]:
        return self._json("GET", f"/production/{destino}")

    # caixa

    def open_cash_session(self, opening_amount_cents: int) -> dict:
        return self._json("POST", "/cash-sessions", json={"opening_amount_cents": opening_amount_cents})

    def close_cash_session(self, session_id: int, closing_amount_cents: int) -> dict:
        return self._json(
            "POST",
            f"/cash-sessions/{session_id}/close",
            json={"closing_amount_cents": closing_amount_cents},
        )

    def current_cash_session(self) -> dict | None:
        return self._json("GET", "/cash-sessions/current")["session"]

    # acesso

    def get_store_access_status(self) -> dict:
        return self._json("GET", "/access")
