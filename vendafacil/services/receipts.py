from __future__ import annotations

from io import BytesIO
from typing import Any, Mapping

from reportlab.lib.units import mm
from reportlab.pdfgen import canvas

from vendafacil.services.clock import as_utc

RECEIPT_COLUMNS = {
    "58mm": 32,
    "80mm": 48,
}
RECEIPT_FORMATS = set(RECEIPT_COLUMNS) | {"pdf"}

PAYMENT_LABELS = {
    "cash": "Dinheiro",
    "pix": "PIX",
    "card": "Cartão",
}


def format_price_cents(value: int | None) -> str:
    if value is None:
        return ""
    price = value / 100
    return f"R$ {price:,.2f}".replace(",", "X").replace(".", ",").replace("X", ".")


def _field(obj: Any, name: str, default: Any = None) -> Any:
    if isinstance(obj, Mapping):
        return obj.get(name, default)
    return getattr(obj, name, default)


def _fit(text: str, width: int) -> str:
    return text if len(text) <= width else text[: width - 1] + "."


def _pair(left: str, right: str, width: int) -> str:
    left = _fit(left, max(1, width - len(right) - 1))
    return left + " " * (width - len(left) - len(right)) + right


def receipt_lines(sale: Any, store: Any, width: int, comanda_meta: Mapping[str, Any] | None = None) -> list[str]:
    rule = "-" * width
    lines = [
        _fit(str(_field(store, "name", "") or ""), width).center(width).rstrip(),
    ]
    legal_name = _field(store, "legal_name")
    if legal_name:
        lines.append(_fit(str(legal_name), width).center(width).rstrip())
    cnpj = _field(store, "cnpj")
    if cnpj:
        lines.append(f"CNPJ: {cnpj}".center(width).rstrip())
    address = ", ".join(
        str(part) for part in (_field(store, "address"), _field(store, "city"), _field(store, "state")) if part
    )
    if address:
        lines.append(_fit(address, width))
    phone = _field(store, "phone")
    if phone:
        lines.append(f"Tel: {phone}")

    lines.append(rule)
    lines.append(f"VENDA #{_field(sale, 'id')}")
    created_at = as_utc(_field(sale, "created_at"))
    if created_at:
        lines.append(f"Data: {created_at.strftime('%d/%m/%Y %H:%M')} UTC")
    if comanda_meta:
        numero = comanda_meta.get("numero")
        mesa = comanda_meta.get("mesa")
        if numero is not None:
            label = f"Comanda: {numero}"
            if mesa and str(mesa) != str(numero):
                label += f" ({mesa})"
            lines.append(_fit(label, width))
        if comanda_meta.get("cliente_nome"):
            lines.append(_fit(f"Cliente: {comanda_meta['cliente_nome']}", width))
    lines.append(rule)

    for item in _field(sale, "items", []) or []:
        if _field(item, "status") == "canceled":
            continue
        name = str(_field(item, "product_name_snapshot", "") or "")
        quantity = int(_field(item, "quantity", 0) or 0)
        unit = int(_field(item, "unit_price_cents", 0) or 0)
        subtotal = int(_field(item, "subtotal_cents", 0) or 0)
        lines.append(_fit(name, width))
        lines.append(_pair(f"  {quantity} x {format_price_cents(unit)}", format_price_cents(subtotal), width))

    lines.append(rule)
    lines.append(_pair("TOTAL", format_price_cents(int(_field(sale, "total_cents", 0) or 0)), width))
    method = str(_field(sale, "payment_method", "") or "")
    lines.append(_pair("Pagamento", PAYMENT_LABELS.get(method, method.upper()), width))
    lines.append(rule)
    lines.append("Obrigado pela preferência!".center(width).rstrip())
    return lines


def _render_pdf(lines: list[str], width_mm: int = 80) -> bytes:
    buffer = BytesIO()
    line_height = 4 * mm
    page_width = width_mm * mm
    page_height = max(60 * mm, (len(lines) + 4) * line_height)

    c = canvas.Canvas(buffer, pagesize=(page_width, page_height))
    y = page_height - 2 * line_height
    for index, text in enumerate(lines):
        c.setFont("Courier-Bold" if index == 0 else "Courier", 7)
        c.drawString(3 * mm, y, text)
        y -= line_height
    c.showPage()
    c.save()
    return buffer.getvalue()


def render_receipt(
    sale: Any,
    store: Any,
    format: str = "80mm",
    comanda_meta: Mapping[str, Any] | None = None,
) -> str | bytes:
    """Formata o cupom da venda. ``58mm``/``80mm`` devolvem texto, ``pdf`` devolve bytes."""
    fmt = (format or "80mm").strip().lower()
    if fmt not in RECEIPT_FORMATS:
        raise ValueError("Formato de cupom inválido")
    if fmt == "pdf":
        return _render_pdf(receipt_lines(sale, store, RECEIPT_COLUMNS["80mm"], comanda_meta))
    return "\n".join(receipt_lines(sale, store, RECEIPT_COLUMNS[fmt], comanda_meta)) + "\n"
