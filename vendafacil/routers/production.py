from __future__ import annotations

import html

from fastapi import APIRouter, Depends, Query
from fastapi.responses import HTMLResponse
from sqlalchemy.orm import Session

from vendafacil.core.database import get_db
from vendafacil.deps import require_store_member
from vendafacil.models.store_member import StoreMember
from vendafacil.services.production import list_production_queue, normalize_destino

router = APIRouter(tags=["production"])

DESTINO_LABELS = {
    "cozinha": "Cozinha",
    "bar": "Bar",
}


@router.get("/api/stores/{store_id}/production/{destino}")
def production_queue(
    store_id: int,
    destino: str,
    db: Session = Depends(get_db),
    _member: StoreMember = Depends(require_store_member),
):
    return list_production_queue(db, store_id, destino)


_KDS_TEMPLATE = """
<!doctype html>
<html lang="pt-br">
<head>
  <meta charset="utf-8" />
  <meta name="viewport" content="width=device-width,initial-scale=1" />
  <title>__LABEL__ • Loja __STORE_ID__</title>
  <style>
    :root { --bg: #0b0f14; --card: #1f2937; --text: #e5e7eb; --muted: #9ca3af; --late: #b91c1c; --ok: #16a34a; }
    * { box-sizing: border-box; }
    body { margin: 0; font-family: system-ui, sans-serif; background: var(--bg); color: var(--text); }
    header { display: flex; justify-content: space-between; align-items: center; padding: 16px 24px; }
    header h1 { margin: 0; font-size: 22px; }
    header span { color: var(--muted); font-size: 13px; }
    .pill { padding: 6px 12px; border-radius: 999px; background: var(--card); font-size: 13px; }
    main { display: grid; grid-template-columns: repeat(auto-fill, minmax(240px, 1fr)); gap: 12px; padding: 0 24px 24px; }
    .card { background: var(--card); border-radius: 12px; padding: 14px; border: 2px solid transparent; }
    .card.late { border-color: var(--late); }
    .meta { display: flex; justify-content: space-between; color: var(--muted); font-size: 12px; }
    .item { font-size: 18px; font-weight: 700; margin: 10px 0; }
    .actions { display: flex; gap: 8px; }
    button { flex: 1; padding: 10px; border: 0; border-radius: 8px; font-weight: 700; cursor: pointer; }
    button.ok { background: var(--ok); color: #fff; }
    button:disabled { opacity: .5; }
  </style>
</head>
<body>
<header>
  <div>
    <h1>__LABEL__</h1>
    <span>Loja __STORE_ID__ • Atualização em tempo real</span>
  </div>
  <div class="pill" id="status-pill">Sincronizando…</div>
</header>
<main id="board"></main>

<script>
const STORE_ID = __STORE_ID__;
const DESTINO = "__DESTINO__";
const pending = new Set();
const settled = new Set();
let snapshot = [];
let refetchTimer = null;

function setStatus(text) {
  document.getElementById('status-pill').textContent = text;
}

function formatElapsed(seconds) {
  const m = Math.floor(seconds / 60);
  const s = seconds % 60;
  return `${m}:${String(s).padStart(2, '0')}`;
}

function escapeHtml(value) {
  const div = document.createElement('div');
  div.textContent = value == null ? '' : String(value);
  return div.innerHTML;
}

function visibleItems() {
  return snapshot.filter(item => !pending.has(item.id) && !settled.has(item.id));
}

function render() {
  const items = visibleItems();
  document.getElementById('board').innerHTML = items.map(item => `
    <div class="card ${item.is_late ? 'late' : ''}">
      <div class="meta">
        <span>${item.comanda_numero ? 'Mesa ' + item.comanda_numero : 'Balcão'}</span>
        <span>${formatElapsed(item.elapsed_seconds)} / ${item.target_prep_minutes} min</span>
      </div>
      <div class="item">${item.quantity}x ${escapeHtml(item.product_name_snapshot)}</div>
      <div class="actions">
        <button class="ok" onclick="markDone(${item.id})">Pronto</button>
      </div>
    </div>
  `).join('');
}

async function loadQueue() {
  try {
    const res = await fetch(`/api/stores/${STORE_ID}/production/${DESTINO}`, { credentials: 'same-origin' });
    if (!res.ok) {
      setStatus('Erro ao carregar fila');
      return;
    }
    snapshot = await res.json();
    const listed = new Set(snapshot.map(item => item.id));
    for (const id of Array.from(settled)) {
      if (!listed.has(id)) settled.delete(id);
    }
    render();
    setStatus(`Atualizado • ${new Date().toLocaleTimeString([], {hour: '2-digit', minute: '2-digit'})}`);
  } catch (e) {
    setStatus('Sem conexão');
  }
}

function scheduleRefetch() {
  if (refetchTimer) return;
  refetchTimer = setTimeout(() => { refetchTimer = null; loadQueue(); }, 250);
}

async function markDone(itemId) {
  pending.add(itemId);
  render();
  try {
    const res = await fetch(`/api/stores/${STORE_ID}/items/${itemId}/status`, {
      method: 'POST',
      credentials: 'same-origin',
      headers: { 'Content-Type': 'application/json' },
      body: JSON.stringify({ status: 'done' }),
    });
    pending.delete(itemId);
    if (!res.ok) {
      const data = await res.json().catch(() => ({}));
      setStatus(data.detail || 'Erro ao finalizar item');
      await loadQueue();
      return;
    }
    settled.add(itemId);
    render();
  } catch (e) {
    pending.delete(itemId);
    setStatus('Falha na rede ao finalizar');
    await loadQueue();
  }
}

function connect() {
  const scheme = location.protocol === 'https:' ? 'wss' : 'ws';
  const ws = new WebSocket(`${scheme}://${location.host}/api/stores/${STORE_ID}/realtime?tables=order_items`);
  ws.onmessage = scheduleRefetch;
  ws.onopen = loadQueue;
  ws.onclose = () => { setStatus('Reconectando…'); setTimeout(connect, 3000); };
}

loadQueue();
connect();
setInterval(loadQueue, 30000);
</script>
</body>
</html>
"""


@router.get("/kds/{store_id}", response_class=HTMLResponse)
def kds_page(
    store_id: int,
    destino: str = Query("cozinha"),
    _member: StoreMember = Depends(require_store_member),
):
    destino = normalize_destino(destino)
    page = (
        _KDS_TEMPLATE.replace("__STORE_ID__", str(int(store_id)))
        .replace("__DESTINO__", destino)
        .replace("__LABEL__", html.escape(DESTINO_LABELS.get(destino, destino)))
    )
    return HTMLResponse(page)
