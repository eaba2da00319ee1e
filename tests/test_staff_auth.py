from types import SimpleNamespace

import pytest

from tests.fixtures_data import OTHER_STORE_ID, STORE_ID, build_client, build_db, seed_store
from vendafacil.models.audit_log import AuditLog
from vendafacil.services import staff_auth
from vendafacil.services.passwords import hash_password, verify_password
from vendafacil.services.staff_auth import (
    STAFF_SESSION_COOKIE,
    create_staff_session,
    decode_staff_session,
    member_from_session_token,
)
from vendafacil.services.store_bootstrap import get_or_create_store, upsert_store_member

OWNER_EMAIL = "dono@bardoze.com.br"
OWNER_PASSWORD = "senha-do-dono"


def _seed_owner(db, store_id=STORE_ID, email=OWNER_EMAIL):
    member, _created = upsert_store_member(
        db,
        store_id=store_id,
        email=email,
        name="Zé",
        role="owner",
        password=OWNER_PASSWORD,
    )
    return member


def test_login_sets_http_only_session_cookie_and_me_reads_it():
    db = build_db()
    _seed_owner(db)
    client = build_client(db, authenticate=False)

    response = client.post("/api/auth/login", json={"email": "Dono@bardoze.com.br", "password": OWNER_PASSWORD})
    me = client.get("/api/auth/me")

    assert response.status_code == 200
    assert response.json()["role"] == "owner"
    set_cookie = response.headers["set-cookie"].lower()
    assert STAFF_SESSION_COOKIE in set_cookie
    assert "httponly" in set_cookie
    assert me.status_code == 200
    assert me.json()["email"] == OWNER_EMAIL
    assert db.query(AuditLog).filter(AuditLog.action == "auth.login").count() == 1


def test_login_with_wrong_password_is_unauthorized():
    db = build_db()
    _seed_owner(db)
    client = build_client(db, authenticate=False)

    response = client.post("/api/auth/login", json={"email": OWNER_EMAIL, "password": "errada"})

    assert response.status_code == 401
    assert STAFF_SESSION_COOKIE not in response.cookies


def test_same_email_in_two_stores_needs_store_id():
    db = build_db()
    seed_store(db, OTHER_STORE_ID, name="Padaria Central", products=[])
    _seed_owner(db)
    _seed_owner(db, store_id=OTHER_STORE_ID)
    client = build_client(db, authenticate=False)

    ambiguous = client.post("/api/auth/login", json={"email": OWNER_EMAIL, "password": OWNER_PASSWORD})
    scoped = client.post(
        "/api/auth/login",
        json={"email": OWNER_EMAIL, "password": OWNER_PASSWORD, "store_id": OTHER_STORE_ID},
    )

    assert ambiguous.status_code == 401
    assert scoped.status_code == 200
    assert scoped.json()["store_id"] == OTHER_STORE_ID


def test_requests_without_session_are_unauthorized():
    db = build_db()
    client = build_client(db, authenticate=False)

    response = client.get("/api/stores/1/comandas")
    me = client.get("/api/auth/me")

    assert response.status_code == 401
    assert me.json()["detail"] == "Não autenticado"


def test_logout_clears_the_cookie():
    db = build_db()
    client = build_client(db, authenticate=False)

    response = client.post("/api/auth/logout")

    assert response.json() == {"ok": True}
    assert f'{STAFF_SESSION_COOKIE}=""' in response.headers["set-cookie"]


def test_member_of_another_store_is_forbidden():
    db = build_db()
    outsider = SimpleNamespace(id=9, store_id=OTHER_STORE_ID, role="owner", active=True)
    client = build_client(db, outsider)

    response = client.post("/api/stores/1/comandas/open", json={"table_number": 1})

    assert response.status_code == 403
    assert response.json()["detail"] == "Loja não autorizada"


def test_product_management_requires_admin_role():
    db = build_db()
    staff = SimpleNamespace(id=8, store_id=STORE_ID, role="staff", active=True)
    admin = SimpleNamespace(id=9, store_id=STORE_ID, role="admin", active=True)
    payload = {"name": "Água", "price_cents": 300, "stock_qty": 12}

    denied = build_client(db, staff).post("/api/stores/1/products", json=payload)
    created = build_client(db, admin).post("/api/stores/1/products", json=payload)

    assert denied.status_code == 403
    assert denied.json()["detail"] == "Permissão insuficiente"
    assert created.status_code == 201


def test_session_token_round_trip_and_tampering():
    db = build_db()
    member = _seed_owner(db)
    token = create_staff_session(member)

    payload = decode_staff_session(token)

    assert payload["member_id"] == member.id
    assert payload["store_id"] == STORE_ID
    assert decode_staff_session(token + "x") is None
    assert decode_staff_session(None) is None
    assert member_from_session_token(db, token).id == member.id


def test_expired_or_inactive_sessions_are_rejected():
    db = build_db()
    member = _seed_owner(db)
    expired = staff_auth._serializer().dumps({"member_id": member.id, "store_id": STORE_ID, "exp": 1})
    token = create_staff_session(member)

    member.active = False
    db.commit()

    assert decode_staff_session(expired) is None
    assert member_from_session_token(db, token) is None


def test_upsert_member_rules():
    db = build_db()
    _seed_owner(db)

    with pytest.raises(ValueError):
        upsert_store_member(db, store_id=STORE_ID, email="outro@bardoze.com.br", name="X", role="owner", password="x")
    with pytest.raises(ValueError):
        upsert_store_member(db, store_id=STORE_ID, email="caixa@bardoze.com.br", name="X", role="gerente", password="x")
    with pytest.raises(ValueError):
        upsert_store_member(db, store_id=STORE_ID, email="caixa@bardoze.com.br", name="X", role="staff", password=None)

    updated, created = upsert_store_member(
        db,
        store_id=STORE_ID,
        email=OWNER_EMAIL.upper(),
        name="José",
        role="owner",
        password=None,
    )
    assert created is False
    assert updated.name == "José"
    assert verify_password(OWNER_PASSWORD, updated.password_hash)


def test_get_or_create_store_reuses_by_name():
    db = build_db()

    store, created = get_or_create_store(db, name="Bar do Zé")
    new_store, new_created = get_or_create_store(db, name="Lanchonete Nova", owner_user_id="dono@nova.com.br")

    assert (store.id, created) == (STORE_ID, False)
    assert new_created is True
    assert new_store.settings["receipt_width"] == "80mm"


def test_password_hashing():
    hashed = hash_password("segredo")

    assert verify_password("segredo", hashed)
    assert not verify_password("outro", hashed)
    assert not verify_password("segredo", "")
    assert not verify_password("segredo", "nao-e-um-hash")
