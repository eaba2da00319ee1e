from __future__ import annotations

from sqlalchemy import inspect
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session

from vendafacil.models.store import Store
from vendafacil.models.store_member import StoreMember
from vendafacil.services.passwords import hash_password
from vendafacil.services.stores import DEFAULT_SETTINGS

MEMBER_ROLES = {"owner", "admin", "staff"}


def ensure_store_tables(engine: Engine) -> None:
    inspector = inspect(engine)
    missing = [table for table in ("stores", "store_members") if not inspector.has_table(table)]
    if missing:
        raise RuntimeError(
            f"Tabelas não encontradas: {', '.join(missing)}. Rode `alembic upgrade head` primeiro."
        )


def get_or_create_store(db: Session, *, name: str, owner_user_id: str | None = None) -> tuple[Store, bool]:
    existing = db.query(Store).filter(Store.name == name).order_by(Store.id.asc()).first()
    if existing:
        return existing, False
    store = Store(
        name=name,
        owner_user_id=owner_user_id,
        settings=dict(DEFAULT_SETTINGS),
        status="active",
    )
    db.add(store)
    db.commit()
    db.refresh(store)
    return store, True


def upsert_store_member(
    db: Session,
    *,
    store_id: int,
    email: str,
    name: str,
    role: str,
    password: str | None,
) -> tuple[StoreMember, bool]:
    email = email.strip().lower()
    role = role.strip().lower()
    if role not in MEMBER_ROLES:
        raise ValueError(f"Papel inválido: {role}")

    existing = (
        db.query(StoreMember)
        .filter(StoreMember.store_id == store_id, StoreMember.email == email)
        .first()
    )
    if existing:
        existing.name = name
        existing.role = role
        existing.active = True
        if password:
            existing.password_hash = hash_password(password)
        db.commit()
        db.refresh(existing)
        return existing, False

    if not password:
        raise ValueError("Senha é obrigatória para criar um novo membro.")

    if role == "owner":
        owner = (
            db.query(StoreMember)
            .filter(StoreMember.store_id == store_id, StoreMember.role == "owner")
            .first()
        )
        if owner:
            raise ValueError("A loja já possui um proprietário.")

    member = StoreMember(
        store_id=store_id,
        email=email,
        name=name,
        password_hash=hash_password(password),
        role=role,
        active=True,
    )
    db.add(member)
    db.commit()
    db.refresh(member)
    return member, True
