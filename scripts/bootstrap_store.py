#!/usr/bin/env python3
from __future__ import annotations

import argparse
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
sys.path.append(str(ROOT))

from vendafacil.core.config import DEV_BOOTSTRAP_ALLOW, IS_DEV  # noqa: E402
from vendafacil.core.database import SessionLocal, engine  # noqa: E402
from vendafacil.services.access import PLANS, grant_plan  # noqa: E402
from vendafacil.services.store_bootstrap import (  # noqa: E402
    ensure_store_tables,
    get_or_create_store,
    upsert_store_member,
)


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Bootstrap de loja e membro para DEV.")
    parser.add_argument("--store-name", required=True, help="Nome da loja")
    parser.add_argument("--email", required=True, help="Email do membro")
    parser.add_argument("--password", help="Senha do membro")
    parser.add_argument("--name", required=True, help="Nome do membro")
    parser.add_argument("--role", default="owner", help="Papel do membro (owner, admin, staff)")
    parser.add_argument("--plan", choices=sorted(PLANS), help="Concede um plano à loja")
    parser.add_argument(
        "--force",
        action="store_true",
        help="Permite executar sem DEV_BOOTSTRAP_ALLOW=1",
    )
    return parser.parse_args()


def main() -> int:
    args = parse_args()

    if not DEV_BOOTSTRAP_ALLOW and not args.force:
        print(
            "Bootstrap DEV desabilitado. "
            "Defina DEV_BOOTSTRAP_ALLOW=1 ou use --force."
        )
        return 1

    try:
        ensure_store_tables(engine)
    except RuntimeError as exc:
        print(str(exc))
        return 1

    db = SessionLocal()
    try:
        store, _ = get_or_create_store(db, name=args.store_name, owner_user_id=args.email)
        member, created = upsert_store_member(
            db,
            store_id=store.id,
            email=args.email,
            name=args.name,
            role=args.role,
            password=args.password,
        )
        member_store_id, member_email = member.store_id, member.email
        if args.plan:
            grant_plan(db, store.id, args.plan)
    except ValueError as exc:
        print(str(exc))
        return 1
    finally:
        db.close()

    action = "created" if created else "updated"
    print(f"Member {action}: store={member_store_id} email={member_email}")
    if IS_DEV:
        password_info = args.password if args.password else "<mantida>"
        print(f"Resumo DEV -> Loja: {member_store_id} | Email: {member_email} | Senha: {password_info}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
