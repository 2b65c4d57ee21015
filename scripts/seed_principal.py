"""
Crea una cuenta de admin, institución o estudiante para poder hacer login.

Uso:
  python scripts/seed_principal.py --role admin --email admin@portal.dev --password secret123 --admin-code X1
  python scripts/seed_principal.py --role student --email ana@uni.edu --password secret123 --institution-id <id>

Las cuentas de institución/estudiante quedan sin verificar y se envía el
correo de verificación (usa --verified para saltarlo).
"""

import argparse
import asyncio

from placement_portal.core.config import settings
from placement_portal.core.logging import setup_logging
from placement_portal.core.time import now_utc
from placement_portal.domain.principal import EmailVerification
from placement_portal.domain.roles import Role, requires_email_verification
from placement_portal.infrastructure.db.bootstrap import ensure_collections
from placement_portal.infrastructure.db.mongo_async import close_mongo, init_mongo
from placement_portal.runtime import Runtime
from placement_portal.services.auth_service import hash_password


async def seed(args: argparse.Namespace) -> None:
    role = Role(args.role)
    if role == Role.STUDENT and not args.institution_id:
        raise SystemExit("--institution-id es obligatorio para estudiantes")
    if role == Role.ADMIN and not args.admin_code:
        raise SystemExit("--admin-code es obligatorio para admins")

    db = await init_mongo(settings)
    await ensure_collections(db)
    rt = Runtime(settings, db=db)
    rt.email.init()
    try:
        if await rt.principals.find_by_email(role, args.email, args.institution_id):
            print(f"Ya existe {role.value} con email {args.email}")
            return

        verified = args.verified or not requires_email_verification(role)
        doc = {
            "email": args.email.strip().lower(),
            "password_hash": hash_password(args.password),
            "name": args.name,
            "is_active": True,
            "email_verification": EmailVerification(verified=verified).model_dump(),
            "created_at": now_utc(),
        }
        if args.institution_id:
            doc["institution_id"] = args.institution_id
        if args.admin_code:
            doc["admin_code"] = args.admin_code

        pid = await rt.principals.insert(role, doc)
        print(f"{role.value} creado id={pid}")

        if not verified:
            principal = await rt.principals.get_by_id(role, pid)
            result = await rt.auth.issue_verification(principal)
            print("Correo de verificación enviado" if result.success else f"Correo no enviado: {result.error}")
    finally:
        close_mongo()


def main() -> None:
    ap = argparse.ArgumentParser()
    ap.add_argument("--role", required=True, choices=[r.value for r in Role])
    ap.add_argument("--email", required=True)
    ap.add_argument("--password", required=True)
    ap.add_argument("--name", default=None)
    ap.add_argument("--institution-id", default=None, help="Institución del estudiante")
    ap.add_argument("--admin-code", default=None, help="Código requerido en el login de admin")
    ap.add_argument("--verified", action="store_true", help="Marcar el email como verificado")
    args = ap.parse_args()
    setup_logging(settings.log_level)
    asyncio.run(seed(args))


if __name__ == "__main__":
    main()
