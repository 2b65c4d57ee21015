"""
Roles fijos del portal y tablas derivadas (duración del access token, colección).

Las tablas se validan al importar: un rol nuevo sin entrada rompe el arranque
en lugar de caer en silencio a una duración por defecto.
"""
from datetime import timedelta
from enum import Enum
from typing import Dict


class Role(str, Enum):
    ADMIN = "admin"
    INSTITUTION = "institution"
    STUDENT = "student"


ACCESS_TOKEN_TTL: Dict[Role, timedelta] = {
    Role.ADMIN: timedelta(hours=24),
    Role.INSTITUTION: timedelta(hours=12),
    Role.STUDENT: timedelta(hours=8),
}

PRINCIPAL_COLLECTION: Dict[Role, str] = {
    Role.ADMIN: "admin",
    Role.INSTITUTION: "institution",
    Role.STUDENT: "student",
}

# Los admins se crean verificados; el resto debe confirmar su correo
REQUIRES_EMAIL_VERIFICATION: Dict[Role, bool] = {
    Role.ADMIN: False,
    Role.INSTITUTION: True,
    Role.STUDENT: True,
}


def _check_total(name: str, table: Dict[Role, object]) -> None:
    missing = [r.value for r in Role if r not in table]
    if missing:
        raise RuntimeError(f"{name} sin entrada para roles: {', '.join(missing)}")


for _name, _table in (
    ("ACCESS_TOKEN_TTL", ACCESS_TOKEN_TTL),
    ("PRINCIPAL_COLLECTION", PRINCIPAL_COLLECTION),
    ("REQUIRES_EMAIL_VERIFICATION", REQUIRES_EMAIL_VERIFICATION),
):
    _check_total(_name, _table)


def access_token_ttl(role: Role) -> timedelta:
    return ACCESS_TOKEN_TTL[Role(role)]


def principal_collection(role: Role) -> str:
    return PRINCIPAL_COLLECTION[Role(role)]


def requires_email_verification(role: Role) -> bool:
    return REQUIRES_EMAIL_VERIFICATION[Role(role)]
