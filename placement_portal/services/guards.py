"""Chequeos posteriores al gate (rol) y previos al login (email verificado)."""
from __future__ import annotations

from typing import Optional

from placement_portal.core.exceptions import EmailNotVerifiedError, ForbiddenRoleError
from placement_portal.domain.principal import Principal, PrincipalIdentity
from placement_portal.domain.roles import Role, requires_email_verification
from placement_portal.repositories.principal_repo import PrincipalRepository


def check_role(identity: PrincipalIdentity, expected: Role) -> PrincipalIdentity:
    if identity.role != Role(expected):
        raise ForbiddenRoleError(f"{Role(expected).value.capitalize()} access required")
    return identity


async def require_verified_email(
    principals: PrincipalRepository,
    role: Role,
    email: str,
    institution_id: Optional[str] = None,
) -> Optional[Principal]:
    """
    Busca al candidato por credenciales y exige email verificado según su rol.

    Devuelve None si no existe (el login responde INVALID_CREDENTIALS);
    los estudiantes sólo se identifican con su institución.
    """
    role = Role(role)
    if role == Role.STUDENT and not institution_id:
        return None
    principal = await principals.find_by_email(role, email, institution_id)
    if principal is None:
        return None
    if requires_email_verification(role) and not principal.email_verification.verified:
        raise EmailNotVerifiedError()
    return principal
