"""
Dependencias reutilizables para routers (FastAPI Depends).

- Autenticación: corre el gate sobre las cookies y adjunta la identidad al request.
- Mantener esta capa delgada: sin lógica de negocio pesada.
"""
from typing import Callable

from fastapi import Depends, Request, Response

from placement_portal.api.cookies import read_auth_cookies, set_access_cookie
from placement_portal.domain.principal import PrincipalIdentity
from placement_portal.domain.roles import Role
from placement_portal.runtime import Runtime, get_runtime
from placement_portal.services.auth_gate import GateDecision
from placement_portal.services.guards import check_role


def runtime_dep() -> Runtime:
    return get_runtime()


async def authenticate(
    request: Request,
    response: Response,
    rt: Runtime = Depends(runtime_dep),
) -> PrincipalIdentity:
    access, refresh = read_auth_cookies(request, rt.settings)
    result = await rt.gate.authenticate(access, refresh)
    if result.decision == GateDecision.REFRESHED and result.new_access_token:
        set_access_cookie(response, result.new_access_token, rt.settings)
    request.state.principal = result.identity
    return result.identity


def require_role(role: Role) -> Callable[..., PrincipalIdentity]:
    """Dependencia por grupo de rutas: gate + rol esperado."""

    def _dep(identity: PrincipalIdentity = Depends(authenticate)) -> PrincipalIdentity:
        return check_role(identity, role)

    return _dep
