"""
Grupos de rutas por rol (`/admin`, `/institution`, `/student`).

Todo el grupo pasa por el gate y exige su rol; los handlers asumen una
identidad ya validada.
"""
from typing import Any, Dict

from fastapi import APIRouter, Depends, HTTPException

from placement_portal.api.deps import require_role, runtime_dep
from placement_portal.domain.principal import PrincipalIdentity
from placement_portal.domain.roles import Role
from placement_portal.runtime import Runtime


def _role_router(role: Role) -> APIRouter:
    router = APIRouter(prefix=f"/{role.value}", tags=[role.value.capitalize()])
    guard = require_role(role)

    @router.get("/profile", response_model=dict, summary=f"Perfil ({role.value})")
    async def profile(
        identity: PrincipalIdentity = Depends(guard),
        rt: Runtime = Depends(runtime_dep),
    ) -> Dict[str, Any]:
        principal = await rt.principals.get_by_id(role, identity.id)
        if principal is None:
            raise HTTPException(status_code=404, detail="Principal not found")
        return {"success": True, "user": principal.summary()}

    return router


admin_router = _role_router(Role.ADMIN)
institution_router = _role_router(Role.INSTITUTION)
student_router = _role_router(Role.STUDENT)
