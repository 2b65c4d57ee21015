"""Health (sin auth)."""
from fastapi import APIRouter, Depends, status

from placement_portal.api.deps import runtime_dep
from placement_portal.api.schemas.health import HealthOut
from placement_portal.runtime import Runtime

router = APIRouter(tags=["Health"])  # no prefix to keep paths stable


@router.get("/health", status_code=status.HTTP_200_OK, response_model=HealthOut, summary="Salud básica")
def health(rt: Runtime = Depends(runtime_dep)) -> HealthOut:
    return HealthOut(ok=True, store="memory" if rt.settings.use_memory_store else "mongo")
