"""Agregador de routers de la API."""
from fastapi import APIRouter

from placement_portal.api.routers import auth, dashboards, health

api_router = APIRouter()
api_router.include_router(health.router)
api_router.include_router(auth.router)
api_router.include_router(dashboards.admin_router)
api_router.include_router(dashboards.institution_router)
api_router.include_router(dashboards.student_router)
