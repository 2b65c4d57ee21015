"""Entrada principal de la app FastAPI (configura middlewares, excepciones y routers)."""
import logging

from fastapi import FastAPI

from placement_portal.api.router import api_router
from placement_portal.core.config import settings
from placement_portal.core.exceptions import register_exception_handlers
from placement_portal.core.logging import setup_logging
from placement_portal.core.middleware import add_middlewares
from placement_portal.infrastructure.db.bootstrap import ensure_collections
from placement_portal.infrastructure.db.mongo_async import close_mongo, init_mongo
from placement_portal.runtime import Runtime, get_runtime, set_runtime

_log = logging.getLogger("portal.startup")

setup_logging(settings.log_level)
app = FastAPI(title=settings.app_name)

add_middlewares(app)
register_exception_handlers(app)


# Startup
@app.on_event("startup")
async def on_startup():
    if not settings.jwt_secret:
        _log.error("JWT_SECRET no configurado; login y refresh fallarán")
    elif settings.refresh_secret_is_shared:
        _log.warning("JWT_REFRESH_SECRET no configurado; los refresh tokens se firman con JWT_SECRET")

    if settings.use_memory_store:
        runtime = get_runtime()
    else:
        db = await init_mongo(settings)
        # Garantiza índices mínimos; fallas individuales sólo quedan en el log
        await ensure_collections(db)
        runtime = set_runtime(Runtime(settings, db=db))
    await runtime.start()


@app.on_event("shutdown")
async def on_shutdown():
    await get_runtime().stop()
    close_mongo()


# Monta routers bajo el prefijo configurado
app.include_router(api_router, prefix=settings.api_prefix_normalized)
