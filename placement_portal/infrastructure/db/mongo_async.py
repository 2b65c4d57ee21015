"""Cliente MongoDB asíncrono (Motor).

Un único cliente por proceso: `init_mongo()` en el startup (devuelve la DB
que reciben los repositorios) y `close_mongo()` en el shutdown.
"""
from __future__ import annotations

import logging
from typing import Optional

import certifi
from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from pymongo.errors import PyMongoError

from placement_portal.core.config import Settings

_log = logging.getLogger("portal.mongo")

_aclient: Optional[AsyncIOMotorClient] = None
_adb: Optional[AsyncIOMotorDatabase] = None


def _build_async_client(settings: Settings) -> AsyncIOMotorClient:
    uri = settings.mongo_uri
    kwargs = dict(serverSelectionTimeoutMS=15000, tz_aware=True)
    if uri.startswith("mongodb+srv://"):
        # SRV ya implica TLS; proveemos CA bundle para robustez
        kwargs["tlsCAFile"] = certifi.where()
    elif settings.mongo_tls_insecure or settings.mongo_tls_allow_invalid_hostnames:
        kwargs["tls"] = True
        kwargs["tlsCAFile"] = certifi.where()
        kwargs["tlsAllowInvalidCertificates"] = settings.mongo_tls_insecure
        kwargs["tlsAllowInvalidHostnames"] = settings.mongo_tls_allow_invalid_hostnames
    return AsyncIOMotorClient(uri, **kwargs)


async def init_mongo(settings: Settings) -> AsyncIOMotorDatabase:
    """Inicializa el cliente y valida conexión (ping)."""
    global _aclient, _adb
    if _adb is not None:
        return _adb
    _aclient = _build_async_client(settings)
    try:
        await _aclient.admin.command("ping")
    except PyMongoError as e:
        # No tumbar la app: Motor reconecta en la siguiente operación
        _log.warning("Mongo no accesible al arrancar: %s", e)
    _adb = _aclient[settings.mongo_db]
    _log.info("Motor listo (db=%s)", settings.mongo_db)
    return _adb


def close_mongo() -> None:
    global _aclient, _adb
    if _aclient is not None:
        _aclient.close()
    _aclient = None
    _adb = None
