"""
Bootstrap de la base Mongo: índices mínimos para autenticación.
Se ejecuta al inicio de la app; no tumba el arranque si algo falla.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, List

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ASCENDING
from pymongo.errors import PyMongoError

from placement_portal.domain.roles import Role, principal_collection
from placement_portal.repositories.refresh_token_repo import RT_COLL

_log = logging.getLogger("portal.mongo.bootstrap")


async def _ensure_indexes(db: AsyncIOMotorDatabase, name: str, indexes: List[Dict[str, Any]]) -> None:
    coll = db[name]
    for ix in indexes:
        ix = dict(ix)
        keys = ix.pop("keys")
        try:
            await coll.create_index(keys, **ix)
        except PyMongoError as e:
            # Ignora fallas de índice (e.g., datos no únicos previos)
            _log.warning("No se pudo crear índice en '%s' (%s): %s", name, keys, e)


def _principal_indexes(role: Role) -> List[Dict[str, Any]]:
    if role == Role.STUDENT:
        email_ix = {"keys": [("email", ASCENDING), ("institution_id", ASCENDING)], "unique": True}
    else:
        email_ix = {"keys": [("email", ASCENDING)], "unique": True}
    return [
        email_ix,
        {"keys": [("email_verification.token", ASCENDING)], "sparse": True},
    ]


async def ensure_collections(db: AsyncIOMotorDatabase) -> None:
    """
    Garantiza índices de refresh_token y de las colecciones de principals.
    """
    await _ensure_indexes(
        db,
        RT_COLL,
        [
            {"keys": [("token", ASCENDING)], "unique": True},
            {"keys": [("principal_id", ASCENDING), ("role", ASCENDING)]},
            {"keys": [("expires_at", ASCENDING)]},
        ],
    )
    for role in Role:
        await _ensure_indexes(db, principal_collection(role), _principal_indexes(role))
