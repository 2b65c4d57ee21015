"""
Persistencia de refresh tokens (colección `refresh_token`, Motor).

Un documento por sesión de login. Revocar es un borrado lógico; el borrado
físico sólo lo hace `sweep_expired` (expirados o revocados hace más de N días).
"""
from __future__ import annotations

import logging
from datetime import timedelta
from typing import List, Optional, Protocol

from bson import ObjectId
from motor.motor_asyncio import AsyncIOMotorCollection

from placement_portal.core.time import now_utc
from placement_portal.domain.principal import PrincipalIdentity
from placement_portal.domain.refresh_token import DeviceInfo, RefreshTokenRecord
from placement_portal.domain.roles import Role
from placement_portal.services.token_service import TokenCodec

RT_COLL = "refresh_token"

_log = logging.getLogger("portal.tokens.store")


class RefreshTokenStore(Protocol):
    async def create(self, principal: PrincipalIdentity, device_info: DeviceInfo) -> RefreshTokenRecord: ...

    async def find_by_token(self, token: str) -> Optional[RefreshTokenRecord]: ...

    async def touch(self, record: RefreshTokenRecord) -> None: ...

    async def revoke(self, record: RefreshTokenRecord, reason: str) -> None: ...

    async def revoke_all_for_principal(self, principal_id: str, role: Role, reason: str) -> int: ...

    async def list_active_for_principal(self, principal_id: str, role: Role) -> List[RefreshTokenRecord]: ...

    async def sweep_expired(self) -> int: ...


def apply_revocation(record: RefreshTokenRecord, reason: str) -> None:
    """Marca el registro en memoria; la primera revocación conserva fecha y razón."""
    if record.is_revoked:
        return
    record.is_revoked = True
    record.revoked_at = now_utc()
    record.revoked_reason = reason


class MongoRefreshTokenStore:
    def __init__(
        self,
        collection: AsyncIOMotorCollection,
        codec: TokenCodec,
        *,
        retention: timedelta = timedelta(days=30),
    ) -> None:
        self.coll = collection
        self.codec = codec
        self.retention = retention

    async def create(self, principal: PrincipalIdentity, device_info: DeviceInfo) -> RefreshTokenRecord:
        """Emite un refresh token nuevo y guarda su registro (expira en `codec.refresh_ttl`)."""
        now = now_utc()
        record = RefreshTokenRecord.new(
            token=self.codec.mint_refresh_token(principal, now=now),
            identity=principal,
            device_info=device_info,
            ttl=self.codec.refresh_ttl,
            now=now,
        )
        res = await self.coll.insert_one(record.to_document())
        record.id = str(res.inserted_id)
        return record

    async def find_by_token(self, token: str) -> Optional[RefreshTokenRecord]:
        doc = await self.coll.find_one({"token": token})
        return RefreshTokenRecord.from_document(doc) if doc else None

    async def touch(self, record: RefreshTokenRecord) -> None:
        now = now_utc()
        await self.coll.update_one({"_id": ObjectId(record.id)}, {"$set": {"last_used_at": now}})
        record.last_used_at = now

    async def revoke(self, record: RefreshTokenRecord, reason: str) -> None:
        # Filtro condicional: una segunda revocación no pisa la primera
        now = now_utc()
        await self.coll.update_one(
            {"_id": ObjectId(record.id), "is_revoked": False},
            {"$set": {"is_revoked": True, "revoked_at": now, "revoked_reason": reason}},
        )
        apply_revocation(record, reason)

    async def revoke_all_for_principal(self, principal_id: str, role: Role, reason: str) -> int:
        res = await self.coll.update_many(
            {"principal_id": principal_id, "role": Role(role).value, "is_revoked": False},
            {"$set": {"is_revoked": True, "revoked_at": now_utc(), "revoked_reason": reason}},
        )
        return res.modified_count

    async def list_active_for_principal(self, principal_id: str, role: Role) -> List[RefreshTokenRecord]:
        cursor = self.coll.find(
            {
                "principal_id": principal_id,
                "role": Role(role).value,
                "is_revoked": False,
                "expires_at": {"$gt": now_utc()},
            }
        ).sort("last_used_at", -1)
        return [RefreshTokenRecord.from_document(doc) async for doc in cursor]

    async def sweep_expired(self) -> int:
        now = now_utc()
        res = await self.coll.delete_many(
            {
                "$or": [
                    {"expires_at": {"$lt": now}},
                    {"is_revoked": True, "revoked_at": {"$lt": now - self.retention}},
                ]
            }
        )
        _log.info("Cleaned up %s expired/old refresh tokens", res.deleted_count)
        return res.deleted_count
