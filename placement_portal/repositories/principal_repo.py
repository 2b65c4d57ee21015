"""
Lecturas/escrituras de principals que necesita autenticación.

Cada rol vive en su propia colección (`admin`, `institution`, `student`).
Sólo se tocan credenciales, `last_login` y el sub-documento `email_verification`.
"""
from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Optional, Protocol

from bson import ObjectId
from motor.motor_asyncio import AsyncIOMotorDatabase

from placement_portal.core.time import now_utc
from placement_portal.domain.principal import Principal
from placement_portal.domain.roles import Role, principal_collection


class PrincipalRepository(Protocol):
    async def find_by_email(
        self, role: Role, email: str, institution_id: Optional[str] = None
    ) -> Optional[Principal]: ...

    async def get_by_id(self, role: Role, principal_id: str) -> Optional[Principal]: ...

    async def find_by_verification_token(self, role: Role, token: str) -> Optional[Principal]: ...

    async def set_verification_token(
        self, role: Role, principal_id: str, token: str, expires_at: datetime
    ) -> None: ...

    async def mark_email_verified(self, role: Role, principal_id: str) -> bool: ...

    async def record_login(self, role: Role, principal_id: str, when: datetime) -> None: ...

    async def insert(self, role: Role, doc: Dict[str, Any]) -> str: ...


def email_query(role: Role, email: str, institution_id: Optional[str] = None) -> Dict[str, Any]:
    """Filtro de búsqueda por credenciales (email en minúsculas + institución si aplica)."""
    query: Dict[str, Any] = {"email": email.strip().lower()}
    if Role(role) != Role.ADMIN and institution_id:
        query["institution_id"] = institution_id
    return query


class MongoPrincipalRepository:
    def __init__(self, db: AsyncIOMotorDatabase) -> None:
        self.db = db

    def _coll(self, role: Role):
        return self.db[principal_collection(role)]

    async def find_by_email(
        self, role: Role, email: str, institution_id: Optional[str] = None
    ) -> Optional[Principal]:
        doc = await self._coll(role).find_one(email_query(role, email, institution_id))
        return Principal.from_document(Role(role), doc) if doc else None

    async def get_by_id(self, role: Role, principal_id: str) -> Optional[Principal]:
        if not ObjectId.is_valid(principal_id):
            return None
        doc = await self._coll(role).find_one({"_id": ObjectId(principal_id)})
        return Principal.from_document(Role(role), doc) if doc else None

    async def find_by_verification_token(self, role: Role, token: str) -> Optional[Principal]:
        doc = await self._coll(role).find_one({"email_verification.token": token})
        return Principal.from_document(Role(role), doc) if doc else None

    async def set_verification_token(
        self, role: Role, principal_id: str, token: str, expires_at: datetime
    ) -> None:
        await self._coll(role).update_one(
            {"_id": ObjectId(principal_id)},
            {
                "$set": {
                    "email_verification.token": token,
                    "email_verification.token_expiry": expires_at,
                    "updated_at": now_utc(),
                }
            },
        )

    async def mark_email_verified(self, role: Role, principal_id: str) -> bool:
        res = await self._coll(role).update_one(
            {"_id": ObjectId(principal_id), "email_verification.verified": {"$ne": True}},
            {
                "$set": {"email_verification.verified": True, "updated_at": now_utc()},
                "$unset": {"email_verification.token": "", "email_verification.token_expiry": ""},
            },
        )
        return res.modified_count == 1

    async def record_login(self, role: Role, principal_id: str, when: datetime) -> None:
        await self._coll(role).update_one({"_id": ObjectId(principal_id)}, {"$set": {"last_login": when}})

    async def insert(self, role: Role, doc: Dict[str, Any]) -> str:
        res = await self._coll(role).insert_one(doc)
        return str(res.inserted_id)
