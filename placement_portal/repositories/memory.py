"""
Repositorios en memoria con la misma interfaz que los de Mongo.

Se activan con `USE_MEMORY_STORE=true` (desarrollo sin base de datos) y los
usan los tests. Devuelven copias para no compartir estado mutable con quien llama.
"""
from __future__ import annotations

import copy
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from bson import ObjectId

from placement_portal.core.time import as_utc, now_utc
from placement_portal.domain.principal import EmailVerification, Principal, PrincipalIdentity
from placement_portal.domain.refresh_token import DeviceInfo, RefreshTokenRecord
from placement_portal.domain.roles import Role
from placement_portal.repositories.principal_repo import email_query
from placement_portal.repositories.refresh_token_repo import apply_revocation
from placement_portal.services.token_service import TokenCodec


class MemoryRefreshTokenStore:
    def __init__(self, codec: TokenCodec, *, retention: timedelta = timedelta(days=30)) -> None:
        self.codec = codec
        self.retention = retention
        self.records: Dict[str, RefreshTokenRecord] = {}
        self._by_token: Dict[str, str] = {}

    async def create(self, principal: PrincipalIdentity, device_info: DeviceInfo) -> RefreshTokenRecord:
        now = now_utc()
        record = RefreshTokenRecord.new(
            token=self.codec.mint_refresh_token(principal, now=now),
            identity=principal,
            device_info=device_info,
            ttl=self.codec.refresh_ttl,
            now=now,
        )
        if record.token in self._by_token:
            raise ValueError("Duplicate refresh token")
        record.id = str(ObjectId())
        self.records[record.id] = record.model_copy(deep=True)
        self._by_token[record.token] = record.id
        return record

    async def find_by_token(self, token: str) -> Optional[RefreshTokenRecord]:
        rid = self._by_token.get(token)
        if rid is None or rid not in self.records:
            return None
        return self.records[rid].model_copy(deep=True)

    async def touch(self, record: RefreshTokenRecord) -> None:
        now = now_utc()
        stored = self.records.get(record.id or "")
        if stored is not None:
            stored.last_used_at = now
        record.last_used_at = now

    async def revoke(self, record: RefreshTokenRecord, reason: str) -> None:
        stored = self.records.get(record.id or "")
        if stored is not None:
            apply_revocation(stored, reason)
        apply_revocation(record, reason)

    async def revoke_all_for_principal(self, principal_id: str, role: Role, reason: str) -> int:
        count = 0
        for rec in self.records.values():
            if rec.principal_id == principal_id and rec.role == Role(role) and not rec.is_revoked:
                apply_revocation(rec, reason)
                count += 1
        return count

    async def list_active_for_principal(self, principal_id: str, role: Role) -> List[RefreshTokenRecord]:
        now = now_utc()
        active = [
            rec.model_copy(deep=True)
            for rec in self.records.values()
            if rec.principal_id == principal_id and rec.role == Role(role) and rec.is_valid(now)
        ]
        return sorted(active, key=lambda r: r.last_used_at, reverse=True)

    async def sweep_expired(self) -> int:
        now = now_utc()
        cutoff = now - self.retention
        stale = [
            rid
            for rid, rec in self.records.items()
            if as_utc(rec.expires_at) < now
            or (rec.is_revoked and rec.revoked_at is not None and as_utc(rec.revoked_at) < cutoff)
        ]
        for rid in stale:
            rec = self.records.pop(rid)
            self._by_token.pop(rec.token, None)
        return len(stale)


class MemoryPrincipalRepository:
    def __init__(self) -> None:
        self.docs: Dict[Role, Dict[str, Dict[str, Any]]] = {r: {} for r in Role}

    def _load(self, role: Role, doc: Optional[Dict[str, Any]]) -> Optional[Principal]:
        return Principal.from_document(Role(role), doc) if doc else None

    async def find_by_email(
        self, role: Role, email: str, institution_id: Optional[str] = None
    ) -> Optional[Principal]:
        query = email_query(role, email, institution_id)
        for doc in self.docs[Role(role)].values():
            if all(doc.get(k) == v for k, v in query.items()):
                return self._load(role, doc)
        return None

    async def get_by_id(self, role: Role, principal_id: str) -> Optional[Principal]:
        return self._load(role, self.docs[Role(role)].get(principal_id))

    async def find_by_verification_token(self, role: Role, token: str) -> Optional[Principal]:
        for doc in self.docs[Role(role)].values():
            if (doc.get("email_verification") or {}).get("token") == token:
                return self._load(role, doc)
        return None

    async def set_verification_token(
        self, role: Role, principal_id: str, token: str, expires_at: datetime
    ) -> None:
        doc = self.docs[Role(role)].get(principal_id)
        if doc is None:
            return
        ev = doc.setdefault("email_verification", EmailVerification().model_dump())
        ev["token"] = token
        ev["token_expiry"] = expires_at

    async def mark_email_verified(self, role: Role, principal_id: str) -> bool:
        doc = self.docs[Role(role)].get(principal_id)
        if doc is None:
            return False
        ev = doc.setdefault("email_verification", EmailVerification().model_dump())
        if ev.get("verified"):
            return False
        ev["verified"] = True
        ev.pop("token", None)
        ev.pop("token_expiry", None)
        return True

    async def record_login(self, role: Role, principal_id: str, when: datetime) -> None:
        doc = self.docs[Role(role)].get(principal_id)
        if doc is not None:
            doc["last_login"] = when

    async def insert(self, role: Role, doc: Dict[str, Any]) -> str:
        pid = str(doc.get("_id") or ObjectId())
        stored = copy.deepcopy(doc)
        stored["_id"] = pid
        stored["email"] = stored["email"].strip().lower()
        self.docs[Role(role)][pid] = stored
        return pid
