"""
Modelo Pydantic para documentos de la colección `refresh_token`.

Un documento por refresh token emitido (una sesión de login). Los datos del
principal van desnormalizados para refrescar sin consultar su colección.
"""
from __future__ import annotations

from datetime import datetime, timedelta
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field

from placement_portal.core.time import as_utc, now_utc
from placement_portal.domain.principal import PrincipalIdentity
from placement_portal.domain.roles import Role


class DeviceInfo(BaseModel):
    user_agent: str = ""
    ip: str = ""
    device: str = "Desktop"
    browser: str = ""

    @classmethod
    def from_user_agent(cls, user_agent: Optional[str], ip: Optional[str]) -> "DeviceInfo":
        ua = user_agent or ""
        return cls(
            user_agent=ua,
            ip=ip or "",
            device="Mobile" if "Mobile" in ua else "Desktop",
            browser=ua.split("/")[0],
        )


class RefreshTokenRecord(BaseModel):
    id: Optional[str] = None
    token: str
    principal_id: str
    role: Role
    email: str
    expires_at: datetime
    created_at: datetime
    last_used_at: datetime
    device_info: DeviceInfo = Field(default_factory=DeviceInfo)
    is_revoked: bool = False
    revoked_at: Optional[datetime] = None
    revoked_reason: Optional[str] = None

    @classmethod
    def new(
        cls,
        *,
        token: str,
        identity: PrincipalIdentity,
        device_info: DeviceInfo,
        ttl: timedelta,
        now: Optional[datetime] = None,
    ) -> "RefreshTokenRecord":
        now = now or now_utc()
        return cls(
            token=token,
            principal_id=identity.id,
            role=identity.role,
            email=identity.email,
            expires_at=now + ttl,
            created_at=now,
            last_used_at=now,
            device_info=device_info,
        )

    def is_valid(self, now: Optional[datetime] = None) -> bool:
        return not self.is_revoked and as_utc(self.expires_at) > (now or now_utc())

    def identity(self) -> PrincipalIdentity:
        return PrincipalIdentity(id=self.principal_id, role=self.role, email=self.email)

    def session_summary(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "device_info": self.device_info.model_dump(),
            "created_at": self.created_at.isoformat(),
            "last_used_at": self.last_used_at.isoformat(),
            "expires_at": self.expires_at.isoformat(),
        }

    def to_document(self) -> Dict[str, Any]:
        doc = self.model_dump(exclude={"id"})
        doc["role"] = self.role.value
        return doc

    @classmethod
    def from_document(cls, doc: Dict[str, Any]) -> "RefreshTokenRecord":
        data = dict(doc)
        _id = data.pop("_id", None)
        for key in ("expires_at", "created_at", "last_used_at", "revoked_at"):
            data[key] = as_utc(data.get(key))
        return cls(id=str(_id) if _id is not None else None, **data)
