"""
Modelos de principal (admin, institución, estudiante) tal como los lee la capa de auth.

Cada colección pertenece a su propio controlador; aquí sólo se modelan los
campos que autenticación lee (credenciales, rol) o escribe (verificación).
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field

from placement_portal.core.time import as_utc, now_utc
from placement_portal.domain.roles import Role


@dataclass(frozen=True)
class PrincipalIdentity:
    """Identidad mínima adjuntada a cada request autenticado."""

    id: str
    role: Role
    email: str


class EmailVerification(BaseModel):
    verified: bool = False
    token: Optional[str] = None
    token_expiry: Optional[datetime] = None

    def token_matches(self, token: str, now: Optional[datetime] = None) -> bool:
        if not self.token or self.token != token:
            return False
        expiry = as_utc(self.token_expiry)
        return expiry is not None and expiry > (now or now_utc())


class Principal(BaseModel):
    id: str
    role: Role
    email: str
    password_hash: str
    name: Optional[str] = None
    institution_id: Optional[str] = None
    admin_code: Optional[str] = None
    is_active: bool = True
    email_verification: EmailVerification = Field(default_factory=EmailVerification)
    last_login: Optional[datetime] = None

    def identity(self) -> PrincipalIdentity:
        return PrincipalIdentity(id=self.id, role=self.role, email=self.email)

    def summary(self) -> Dict[str, Any]:
        """Datos públicos del principal (sin hash ni tokens)."""
        out: Dict[str, Any] = {
            "id": self.id,
            "role": self.role.value,
            "email": self.email,
            "name": self.name,
            "email_verified": self.email_verification.verified,
        }
        if self.institution_id:
            out["institution_id"] = self.institution_id
        if self.last_login:
            out["last_login"] = self.last_login.isoformat()
        return out

    @classmethod
    def from_document(cls, role: Role, doc: Dict[str, Any]) -> "Principal":
        ev = doc.get("email_verification") or {}
        return cls(
            id=str(doc["_id"]),
            role=role,
            email=doc["email"],
            password_hash=doc.get("password_hash") or "",
            name=doc.get("name"),
            institution_id=doc.get("institution_id"),
            admin_code=doc.get("admin_code"),
            is_active=bool(doc.get("is_active", True)),
            email_verification=EmailVerification(
                verified=bool(ev.get("verified", False)),
                token=ev.get("token"),
                token_expiry=as_utc(ev.get("token_expiry")),
            ),
            last_login=as_utc(doc.get("last_login")),
        )
