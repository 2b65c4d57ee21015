"""
Esquemas Pydantic para operaciones de autenticación.

- Mantiene las validaciones y normalizaciones (p. ej. email en minúsculas).
- Modelos pensados para separar la capa API de la lógica de negocio.
"""

from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, EmailStr, Field, field_validator


class LoginPayload(BaseModel):
    """Credenciales de login.

    - `institution_id` identifica al estudiante dentro de su institución.
    - `admin_code` sólo aplica al login de administrador.
    """

    email: EmailStr
    password: str = Field(min_length=6)
    institution_id: Optional[str] = None
    admin_code: Optional[str] = None

    @field_validator("email")
    @classmethod
    def _lower_email(cls, v: EmailStr) -> str:
        return str(v).lower()


class ResendVerificationPayload(BaseModel):
    email: EmailStr
    user_type: Literal["institution", "student"]
    institution_id: Optional[str] = None

    @field_validator("email")
    @classmethod
    def _lower_email(cls, v: EmailStr) -> str:
        return str(v).lower()


class MessageOut(BaseModel):
    success: bool = True
    message: str


class LoginOut(BaseModel):
    success: bool = True
    message: str
    user: Dict[str, Any]


class IdentityOut(BaseModel):
    success: bool = True
    id: str
    role: str
    email: str


class SessionsOut(BaseModel):
    success: bool = True
    sessions: List[Dict[str, Any]]


class LogoutAllOut(BaseModel):
    success: bool = True
    message: str
    revoked: int
