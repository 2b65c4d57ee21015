"""
Creación y verificación de JWTs de acceso y refresh (sin I/O).

- Access: claims sub/role/email/token_type, expiración según rol.
- Refresh: claims sub/role/token_type/jti, expiración fija (7 días por defecto).
- `verify` distingue expiración (dispara refresh) de invalidez (rechazo directo).
"""
from __future__ import annotations

import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional, Union

# Asegura que usamos PyJWT (no el paquete "jwt" incorrecto)
try:
    import jwt as pyjwt  # PyJWT expone jwt.encode/jwt.decode
    if not hasattr(pyjwt, "encode"):
        raise ImportError("Paquete 'jwt' incorrecto en el entorno")
except Exception as e:
    raise RuntimeError(
        "Conflicto de librerías JWT: instala PyJWT>=2 y desinstala el paquete 'jwt'. "
        "Ejecuta: pip uninstall jwt && pip install PyJWT"
    ) from e

from placement_portal.core.config import Settings
from placement_portal.core.time import now_utc
from placement_portal.domain.principal import PrincipalIdentity
from placement_portal.domain.roles import Role, access_token_ttl

ACCESS = "access"
REFRESH = "refresh"
_ROLE_AUDIENCES = [r.value for r in Role]


class TokenError(Exception):
    """Base de los fallos de verificación."""


class TokenInvalid(TokenError):
    """Firma, formato o claims incorrectos."""


class TokenExpired(TokenError):
    """Token bien formado y firmado cuyo `exp` ya pasó."""


class TokenTypeMismatch(TokenError):
    def __init__(self, expected: str, got: Any) -> None:
        super().__init__(f"Invalid token type. Expected: {expected}, Got: {got}")
        self.expected = expected
        self.got = got


class SigningError(Exception):
    """No hay secreto configurado para firmar/verificar."""


@dataclass(frozen=True)
class AccessClaims:
    sub: str
    role: Role
    email: str
    issued_at: datetime
    expires_at: datetime
    token_type: str = ACCESS

    def identity(self) -> PrincipalIdentity:
        return PrincipalIdentity(id=self.sub, role=self.role, email=self.email)


@dataclass(frozen=True)
class RefreshClaims:
    sub: str
    role: Role
    jti: str
    issued_at: datetime
    expires_at: datetime
    token_type: str = REFRESH


Claims = Union[AccessClaims, RefreshClaims]


def _ts(value: Any) -> datetime:
    return datetime.fromtimestamp(int(value), tz=timezone.utc)


class TokenCodec:
    def __init__(
        self,
        *,
        access_secret: Optional[str],
        refresh_secret: Optional[str] = None,
        algorithm: str = "HS256",
        issuer: str = "placement-portal",
        refresh_ttl: timedelta = timedelta(days=7),
    ) -> None:
        self.access_secret = access_secret
        # Sin secreto propio, los refresh se firman con el de acceso
        self.refresh_secret = refresh_secret or access_secret
        self.algorithm = algorithm
        self.issuer = issuer
        self.refresh_ttl = refresh_ttl

    @classmethod
    def from_settings(cls, settings: Settings) -> "TokenCodec":
        return cls(
            access_secret=settings.jwt_secret,
            refresh_secret=settings.refresh_secret,
            algorithm=settings.jwt_algorithm,
            issuer=settings.jwt_issuer,
            refresh_ttl=settings.refresh_token_ttl,
        )

    def _secret_for(self, token_type: str) -> str:
        secret = self.refresh_secret if token_type == REFRESH else self.access_secret
        if not secret:
            raise SigningError(f"JWT secret not configured for {token_type} tokens")
        return secret

    def _encode(self, payload: Dict[str, Any], token_type: str) -> str:
        return pyjwt.encode(payload, self._secret_for(token_type), algorithm=self.algorithm)

    def mint_access_token(
        self,
        principal: PrincipalIdentity,
        override_expiry: Optional[timedelta] = None,
        *,
        now: Optional[datetime] = None,
    ) -> str:
        """
        Genera el access token del principal.
        Expira según la tabla por rol salvo que se pase `override_expiry`.
        """
        role = Role(principal.role)
        now = now or now_utc()
        exp = now + (override_expiry if override_expiry is not None else access_token_ttl(role))
        payload = {
            "sub": str(principal.id),
            "role": role.value,
            "email": principal.email,
            "token_type": ACCESS,
            "iss": self.issuer,
            "aud": role.value,
            "iat": int(now.timestamp()),
            "exp": int(exp.timestamp()),
        }
        return self._encode(payload, ACCESS)

    def mint_refresh_token(self, principal: PrincipalIdentity, *, now: Optional[datetime] = None) -> str:
        role = Role(principal.role)
        now = now or now_utc()
        payload = {
            "sub": str(principal.id),
            "role": role.value,
            "token_type": REFRESH,
            # 128 bits aleatorios: cada refresh token es único aunque se emitan en el mismo segundo
            "jti": secrets.token_hex(16),
            "iss": self.issuer,
            "aud": role.value,
            "iat": int(now.timestamp()),
            "exp": int((now + self.refresh_ttl).timestamp()),
        }
        return self._encode(payload, REFRESH)

    def verify(self, token: str, expected_type: str) -> Claims:
        """
        Valida firma/expiración/tipo y devuelve los claims tipados.

        Lanza TokenExpired sólo para tokens con firma válida; cualquier otro
        fallo de formato o firma es TokenInvalid.
        """
        secret = self._secret_for(expected_type)
        try:
            payload = pyjwt.decode(
                token,
                key=secret,
                algorithms=[self.algorithm],
                issuer=self.issuer,
                audience=_ROLE_AUDIENCES,
                options={"require": ["exp", "iat", "sub"]},
            )
        except pyjwt.ExpiredSignatureError as e:
            raise TokenExpired("Token expired") from e
        except pyjwt.InvalidTokenError as e:
            raise TokenInvalid("Invalid token") from e

        token_type = payload.get("token_type")
        if token_type != expected_type:
            raise TokenTypeMismatch(expected_type, token_type)

        try:
            role = Role(payload.get("role"))
        except ValueError as e:
            raise TokenInvalid("Invalid token role") from e
        if payload.get("aud") != role.value:
            raise TokenInvalid("Token audience does not match role")

        if expected_type == ACCESS:
            if not payload.get("email"):
                raise TokenInvalid("Invalid token claims")
            return AccessClaims(
                sub=str(payload["sub"]),
                role=role,
                email=payload["email"],
                issued_at=_ts(payload["iat"]),
                expires_at=_ts(payload["exp"]),
            )
        if not payload.get("jti"):
            raise TokenInvalid("Invalid token claims")
        return RefreshClaims(
            sub=str(payload["sub"]),
            role=role,
            jti=payload["jti"],
            issued_at=_ts(payload["iat"]),
            expires_at=_ts(payload["exp"]),
        )


def token_expiration(token: str) -> Optional[datetime]:
    """Lee `exp` sin verificar la firma (diagnóstico); None si no es decodificable."""
    try:
        payload = pyjwt.decode(token, options={"verify_signature": False})
    except pyjwt.InvalidTokenError:
        return None
    exp = payload.get("exp")
    return _ts(exp) if exp is not None else None


def is_token_expired(token: str, now: Optional[datetime] = None) -> bool:
    exp = token_expiration(token)
    if exp is None:
        return True
    return (now or now_utc()) >= exp
