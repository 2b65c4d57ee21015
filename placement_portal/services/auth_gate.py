"""
Gate de autenticación por request: aceptar, refrescar en silencio o rechazar.

Orden de decisión a partir de las cookies (access, refresh):
1. Ninguna cookie                      -> NO_TOKEN (sin I/O).
2. Access válido                       -> autenticado.
   Access inválido / de otro tipo      -> INVALID_TOKEN (nunca cae a refresh).
   Access expirado                     -> paso 3, o SESSION_EXPIRED si no hay refresh.
3. Refresh desconocido                 -> INVALID_REFRESH_TOKEN (borra la cookie).
   Refresh revocado / expirado         -> REFRESH_TOKEN_EXPIRED.
   Refresh válido                      -> touch + nuevo access token.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from pymongo.errors import PyMongoError

from placement_portal.core.exceptions import (
    InvalidRefreshTokenError,
    InvalidTokenError,
    NoTokenError,
    RefreshFailedError,
    RefreshTokenExpiredError,
    SessionExpiredError,
)
from placement_portal.domain.principal import PrincipalIdentity
from placement_portal.repositories.refresh_token_repo import RefreshTokenStore
from placement_portal.services.token_service import ACCESS, SigningError, TokenCodec, TokenError, TokenExpired

_log = logging.getLogger("portal.gate")


class GateDecision(str, Enum):
    AUTHENTICATED = "authenticated"
    REFRESHED = "refreshed"


@dataclass(frozen=True)
class GateResult:
    identity: PrincipalIdentity
    decision: GateDecision
    new_access_token: Optional[str] = None


class AuthGate:
    def __init__(self, codec: TokenCodec, store: RefreshTokenStore) -> None:
        self.codec = codec
        self.store = store

    async def authenticate(self, access_token: Optional[str], refresh_token: Optional[str]) -> GateResult:
        if not access_token and not refresh_token:
            raise NoTokenError()

        if access_token:
            try:
                claims = self.codec.verify(access_token, ACCESS)
            except TokenExpired:
                if not refresh_token:
                    raise SessionExpiredError()
            except TokenError as e:
                # Un access manipulado no se "arregla" con el refresh
                _log.info("Rejected access token: %s", e)
                raise InvalidTokenError()
            else:
                return GateResult(identity=claims.identity(), decision=GateDecision.AUTHENTICATED)

        return await self.refresh(refresh_token)

    async def refresh(self, refresh_token: Optional[str]) -> GateResult:
        """Rama de refresh: valida el registro persistido y emite un access token nuevo."""
        if not refresh_token:
            raise NoTokenError("Refresh token not found")

        try:
            record = await self.store.find_by_token(refresh_token)
        except PyMongoError as e:
            _log.error("Refresh token lookup failed: %s", e)
            raise RefreshFailedError() from e

        if record is None:
            raise InvalidRefreshTokenError()
        if not record.is_valid():
            raise RefreshTokenExpiredError("Token has been revoked" if record.is_revoked else "Token expired")

        identity = record.identity()
        try:
            await self.store.touch(record)
            access = self.codec.mint_access_token(identity)
        except (PyMongoError, SigningError) as e:
            _log.error("Silent refresh failed principal=%s role=%s: %s", identity.id, identity.role.value, e)
            raise RefreshFailedError() from e

        _log.info("Access token refreshed principal=%s role=%s", identity.id, identity.role.value)
        return GateResult(identity=identity, decision=GateDecision.REFRESHED, new_access_token=access)
