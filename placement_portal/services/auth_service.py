"""
Lógica de sesión: login por rol, logout, logout en todos los dispositivos,
sesiones activas y verificación de email.
"""
from __future__ import annotations

import asyncio
import logging
import secrets
from dataclasses import dataclass
from datetime import timedelta
from typing import List, Optional

from argon2 import PasswordHasher
from argon2.exceptions import InvalidHashError, VerificationError
from argon2.low_level import Type

from placement_portal.core.config import Settings
from placement_portal.core.exceptions import (
    EmailAlreadyVerifiedError,
    InvalidCredentialsError,
    InvalidVerificationTokenError,
)
from placement_portal.core.time import now_utc
from placement_portal.domain.principal import Principal, PrincipalIdentity
from placement_portal.domain.refresh_token import DeviceInfo, RefreshTokenRecord
from placement_portal.domain.roles import Role, requires_email_verification
from placement_portal.infrastructure.email.email_client import (
    EmailResult,
    EmailSender,
    verification_email,
    verified_confirmation_email,
)
from placement_portal.repositories.principal_repo import PrincipalRepository
from placement_portal.repositories.refresh_token_repo import RefreshTokenStore
from placement_portal.services.guards import require_verified_email
from placement_portal.services.token_service import TokenCodec

LOGOUT_REASON = "user logout"
LOGOUT_ALL_REASON = "Logout from all devices"

_log = logging.getLogger("portal.auth")

ph = PasswordHasher(time_cost=2, memory_cost=51200, parallelism=2, hash_len=32, salt_len=16, type=Type.ID)


def hash_password(password: str) -> str:
    return ph.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    if not password_hash:
        return False
    try:
        return ph.verify(password_hash, password)
    except (VerificationError, InvalidHashError):
        return False


@dataclass
class LoginResult:
    principal: Principal
    access_token: str
    refresh_token: str
    session: RefreshTokenRecord


class AuthService:
    def __init__(
        self,
        *,
        settings: Settings,
        codec: TokenCodec,
        principals: PrincipalRepository,
        refresh_tokens: RefreshTokenStore,
        email: EmailSender,
    ) -> None:
        self.settings = settings
        self.codec = codec
        self.principals = principals
        self.refresh_tokens = refresh_tokens
        self.email = email

    async def login(
        self,
        role: Role,
        email: str,
        password: str,
        device_info: DeviceInfo,
        *,
        institution_id: Optional[str] = None,
        admin_code: Optional[str] = None,
    ) -> LoginResult:
        """
        Valida credenciales y abre una sesión (access + refresh persistido).

        Cualquier fallo de credenciales responde igual (INVALID_CREDENTIALS);
        un email sin verificar se rechaza antes de emitir ningún token.
        """
        role = Role(role)
        principal = await require_verified_email(self.principals, role, email, institution_id)
        if principal is None or not principal.is_active:
            _log.info("Login failed role=%s email=%s", role.value, email)
            raise InvalidCredentialsError()

        if role == Role.ADMIN and not (
            admin_code and principal.admin_code and secrets.compare_digest(admin_code, principal.admin_code)
        ):
            _log.info("Login failed role=%s email=%s", role.value, email)
            raise InvalidCredentialsError()

        # argon2 es CPU-bound: fuera del event loop
        if not await asyncio.to_thread(verify_password, password, principal.password_hash):
            _log.info("Login failed role=%s email=%s", role.value, email)
            raise InvalidCredentialsError()

        identity = principal.identity()
        access = self.codec.mint_access_token(identity)
        session = await self.refresh_tokens.create(identity, device_info)

        now = now_utc()
        await self.principals.record_login(role, principal.id, now)
        principal.last_login = now

        _log.info("Login ok role=%s email=%s device=%s", role.value, principal.email, device_info.device)
        return LoginResult(principal=principal, access_token=access, refresh_token=session.token, session=session)

    async def logout(self, refresh_token: Optional[str]) -> bool:
        """Revoca la sesión del refresh token actual; False si no había sesión."""
        if not refresh_token:
            return False
        record = await self.refresh_tokens.find_by_token(refresh_token)
        if record is None:
            return False
        await self.refresh_tokens.revoke(record, LOGOUT_REASON)
        _log.info("Logout principal=%s role=%s", record.principal_id, record.role.value)
        return True

    async def logout_all(self, identity: PrincipalIdentity) -> int:
        count = await self.refresh_tokens.revoke_all_for_principal(identity.id, identity.role, LOGOUT_ALL_REASON)
        _log.info("Revoked %s sessions principal=%s role=%s", count, identity.id, identity.role.value)
        return count

    async def list_active_sessions(self, identity: PrincipalIdentity) -> List[RefreshTokenRecord]:
        return await self.refresh_tokens.list_active_for_principal(identity.id, identity.role)

    # === Verificación de email ===

    async def issue_verification(self, principal: Principal) -> EmailResult:
        """
        Genera token aleatorio + expiración, lo guarda en el principal y envía el link.
        Un fallo de correo no se propaga: queda en el log y en el resultado.
        """
        hours = self.settings.email_verification_expire_hours
        token = secrets.token_hex(32)
        expires_at = now_utc() + timedelta(hours=hours)
        await self.principals.set_verification_token(principal.role, principal.id, token, expires_at)

        link = self.settings.email_verify_link(principal.role.value, token)
        subject, text = verification_email(principal, link, hours)
        result = await self.email.send(principal.email, subject, text=text)
        if not result.success:
            _log.warning("Verification email not sent to %s: %s", principal.email, result.error)
        return result

    async def resend_verification(self, role: Role, email: str, institution_id: Optional[str] = None) -> None:
        """
        Reenvía el correo de verificación.
        Si la cuenta no existe no se revela: se responde igual que en el caso exitoso.
        """
        role = Role(role)
        if not requires_email_verification(role):
            return
        principal = await self.principals.find_by_email(role, email, institution_id)
        if principal is None:
            _log.info("Resend verification for unknown account role=%s", role.value)
            return
        if principal.email_verification.verified:
            raise EmailAlreadyVerifiedError()
        await self.issue_verification(principal)

    async def verify_email(self, role: Role, token: str) -> Principal:
        role = Role(role)
        principal = await self.principals.find_by_verification_token(role, token)
        if principal is None or not principal.email_verification.token_matches(token):
            raise InvalidVerificationTokenError()

        await self.principals.mark_email_verified(role, principal.id)
        principal.email_verification.verified = True
        principal.email_verification.token = None
        principal.email_verification.token_expiry = None
        _log.info("Email verified role=%s email=%s", role.value, principal.email)

        subject, text = verified_confirmation_email(principal)
        result = await self.email.send(principal.email, subject, text=text)
        if not result.success:
            _log.warning("Verification confirmation not sent to %s: %s", principal.email, result.error)
        return principal
