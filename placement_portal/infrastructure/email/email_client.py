"""
Cliente de correo (SMTP) inyectable, más las plantillas de verificación.

Ciclo de vida explícito: `init()` una vez al arrancar y `send()` después.
`send` nunca lanza: devuelve un `EmailResult` y deja el error en el log.
"""
from __future__ import annotations

import asyncio
import logging
import smtplib
from dataclasses import dataclass
from email.message import EmailMessage
from email.utils import make_msgid
from typing import Optional, Protocol

from placement_portal.core.config import Settings
from placement_portal.domain.principal import Principal

_log = logging.getLogger("portal.email")


@dataclass
class EmailResult:
    success: bool
    message_id: Optional[str] = None
    error: Optional[str] = None


class EmailSender(Protocol):
    def init(self) -> bool: ...

    async def send(
        self, to: str, subject: str, text: Optional[str] = None, html: Optional[str] = None
    ) -> EmailResult: ...


class EmailClient:
    def __init__(self, settings: Settings) -> None:
        self.settings = settings
        self._from: Optional[str] = None

    def init(self) -> bool:
        """Valida la configuración SMTP; devuelve False si el envío queda deshabilitado."""
        s = self.settings
        if not s.email_configured:
            _log.warning("SMTP no configurado (SMTP_HOST/SMTP_USER/SMTP_PASS); correos deshabilitados")
            self._from = None
            return False
        self._from = f"{s.smtp_from_name} <{s.smtp_from_email or s.smtp_user}>"
        _log.info("Email client listo host=%s port=%s", s.smtp_host, s.smtp_port)
        return True

    @property
    def ready(self) -> bool:
        return self._from is not None

    def _deliver(self, msg: EmailMessage) -> None:
        s = self.settings
        # Conexión TLS por defecto (587)
        if s.smtp_use_tls:
            with smtplib.SMTP(s.smtp_host, s.smtp_port) as server:
                server.starttls()
                server.login(s.smtp_user, s.smtp_pass)
                server.send_message(msg)
        else:
            with smtplib.SMTP_SSL(s.smtp_host, s.smtp_port) as server:
                server.login(s.smtp_user, s.smtp_pass)
                server.send_message(msg)

    async def send(
        self, to: str, subject: str, text: Optional[str] = None, html: Optional[str] = None
    ) -> EmailResult:
        if not self.ready:
            return EmailResult(success=False, error="Email client not initialized")

        msg = EmailMessage()
        msg["From"] = self._from
        msg["To"] = to
        msg["Subject"] = subject
        msg["Message-ID"] = make_msgid()
        msg.set_content(text or "")
        if html:
            msg.add_alternative(html, subtype="html")

        try:
            await asyncio.to_thread(self._deliver, msg)
        except (smtplib.SMTPException, OSError) as e:
            _log.error("Failed to send email to %s: %s", to, e)
            return EmailResult(success=False, error=str(e))
        _log.info("Email sent successfully to %s", to)
        return EmailResult(success=True, message_id=msg["Message-ID"])


def verification_email(principal: Principal, link: str, expires_in_hours: int) -> tuple[str, str]:
    """Asunto y texto del correo con el link de verificación."""
    kind = "Institution" if principal.role.value == "institution" else "Student"
    subject = f"Verify Your {kind} Account"
    text = (
        "Welcome to the Placement Portal!\n\n"
        f"Please verify your {kind.lower()} account by clicking the link below:\n"
        f"{link}\n\n"
        f"This link will expire in {expires_in_hours} hours."
    )
    return subject, text


def verified_confirmation_email(principal: Principal) -> tuple[str, str]:
    subject = "Email Verification"
    text = "Welcome to the Placement Portal!\n\nYour email has been verified successfully."
    return subject, text
