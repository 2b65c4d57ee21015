"""
Contenedor de servicios del proceso.

Se construye explícitamente (Mongo o memoria) y los routers lo obtienen con
`get_runtime()`; los tests lo reemplazan con `reset_runtime_for_tests()`.
"""
from __future__ import annotations

import logging
from datetime import timedelta
from typing import Optional

from motor.motor_asyncio import AsyncIOMotorDatabase

from placement_portal.core.config import Settings, settings as default_settings
from placement_portal.infrastructure.email.email_client import EmailClient, EmailSender
from placement_portal.repositories.memory import MemoryPrincipalRepository, MemoryRefreshTokenStore
from placement_portal.repositories.principal_repo import MongoPrincipalRepository, PrincipalRepository
from placement_portal.repositories.refresh_token_repo import RT_COLL, MongoRefreshTokenStore, RefreshTokenStore
from placement_portal.services.auth_gate import AuthGate
from placement_portal.services.auth_service import AuthService
from placement_portal.services.token_service import TokenCodec
from placement_portal.services.token_sweeper import TokenSweeper

_log = logging.getLogger("portal.startup")


class Runtime:
    def __init__(
        self,
        settings: Settings,
        *,
        db: Optional[AsyncIOMotorDatabase] = None,
        email: Optional[EmailSender] = None,
    ) -> None:
        self.settings = settings
        self.codec = TokenCodec.from_settings(settings)
        retention = timedelta(days=settings.revoked_token_retention_days)

        self.principals: PrincipalRepository
        self.refresh_tokens: RefreshTokenStore
        if db is None:
            self.principals = MemoryPrincipalRepository()
            self.refresh_tokens = MemoryRefreshTokenStore(self.codec, retention=retention)
        else:
            self.principals = MongoPrincipalRepository(db)
            self.refresh_tokens = MongoRefreshTokenStore(db[RT_COLL], self.codec, retention=retention)

        self.email: EmailSender = email or EmailClient(settings)
        self.gate = AuthGate(self.codec, self.refresh_tokens)
        self.auth = AuthService(
            settings=settings,
            codec=self.codec,
            principals=self.principals,
            refresh_tokens=self.refresh_tokens,
            email=self.email,
        )
        self.sweeper = TokenSweeper(self.refresh_tokens, timedelta(hours=settings.token_sweep_interval_hours))

    async def start(self) -> None:
        self.email.init()
        self.sweeper.start()

    async def stop(self) -> None:
        await self.sweeper.stop()


_runtime: Optional[Runtime] = None


def set_runtime(runtime: Runtime) -> Runtime:
    global _runtime
    _runtime = runtime
    return runtime


def get_runtime() -> Runtime:
    global _runtime
    if _runtime is None:
        if not default_settings.use_memory_store:
            raise RuntimeError("Runtime no inicializado (¿startup sin Mongo?)")
        _log.info("Usando repositorios en memoria")
        _runtime = Runtime(default_settings)
    return _runtime


def reset_runtime_for_tests(
    settings: Optional[Settings] = None, *, email: Optional[EmailSender] = None
) -> Runtime:
    """Reinicia el contenedor con repositorios en memoria."""
    return set_runtime(Runtime(settings or default_settings, email=email))
