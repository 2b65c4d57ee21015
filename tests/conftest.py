import asyncio
import inspect
import os
import sys
from pathlib import Path

# Antes de importar la app: repositorios en memoria y secretos de prueba
os.environ.setdefault("USE_MEMORY_STORE", "true")
os.environ.setdefault("JWT_SECRET", "test-access-secret-for-testing-only")
os.environ.setdefault("JWT_REFRESH_SECRET", "test-refresh-secret-for-testing-only")
os.environ.setdefault("ENVIRONMENT", "development")

import pytest  # noqa: E402

ROOT = Path(__file__).resolve().parent.parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from placement_portal.core.config import Settings  # noqa: E402
from placement_portal.domain.principal import EmailVerification  # noqa: E402
from placement_portal.domain.roles import Role  # noqa: E402
from placement_portal.infrastructure.email.email_client import EmailResult  # noqa: E402
from placement_portal.repositories.memory import (  # noqa: E402
    MemoryPrincipalRepository,
    MemoryRefreshTokenStore,
)
from placement_portal.runtime import reset_runtime_for_tests  # noqa: E402
from placement_portal.services.auth_service import hash_password  # noqa: E402
from placement_portal.services.token_service import TokenCodec  # noqa: E402

PASSWORD = "Secret123"


class RecordingEmailClient:
    """Doble del cliente SMTP: guarda los correos en lugar de enviarlos."""

    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.initialized = False
        self.sent = []

    def init(self) -> bool:
        self.initialized = True
        return True

    async def send(self, to, subject, text=None, html=None):
        if self.fail:
            return EmailResult(success=False, error="smtp down")
        self.sent.append({"to": to, "subject": subject, "text": text, "html": html})
        return EmailResult(success=True, message_id=f"<test-{len(self.sent)}@portal>")


def principal_doc(email, *, verified=True, password=PASSWORD, **extra):
    doc = {
        "email": email,
        "password_hash": hash_password(password),
        "name": extra.pop("name", "Test User"),
        "is_active": extra.pop("is_active", True),
        "email_verification": EmailVerification(verified=verified).model_dump(),
    }
    doc.update(extra)
    return doc


def seed(principals, role, email, **kwargs) -> str:
    """Inserta un principal desde código síncrono (fixtures / tests de API)."""
    return asyncio.run(principals.insert(Role(role), principal_doc(email, **kwargs)))


@pytest.fixture
def settings():
    return Settings(
        _env_file=None,
        jwt_secret="unit-access-secret",
        jwt_refresh_secret="unit-refresh-secret",
        use_memory_store=True,
        frontend_url="http://portal.test",
    )


@pytest.fixture
def codec(settings):
    return TokenCodec.from_settings(settings)


@pytest.fixture
def store(codec):
    return MemoryRefreshTokenStore(codec)


@pytest.fixture
def principals():
    return MemoryPrincipalRepository()


@pytest.fixture
def email_client():
    return RecordingEmailClient()


@pytest.fixture(autouse=True)
def runtime():
    rt = reset_runtime_for_tests(email=RecordingEmailClient())
    yield rt
    reset_runtime_for_tests(email=RecordingEmailClient())


def pytest_pyfunc_call(pyfuncitem):
    if inspect.iscoroutinefunction(pyfuncitem.obj):
        call_kwargs = {
            name: pyfuncitem.funcargs[name]
            for name in pyfuncitem._fixtureinfo.argnames
            if name in pyfuncitem.funcargs
        }
        asyncio.run(pyfuncitem.obj(**call_kwargs))
        return True
    return None
