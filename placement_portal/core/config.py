"""Configuración central de la aplicación (Pydantic Settings).

- Carga variables desde .env en la raíz del proyecto.
- Agrupa ajustes por área: App, CORS, Mongo, JWT/sesión, Email.
"""
from datetime import timedelta
from pathlib import Path
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict

# Resuelve el .env ubicado en la raíz del proyecto (independiente del CWD)
ENV_FILE = Path(__file__).resolve().parents[2] / ".env"


class Settings(BaseSettings):
    """Conjunto de variables de configuración con valores por defecto razonables.

    Nota: los valores pueden sobreescribirse vía variables de entorno (.env).
    """
    # App
    app_name: str = "Placement Portal API"
    api_prefix: str = "/api"
    environment: Literal["development", "production"] = "development"
    log_level: str = "INFO"

    # CORS (dashboards React en localhost); las cookies exigen credentials
    cors_origins: list[str] = ["http://localhost:3000", "http://127.0.0.1:3000", "http://localhost:5173"]

    # Mongo
    mongo_uri: str = "mongodb://localhost:27017"
    mongo_db: str = "placement_portal"
    # TLS relax options (dev only)
    mongo_tls_insecure: bool = False
    mongo_tls_allow_invalid_hostnames: bool = False
    # Repositorios en memoria (tests / desarrollo sin Mongo)
    use_memory_store: bool = False

    # Auth / JWT
    jwt_secret: str | None = None
    jwt_refresh_secret: str | None = None
    jwt_algorithm: str = "HS256"
    jwt_issuer: str = "placement-portal"

    # Sesión y cookies
    access_cookie_name: str = "accT"
    refresh_cookie_name: str = "refT"
    access_cookie_max_age_seconds: int = 15 * 60
    refresh_cookie_max_age_seconds: int = 7 * 24 * 60 * 60
    refresh_token_expire_days: int = 7
    token_sweep_interval_hours: int = 24
    revoked_token_retention_days: int = 30
    email_verification_expire_hours: int = 24

    # Email / SMTP
    smtp_host: str | None = None
    smtp_port: int = 587
    smtp_user: str | None = None
    smtp_pass: str | None = None
    smtp_from_email: str | None = None
    smtp_from_name: str = "Placement Portal"
    smtp_use_tls: bool = True
    frontend_url: str = "http://localhost:3000"

    model_config = SettingsConfigDict(
        env_file=str(ENV_FILE),
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",  # no fallar si hay variables no usadas
    )

    # --- Utilidades derivadas / helpers ---
    @property
    def api_prefix_normalized(self) -> str:
        """Devuelve `api_prefix` con formato consistente.

        - Siempre inicia con '/'
        - Sin '/' final (excepto cuando es solo '/')
        - Si está vacío, devuelve ""
        """
        pref = (self.api_prefix or "").strip()
        if not pref:
            return ""
        if not pref.startswith('/'):
            pref = '/' + pref
        if len(pref) > 1 and pref.endswith('/'):
            pref = pref[:-1]
        return pref

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    @property
    def refresh_secret(self) -> str | None:
        """Secreto de los refresh tokens; cae al de acceso si no hay uno propio."""
        return self.jwt_refresh_secret or self.jwt_secret

    @property
    def refresh_secret_is_shared(self) -> bool:
        return bool(self.jwt_secret) and not self.jwt_refresh_secret

    @property
    def refresh_token_ttl(self) -> timedelta:
        return timedelta(days=self.refresh_token_expire_days)

    @property
    def email_configured(self) -> bool:
        return bool(self.smtp_host and self.smtp_user and self.smtp_pass)

    def email_verify_link(self, role: str, token: str) -> str:
        """Construye el link de verificación que abre el frontend."""
        base = self.frontend_url.rstrip("/")
        return f"{base}/verify-email/{role}/{token}"


settings = Settings()
