"""
Errores de servicio con código estable y handlers globales para respuestas consistentes.

Cada error lleva `status_code` HTTP y un `code` legible por máquina; los
routers y la capa de autenticación sólo lanzan estas excepciones y el handler
las serializa como `{"success": false, "code", "message"}`.
"""
import logging
from typing import Any, Dict, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from placement_portal.core.config import settings


class ServiceError(Exception):
    """Base de los errores que se traducen a respuesta HTTP."""

    status_code: int = 400
    code: str = "BAD_REQUEST"
    default_message: str = "Bad request"
    clear_access_cookie: bool = False
    clear_refresh_cookie: bool = False

    def __init__(self, message: Optional[str] = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class NoTokenError(ServiceError):
    status_code = 401
    code = "NO_TOKEN"
    default_message = "Access denied. No token provided."


class InvalidTokenError(ServiceError):
    status_code = 401
    code = "INVALID_TOKEN"
    default_message = "Invalid token"


class InvalidRefreshTokenError(ServiceError):
    status_code = 401
    code = "INVALID_REFRESH_TOKEN"
    default_message = "Invalid refresh token"
    clear_refresh_cookie = True


class RefreshTokenExpiredError(ServiceError):
    status_code = 401
    code = "REFRESH_TOKEN_EXPIRED"
    default_message = "Session expired. Please log in again."


class SessionExpiredError(ServiceError):
    status_code = 401
    code = "SESSION_EXPIRED"
    default_message = "Session expired. Please log in again."


class RefreshFailedError(ServiceError):
    status_code = 500
    code = "REFRESH_FAILED"
    default_message = "Could not refresh the session"


class EmailNotVerifiedError(ServiceError):
    status_code = 403
    code = "EMAIL_NOT_VERIFIED"
    default_message = "Please verify your email first"


class ForbiddenRoleError(ServiceError):
    status_code = 403
    code = "FORBIDDEN_ROLE"
    default_message = "Access denied for this role"


class InvalidCredentialsError(ServiceError):
    status_code = 401
    code = "INVALID_CREDENTIALS"
    default_message = "Invalid credentials"


class InvalidVerificationTokenError(ServiceError):
    status_code = 400
    code = "INVALID_VERIFICATION_TOKEN"
    default_message = "Invalid or expired verification token"


class EmailAlreadyVerifiedError(ServiceError):
    status_code = 400
    code = "EMAIL_ALREADY_VERIFIED"
    default_message = "Email is already verified"


def _req_id(request: Request) -> str | None:
    return getattr(getattr(request, "state", object()), "request_id", None)


def register_exception_handlers(app: FastAPI) -> None:
    log = logging.getLogger("portal.errors")

    @app.exception_handler(ServiceError)
    async def _service_error_handler(request: Request, exc: ServiceError):
        body: Dict[str, Any] = {"success": False, "code": exc.code, "message": exc.message}
        rid = _req_id(request)
        if rid:
            body["request_id"] = rid
        if exc.status_code >= 500:
            log.error("Service error code=%s request_id=%s", exc.code, rid)
        response = JSONResponse(status_code=exc.status_code, content=body)
        if exc.clear_access_cookie:
            response.delete_cookie(settings.access_cookie_name, path="/")
        if exc.clear_refresh_cookie:
            response.delete_cookie(settings.refresh_cookie_name, path="/")
        return response

    @app.exception_handler(StarletteHTTPException)
    async def _http_exc_handler(request: Request, exc: StarletteHTTPException):
        body: Dict[str, Any] = {"success": False, "message": exc.detail or "HTTP error"}
        rid = _req_id(request)
        if rid:
            body["request_id"] = rid
        return JSONResponse(status_code=exc.status_code, content=body)

    @app.exception_handler(RequestValidationError)
    async def _validation_handler(request: Request, exc: RequestValidationError):
        body: Dict[str, Any] = {"success": False, "message": "Validation failed", "errors": exc.errors()}
        rid = _req_id(request)
        if rid:
            body["request_id"] = rid
        return JSONResponse(status_code=422, content=body)

    @app.exception_handler(Exception)
    async def _generic_handler(request: Request, exc: Exception):
        rid = _req_id(request)
        log.exception("Unhandled error request_id=%s", rid)
        body: Dict[str, Any] = {"success": False, "message": "Internal server error"}
        if rid:
            body["request_id"] = rid
        return JSONResponse(status_code=500, content=body)
