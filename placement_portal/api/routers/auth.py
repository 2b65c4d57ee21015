"""Rutas de autenticación: login por rol, refresh, logout, sesiones y verificación de email."""
from fastapi import APIRouter, Depends, Request, Response, status

from placement_portal.api.cookies import (
    clear_auth_cookies,
    device_info_from_request,
    read_auth_cookies,
    set_access_cookie,
    set_refresh_cookie,
)
from placement_portal.api.deps import authenticate, runtime_dep
from placement_portal.api.schemas.auth import (
    IdentityOut,
    LoginOut,
    LoginPayload,
    LogoutAllOut,
    MessageOut,
    ResendVerificationPayload,
    SessionsOut,
)
from placement_portal.core.exceptions import ServiceError
from placement_portal.domain.principal import PrincipalIdentity
from placement_portal.domain.roles import Role
from placement_portal.runtime import Runtime

router = APIRouter(prefix="/auth", tags=["Auth"])


def _identity_out(identity: PrincipalIdentity) -> IdentityOut:
    return IdentityOut(id=identity.id, role=identity.role.value, email=identity.email)


@router.post(
    "/{role}/login",
    response_model=LoginOut,
    summary="Login por rol",
    description="Valida credenciales, abre una sesión y deja accT/refT en cookies.",
)
async def login(
    role: Role,
    payload: LoginPayload,
    request: Request,
    response: Response,
    rt: Runtime = Depends(runtime_dep),
) -> LoginOut:
    res = await rt.auth.login(
        role,
        payload.email,
        payload.password,
        device_info_from_request(request),
        institution_id=payload.institution_id,
        admin_code=payload.admin_code,
    )
    set_access_cookie(response, res.access_token, rt.settings)
    set_refresh_cookie(response, res.refresh_token, rt.settings)
    return LoginOut(message="Login successful", user=res.principal.summary())


@router.post(
    "/refresh",
    response_model=IdentityOut,
    summary="Refrescar access token",
    description="Usa la cookie refT para emitir un accT nuevo (sin rotar el refresh).",
)
async def refresh(request: Request, response: Response, rt: Runtime = Depends(runtime_dep)) -> IdentityOut:
    _, refresh_token = read_auth_cookies(request, rt.settings)
    result = await rt.gate.refresh(refresh_token)
    set_access_cookie(response, result.new_access_token, rt.settings)
    return _identity_out(result.identity)


@router.post(
    "/logout",
    response_model=MessageOut,
    summary="Cerrar sesión",
    description="Revoca el refresh token actual (si existe) y borra ambas cookies.",
)
async def logout(request: Request, response: Response, rt: Runtime = Depends(runtime_dep)) -> MessageOut:
    # Sin gate: una sesión ya revocada o vencida también debe poder limpiar sus cookies
    _, refresh_token = read_auth_cookies(request, rt.settings)
    await rt.auth.logout(refresh_token)
    clear_auth_cookies(response, rt.settings)
    return MessageOut(message="Logged out successfully")


@router.post(
    "/logout-all",
    response_model=LogoutAllOut,
    summary="Cerrar sesión en todos los dispositivos",
    description="Revoca todos los refresh tokens activos del principal. Si el gate rechaza, borra ambas cookies.",
)
async def logout_all(
    request: Request,
    response: Response,
    rt: Runtime = Depends(runtime_dep),
) -> LogoutAllOut:
    try:
        identity = await authenticate(request, response, rt)
    except ServiceError as e:
        e.clear_access_cookie = True
        e.clear_refresh_cookie = True
        raise
    count = await rt.auth.logout_all(identity)
    clear_auth_cookies(response, rt.settings)
    return LogoutAllOut(message="Logged out from all devices successfully", revoked=count)


@router.get("/me", response_model=IdentityOut, summary="Identidad actual")
async def me(identity: PrincipalIdentity = Depends(authenticate)) -> IdentityOut:
    return _identity_out(identity)


@router.get(
    "/sessions",
    response_model=SessionsOut,
    summary="Sesiones activas",
    description="Refresh tokens vigentes del principal, del uso más reciente al más antiguo.",
)
async def sessions(
    identity: PrincipalIdentity = Depends(authenticate),
    rt: Runtime = Depends(runtime_dep),
) -> SessionsOut:
    records = await rt.auth.list_active_sessions(identity)
    return SessionsOut(sessions=[r.session_summary() for r in records])


@router.post(
    "/resend-verification",
    response_model=MessageOut,
    status_code=status.HTTP_200_OK,
    summary="Reenviar correo de verificación",
)
async def resend_verification(
    payload: ResendVerificationPayload,
    rt: Runtime = Depends(runtime_dep),
) -> MessageOut:
    await rt.auth.resend_verification(Role(payload.user_type), payload.email, payload.institution_id)
    return MessageOut(message="If the account exists, a verification email has been sent")


@router.post(
    "/verify-email/{role}/{token}",
    response_model=MessageOut,
    summary="Verificar email con link",
    description="Valida el token del link y marca el email como verificado.",
)
async def verify_email(role: Role, token: str, rt: Runtime = Depends(runtime_dep)) -> MessageOut:
    await rt.auth.verify_email(role, token)
    return MessageOut(message="Email verified successfully")
