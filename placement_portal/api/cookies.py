"""
Cookies de sesión (`accT` / `refT`) y metadatos del dispositivo del request.

Ambas cookies: httpOnly, sameSite=strict, path=/ y `secure` sólo en producción.
"""
from fastapi import Request, Response

from placement_portal.core.config import Settings, settings
from placement_portal.domain.refresh_token import DeviceInfo


def _set(response: Response, name: str, value: str, max_age: int, cfg: Settings) -> None:
    response.set_cookie(
        key=name,
        value=value,
        max_age=max_age,
        httponly=True,
        secure=cfg.is_production,
        samesite="strict",
        path="/",
    )


def set_access_cookie(response: Response, token: str, cfg: Settings = settings) -> None:
    _set(response, cfg.access_cookie_name, token, cfg.access_cookie_max_age_seconds, cfg)


def set_refresh_cookie(response: Response, token: str, cfg: Settings = settings) -> None:
    _set(response, cfg.refresh_cookie_name, token, cfg.refresh_cookie_max_age_seconds, cfg)


def clear_auth_cookies(response: Response, cfg: Settings = settings) -> None:
    for name in (cfg.access_cookie_name, cfg.refresh_cookie_name):
        response.delete_cookie(
            key=name,
            path="/",
            httponly=True,
            secure=cfg.is_production,
            samesite="strict",
        )


def read_auth_cookies(request: Request, cfg: Settings = settings) -> tuple[str | None, str | None]:
    return request.cookies.get(cfg.access_cookie_name), request.cookies.get(cfg.refresh_cookie_name)


def device_info_from_request(request: Request) -> DeviceInfo:
    ip = request.client.host if request.client else ""
    return DeviceInfo.from_user_agent(request.headers.get("user-agent", ""), ip)
